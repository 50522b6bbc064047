"""
In-process APScheduler running the recurring payment commands under
runserver. Deployments without a long-lived process (Render) run the same
management commands from cron instead.
"""
import logging
import atexit
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from django.core.management import call_command
from django.utils import timezone

from .utils import get_site_settings

logger = logging.getLogger(__name__)

scheduler = None

# (job id, management command, cron fields)
JOBS = [
    ('generate_monthly_rent', 'generate_monthly_rent', {'day': 1, 'hour': 0, 'minute': 0}),
    ('mark_overdue_payments', 'mark_overdue_payments', {'hour': 1, 'minute': 0}),
]


def run_command_job(command):
    """Run one management command, logging instead of raising"""
    if command == 'generate_monthly_rent' and not get_site_settings().auto_generate_rent:
        logger.info("Automatic rent generation disabled in site settings, skipping")
        return
    logger.info(f"Scheduled job {command} starting")
    try:
        call_command(command)
    except Exception as e:
        # A failing run must not kill the scheduler thread
        logger.error(f"Scheduled job {command} failed: {e}", exc_info=True)
        return
    logger.info(f"Scheduled job {command} finished")


def start_scheduler():
    """Start the scheduler once per process"""
    global scheduler

    if scheduler is not None and scheduler.running:
        logger.warning("Scheduler is already running")
        return

    tz = timezone.get_current_timezone()
    scheduler = BackgroundScheduler(timezone=tz)
    for job_id, command, cron in JOBS:
        scheduler.add_job(
            run_command_job,
            trigger=CronTrigger(timezone=tz, **cron),
            args=[command],
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

    scheduler.start()
    atexit.register(stop_scheduler)
    logger.info(f"Background scheduler started ({tz}) with {len(JOBS)} jobs")


def stop_scheduler():
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    scheduler = None
