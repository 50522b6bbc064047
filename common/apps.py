from django.apps import AppConfig
import logging
import os
import sys

logger = logging.getLogger(__name__)


class CommonConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'common'

    def ready(self):
        """
        Start the background scheduler under runserver only
        (not in migrations, tests, shells or the autoreloader parent).
        """
        if os.environ.get('RUN_MAIN') != 'true':
            return
        if len(sys.argv) < 2 or sys.argv[1] != 'runserver':
            return

        from django.conf import settings
        if not getattr(settings, 'ENABLE_BACKGROUND_SCHEDULER', True):
            return

        from .scheduler import start_scheduler
        start_scheduler()
        logger.info("Background task scheduler initialized")
