"""
Management command to generate the monthly rent payments of active tenant occupancies.
Run at the start of each month (the background scheduler does it on the 1st).

Usage:
    python manage.py generate_monthly_rent
    python manage.py generate_monthly_rent --month 2026-03 --dry-run
"""
from datetime import datetime
from django.core.management.base import BaseCommand, CommandError
from payments.services import RentGenerationService


class Command(BaseCommand):
    help = 'Generate monthly rent payments for all active tenant occupancies'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be created without actually creating records',
        )
        parser.add_argument(
            '--month',
            help='Month to generate (YYYY-MM), defaults to the current month',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        month = None
        if options.get('month'):
            try:
                month = datetime.strptime(options['month'], '%Y-%m').date()
            except ValueError:
                raise CommandError("--month must use the YYYY-MM format")

        service = RentGenerationService()
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE - No records will be created\n"))

        result = service.generate_monthly_rent(month=month, dry_run=dry_run)

        self.stdout.write(f"\n{'='*60}")
        self.stdout.write(f"  MONTHLY RENT GENERATION - {result['month'].strftime('%B %Y')}")
        self.stdout.write(f"  Due date: {result['due_date'].isoformat()}")
        self.stdout.write(f"{'='*60}\n")

        for occupancy in result['skipped']:
            self.stdout.write(
                f"  = {occupancy.user.username} (lot {occupancy.lot.lot_number}) - Already has a rent payment"
            )
        for occupancy in result['created']:
            self.stdout.write(self.style.SUCCESS(
                f"  + {occupancy.user.username} (lot {occupancy.lot.lot_number}) - Rent {occupancy.rent_amount}"
            ))
        for occupancy in result['failed']:
            self.stdout.write(self.style.ERROR(
                f"  ! {occupancy.user.username} (lot {occupancy.lot.lot_number}) - Failed, see error log"
            ))

        self.stdout.write(f"\n{'='*60}")
        self.stdout.write("  SUMMARY")
        self.stdout.write(f"{'='*60}")
        self.stdout.write(f"  Already had payments: {len(result['skipped'])}")
        if dry_run:
            self.stdout.write(self.style.WARNING(f"  Would create: {len(result['created'])}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"  Created: {len(result['created'])}"))
        if result['failed']:
            self.stdout.write(self.style.ERROR(f"  Failed: {len(result['failed'])}"))
        self.stdout.write(f"{'='*60}\n")
