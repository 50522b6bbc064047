"""
Management command to flag pending payments whose due date has passed.

Usage:
    python manage.py mark_overdue_payments [--dry-run]
"""
from django.core.management.base import BaseCommand
from payments.services import RentGenerationService


class Command(BaseCommand):
    help = 'Mark PENDING payments past their due date as OVERDUE'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Count the payments that would be updated without changing them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        count = RentGenerationService().mark_overdue(dry_run=dry_run)
        if dry_run:
            self.stdout.write(self.style.WARNING(f"DRY RUN - {count} payment(s) would be marked overdue"))
        else:
            self.stdout.write(self.style.SUCCESS(f"{count} payment(s) marked overdue"))
