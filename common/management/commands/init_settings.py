"""
Management command to initialize default settings
"""
from django.core.management.base import BaseCommand
from common.models import SiteSettings
from accounting.services import ensure_system_accounts


class Command(BaseCommand):
    help = 'Initialize default site settings and the system chart of accounts'

    def handle(self, *args, **options):
        self.stdout.write('Initializing default settings...')

        settings = SiteSettings.load()
        self.stdout.write(self.style.SUCCESS(f'✓ Site settings created/loaded ({settings.site_name})'))

        created = ensure_system_accounts()
        self.stdout.write(self.style.SUCCESS(f'✓ System accounts ready ({created} created)'))

        self.stdout.write('\nYou can now customize these settings from the Admin Panel:')
        self.stdout.write('  - Site Settings: /admin/common/sitesettings/')
        self.stdout.write('  - Accounts: /admin/accounting/accountingaccount/')
