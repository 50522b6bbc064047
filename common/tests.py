"""
Tests for shared infrastructure: health checks, site settings, management commands
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from core.constants import PaymentStatus, PaymentType
from core.test_utils import TestDataFactory
from common.logging_config import RequestIDFilter
from common.models import SiteSettings
from common.scheduler import run_command_job
from common.utils import add_months, get_site_settings, percentage, quantize_money
from payments.models import Payment


class HealthCheckTests(TestCase):

    def test_liveness(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    def test_readiness(self):
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['checks'], {'database': True, 'cache': True})

    def test_deep_check_reports_counts(self):
        TestDataFactory.create_agency()
        data = self.client.get('/health/deep/').json()
        self.assertEqual(data['checks']['models']['details']['agencies'], 1)

    def test_request_id_header(self):
        response = self.client.get('/health/')
        self.assertEqual(len(response['X-Request-ID']), 8)

    def test_incoming_request_id_is_kept(self):
        response = self.client.get('/health/', HTTP_X_REQUEST_ID='lb-42')
        self.assertEqual(response['X-Request-ID'], 'lb-42')

        response = self.client.get('/health/', HTTP_X_REQUEST_ID='bad id!')
        self.assertNotEqual(response['X-Request-ID'], 'bad id!')

    def test_post_not_allowed(self):
        self.assertEqual(self.client.post('/health/').status_code, 405)


class SiteSettingsTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_defaults(self):
        settings = get_site_settings()
        self.assertEqual(settings.pk, 1)
        self.assertEqual(settings.site_name, 'Residence Hub')
        self.assertEqual(settings.rent_due_day, 5)

    def test_singleton(self):
        created_at = SiteSettings.load().created_at
        SiteSettings(site_name='Other').save()
        SiteSettings(site_name='Again').save()
        self.assertEqual(SiteSettings.objects.count(), 1)
        self.assertEqual(get_site_settings().site_name, 'Again')
        self.assertEqual(SiteSettings.objects.get().created_at, created_at)


class HelperTests(TestCase):

    def test_add_months_crosses_years(self):
        self.assertEqual(add_months(date(2024, 11, 1), 3), date(2025, 2, 1))
        self.assertEqual(add_months(date(2024, 1, 1), -1), date(2023, 12, 1))

    def test_quantize_money(self):
        self.assertEqual(quantize_money('10.005'), Decimal('10.01'))

    def test_percentage_of_zero(self):
        self.assertEqual(percentage(5, 0), 0.0)

    def test_request_id_filter_defaults(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'message', None, None)
        RequestIDFilter().filter(record)
        self.assertEqual(record.request_id, 'N/A')


class ManagementCommandTests(TestCase):

    def setUp(self):
        cache.clear()
        residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.lot = TestDataFactory.create_lot(residence, 'A1')
        self.tenant, self.occupancy = TestDataFactory.create_tenant(self.lot, start_date=date(2024, 1, 1))

    def _call(self, *args):
        out = StringIO()
        call_command(*args, stdout=out)
        return out.getvalue()

    def test_generate_monthly_rent(self):
        output = self._call('generate_monthly_rent', '--month', '2024-03')
        self.assertIn('Created: 1', output)
        self.assertEqual(
            set(Payment.objects.filter(user=self.tenant).values_list('payment_type', flat=True)),
            {PaymentType.RENT, PaymentType.CHARGES}
        )

        output = self._call('generate_monthly_rent', '--month', '2024-03')
        self.assertIn('Already had payments: 1', output)
        self.assertEqual(Payment.objects.count(), 2)

    def test_generate_monthly_rent_dry_run(self):
        output = self._call('generate_monthly_rent', '--month', '2024-03', '--dry-run')
        self.assertIn('Would create: 1', output)
        self.assertFalse(Payment.objects.exists())

    def test_generate_monthly_rent_bad_month(self):
        with self.assertRaises(CommandError):
            self._call('generate_monthly_rent', '--month', 'March')

    def test_mark_overdue_payments(self):
        payment = TestDataFactory.create_payment(self.tenant, self.lot.residence, lot=self.lot)
        # Status is computed on save, so backdate without saving
        Payment.objects.filter(pk=payment.pk).update(due_date=timezone.localdate() - timedelta(days=3))

        output = self._call('mark_overdue_payments', '--dry-run')
        self.assertIn('1 payment(s) would be marked overdue', output)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.PENDING)

        self._call('mark_overdue_payments')
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.OVERDUE)

    def test_init_settings(self):
        output = self._call('init_settings')
        self.assertIn('System accounts ready', output)
        self.assertIn('(0 created)', self._call('init_settings'))
        self.assertTrue(SiteSettings.objects.filter(pk=1).exists())


class SchedulerJobTests(TestCase):

    def setUp(self):
        cache.clear()
        residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        TestDataFactory.create_tenant(TestDataFactory.create_lot(residence), start_date=date(2024, 1, 1))

    def test_rent_job_runs_command(self):
        run_command_job('generate_monthly_rent')
        self.assertEqual(Payment.objects.filter(payment_type=PaymentType.RENT).count(), 1)

    def test_rent_job_respects_site_settings(self):
        settings = SiteSettings.load()
        settings.auto_generate_rent = False
        settings.save()
        run_command_job('generate_monthly_rent')
        self.assertFalse(Payment.objects.exists())

    def test_failing_job_is_logged(self):
        with self.assertLogs('common.scheduler', level='ERROR'):
            run_command_job('no_such_command')
