"""
Tests for payments, receipts and monthly rent generation
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from core.constants import AuditAction, PaymentStatus, PaymentType, UserRole
from core.dto import PaymentDTO
from core.exceptions import BusinessLogicError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from audit.models import AuditLog
from payments.models import Payment
from payments.services import PaymentService, RentGenerationService


class PaymentModelTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.user = TestDataFactory.create_user()

    def test_past_due_date_is_overdue(self):
        payment = TestDataFactory.create_payment(
            self.user, self.residence, due_date=timezone.localdate() - timedelta(days=3)
        )
        self.assertEqual(payment.status, PaymentStatus.OVERDUE)
        self.assertTrue(payment.is_overdue)

    def test_future_due_date_is_pending(self):
        payment = TestDataFactory.create_payment(
            self.user, self.residence, due_date=timezone.localdate() + timedelta(days=3)
        )
        self.assertEqual(payment.status, PaymentStatus.PENDING)
        self.assertEqual(payment.remaining_amount, Decimal('500.00'))


class PaymentServiceTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.lot = TestDataFactory.create_lot(self.residence)
        self.user = TestDataFactory.create_user()
        self.payment = TestDataFactory.create_payment(self.user, self.residence, lot=self.lot)
        self.service = PaymentService()

    def test_partial_then_full_payment(self):
        payment = self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('200')))
        self.assertEqual(payment.status, PaymentStatus.PARTIAL)
        self.assertEqual(payment.paid_amount, Decimal('200.00'))

        payment = self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('300'), reference='VIR-1'))
        self.assertEqual(payment.status, PaymentStatus.PAID)
        self.assertIsNotNone(payment.paid_at)
        self.assertEqual(payment.reference, 'VIR-1')

    def test_overpayment_is_clamped(self):
        payment = self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('900')))
        self.assertEqual(payment.paid_amount, Decimal('500.00'))
        self.assertEqual(payment.status, PaymentStatus.PAID)

    def test_paying_a_settled_payment_fails(self):
        self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('500')))
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('1')))
        self.assertEqual(ctx.exception.code, 'ALREADY_PAID')

    def test_zero_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('0')))

    def test_summary_for_month(self):
        today = timezone.localdate()
        TestDataFactory.create_payment(self.user, self.residence, amount=Decimal('300'), due_date=today)
        self.service.pay(self.payment.id, PaymentDTO(amount=Decimal('500')))

        summary = self.service.summary(Payment.objects.all(), today)
        self.assertEqual(summary['month'], today.strftime('%Y-%m'))
        self.assertEqual(summary['total_expected'], Decimal('800.00'))
        self.assertEqual(summary['total_collected'], Decimal('500.00'))
        self.assertEqual(summary['total_pending'], Decimal('300.00'))
        self.assertEqual(summary['collection_rate'], 62.5)
        self.assertEqual(summary['paid_count'], 1)

    def test_summary_of_empty_month(self):
        summary = self.service.summary(Payment.objects.none(), date(2020, 1, 1))
        self.assertEqual(summary['total_expected'], Decimal('0'))
        self.assertEqual(summary['collection_rate'], 0.0)

    def test_arrears_grouped_by_payer_and_lot(self):
        today = timezone.localdate()
        TestDataFactory.create_payment(
            self.user, self.residence, lot=self.lot, amount=Decimal('400'), due_date=today - timedelta(days=40)
        )
        TestDataFactory.create_payment(
            self.user, self.residence, lot=self.lot, amount=Decimal('400'), due_date=today - timedelta(days=10)
        )
        other = TestDataFactory.create_user()
        TestDataFactory.create_payment(other, self.residence, amount=Decimal('100'), due_date=today - timedelta(days=5))

        arrears = self.service.arrears(Payment.objects.all())
        self.assertEqual(len(arrears), 2)
        self.assertEqual(arrears[0]['user_id'], self.user.id)
        self.assertEqual(arrears[0]['total_outstanding'], Decimal('800.00'))
        self.assertEqual(arrears[0]['payments_count'], 2)
        self.assertEqual(arrears[1]['total_outstanding'], Decimal('100.00'))


class RentReceiptTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.lot = TestDataFactory.create_lot(self.residence)
        self.user, self.occupancy = TestDataFactory.create_tenant(self.lot)
        self.service = PaymentService()

    def _payment(self, payment_type, amount):
        return TestDataFactory.create_payment(
            self.user, self.residence, lot=self.lot, amount=amount,
            due_date=date(2024, 3, 5), payment_type=payment_type, occupancy=self.occupancy
        )

    def test_rent_receipt_includes_paid_charges(self):
        rent = self._payment(PaymentType.RENT, Decimal('800'))
        charges = self._payment(PaymentType.CHARGES, Decimal('100'))
        self.service.pay(rent.id, PaymentDTO(amount=Decimal('800')))
        self.service.pay(charges.id, PaymentDTO(amount=Decimal('100')))
        rent.refresh_from_db()

        receipt = self.service.get_or_create_receipt(rent)
        self.assertEqual(receipt.rent_amount, Decimal('800.00'))
        self.assertEqual(receipt.charges_amount, Decimal('100.00'))
        self.assertEqual(receipt.total_amount, Decimal('900.00'))
        self.assertEqual(receipt.period_start, date(2024, 3, 1))
        self.assertEqual(receipt.period_end, date(2024, 3, 31))

        self.assertEqual(self.service.get_or_create_receipt(rent).id, receipt.id)

    def test_unpaid_payment_has_no_receipt(self):
        rent = self._payment(PaymentType.RENT, Decimal('800'))
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.get_or_create_receipt(rent)
        self.assertEqual(ctx.exception.code, 'NOT_PAID')


class RentGenerationTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.lot = TestDataFactory.create_lot(self.residence)
        self.user, self.occupancy = TestDataFactory.create_tenant(self.lot)
        self.service = RentGenerationService()

    def test_generates_rent_and_charges(self):
        result = self.service.generate_monthly_rent(month=date(2024, 3, 1))
        self.assertEqual(result['created'], [self.occupancy])
        self.assertEqual(result['due_date'], date(2024, 3, 5))

        payments = Payment.objects.filter(occupancy=self.occupancy).order_by('payment_type')
        self.assertEqual(
            [(p.payment_type, p.amount) for p in payments],
            [(PaymentType.CHARGES, Decimal('100.00')), (PaymentType.RENT, Decimal('800.00'))]
        )

    def test_second_run_skips_existing(self):
        self.service.generate_monthly_rent(month=date(2024, 3, 1))
        result = self.service.generate_monthly_rent(month=date(2024, 3, 1))
        self.assertEqual(result['created'], [])
        self.assertEqual(result['skipped'], [self.occupancy])
        self.assertEqual(Payment.objects.filter(payment_type=PaymentType.RENT).count(), 1)

    def test_dry_run_creates_nothing(self):
        result = self.service.generate_monthly_rent(month=date(2024, 3, 1), dry_run=True)
        self.assertEqual(len(result['created']), 1)
        self.assertFalse(Payment.objects.exists())

    def test_occupancy_starting_later_is_ignored(self):
        lot = TestDataFactory.create_lot(self.residence)
        TestDataFactory.create_tenant(lot, start_date=date(2024, 5, 1))
        result = self.service.generate_monthly_rent(month=date(2024, 3, 1))
        self.assertEqual(len(result['created']), 1)

    def test_residents_without_rent_are_ignored(self):
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot)
        result = self.service.generate_monthly_rent(month=date(2024, 3, 1))
        self.assertEqual(result['created'], [self.occupancy])

    def test_mark_overdue(self):
        payment = TestDataFactory.create_payment(self.user, self.residence)
        Payment.objects.filter(pk=payment.pk).update(due_date=timezone.localdate() - timedelta(days=2))

        self.assertEqual(self.service.mark_overdue(dry_run=True), 1)
        self.assertEqual(self.service.mark_overdue(), 1)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.OVERDUE)
        self.assertEqual(self.service.mark_overdue(), 0)


class PaymentAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.tenant, self.occupancy = TestDataFactory.create_tenant(self.lot)
        self.payment = TestDataFactory.create_payment(
            self.tenant, self.residence, lot=self.lot, occupancy=self.occupancy
        )
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_staff_lists_residence_payments(self):
        TestDataFactory.create_payment(
            TestDataFactory.create_user(),
            TestDataFactory.create_residence(TestDataFactory.create_agency())
        )
        response = self.client.get('/api/payments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_resident_sees_only_own_payments(self):
        TestDataFactory.create_payment(TestDataFactory.create_user(), self.residence)
        client = AuthenticatedAPIClient().authenticate_user(self.tenant)
        response = client.get('/api/payments/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.payment.id)

    def test_resident_cannot_create_payment(self):
        client = AuthenticatedAPIClient().authenticate_user(self.tenant)
        response = client.post('/api/payments/', {
            'residence': self.residence.id,
            'user': self.tenant.id,
            'amount': '10.00',
            'due_date': '2030-01-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_resident_pays_own_payment(self):
        client = AuthenticatedAPIClient().authenticate_user(self.tenant)
        response = client.post(f'/api/payments/{self.payment.id}/pay/', {
            'amount': '150.00',
            'payment_method': 'CARD',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PaymentStatus.PARTIAL)
        self.assertTrue(AuditLog.objects.filter(
            action=AuditAction.PAYMENT, entity_id=self.payment.id
        ).exists())

    def test_pay_settled_payment_returns_422(self):
        self.client.post(f'/api/payments/{self.payment.id}/pay/', {'amount': '500.00'}, format='json')
        response = self.client.post(f'/api/payments/{self.payment.id}/pay/', {'amount': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'ALREADY_PAID')

    def test_pay_negative_amount_rejected(self):
        response = self.client.post(f'/api/payments/{self.payment.id}/pay/', {'amount': '-5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_endpoint(self):
        month = timezone.localdate().strftime('%Y-%m')
        response = self.client.get(f'/api/payments/summary/?month={month}&residence={self.residence.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_expected'], Decimal('500.00'))

    def test_arrears_is_staff_only(self):
        client = AuthenticatedAPIClient().authenticate_user(self.tenant)
        self.assertEqual(client.get('/api/payments/arrears/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/payments/arrears/').status_code, status.HTTP_200_OK)

    def test_receipt_pdf(self):
        response = self.client.get(f'/api/payments/{self.payment.id}/receipt/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

        self.client.post(f'/api/payments/{self.payment.id}/pay/', {'amount': '500.00'}, format='json')
        response = self.client.get(f'/api/payments/{self.payment.id}/receipt/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')

    def test_csv_export(self):
        response = self.client.get('/api/payments/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(len(lines), 2)

    def test_other_agency_staff_cannot_see_payment(self):
        other_owner = TestDataFactory.create_user(role=UserRole.OWNER, agency=TestDataFactory.create_agency())
        client = AuthenticatedAPIClient().authenticate_user(other_owner)
        response = client.get(f'/api/payments/{self.payment.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
