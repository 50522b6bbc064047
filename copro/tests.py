"""
Tests for share distribution, fund calls and the works fund
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from core.constants import (
    BudgetStatus, CallType, CallStatus, CallItemStatus, PaymentType, UserRole,
    GENERAL_DISTRIBUTION_KEY
)
from core.dto import CoproCallDTO, PaymentDTO
from core.exceptions import BusinessLogicError, InvalidTransitionError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from accounting.models import CoproBudget, BudgetLine
from copro.models import DistributionKey, LotShare, CoproCallItem, WorksFund
from copro.services import (
    distribute, resolve_shares, CoproCallService, WorksFundService
)
from payments.models import Payment
from payments.services import PaymentService


class DistributeTests(TestCase):

    def test_parts_add_up_to_total(self):
        parts = distribute(Decimal('100.00'), {1: 1, 2: 1, 3: 1})
        self.assertEqual(sum(parts.values()), Decimal('100.00'))
        self.assertEqual(parts, {1: Decimal('33.34'), 2: Decimal('33.33'), 3: Decimal('33.33')})

    def test_largest_remainder_wins_the_cent(self):
        parts = distribute(Decimal('10.00'), {7: 1, 8: 2})
        # 333.33 and 666.66 cents: lot 8 has the larger remainder
        self.assertEqual(parts, {7: Decimal('3.33'), 8: Decimal('6.67')})

    def test_proportional_to_tantiemes(self):
        parts = distribute(Decimal('1000'), {1: 250, 2: 750})
        self.assertEqual(parts, {1: Decimal('250.00'), 2: Decimal('750.00')})

    def test_zero_share_lots_get_nothing(self):
        parts = distribute(Decimal('50'), {1: 0, 2: 3})
        self.assertEqual(parts, {2: Decimal('50.00')})

    def test_zero_total(self):
        self.assertEqual(distribute(Decimal('0'), {1: 1, 2: 1}), {1: Decimal('0.00'), 2: Decimal('0.00')})

    def test_no_shares_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            distribute(Decimal('10'), {1: 0})
        self.assertEqual(ctx.exception.code, 'NO_SHARES')

    def test_negative_total_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            distribute(Decimal('-1'), {1: 1})
        self.assertEqual(ctx.exception.code, 'NEGATIVE_AMOUNT')


class ResolveSharesTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.lot_a = TestDataFactory.create_lot(self.residence, 'A1', tantiemes=600)
        self.lot_b = TestDataFactory.create_lot(self.residence, 'B1', tantiemes=400)

    def test_no_key_uses_tantiemes(self):
        self.assertEqual(resolve_shares(self.residence), {self.lot_a.id: 600, self.lot_b.id: 400})

    def test_key_uses_lot_shares(self):
        key = DistributionKey.objects.create(residence=self.residence, code='elevator', name='Elevator')
        self.assertEqual(key.code, 'ELEVATOR')
        LotShare.objects.create(key=key, lot=self.lot_b, shares=100)
        self.assertEqual(resolve_shares(self.residence, key), {self.lot_b.id: 100})

    def test_empty_general_key_falls_back_to_tantiemes(self):
        key = DistributionKey.objects.create(residence=self.residence, code=GENERAL_DISTRIBUTION_KEY, name='General')
        self.assertEqual(resolve_shares(self.residence, key), {self.lot_a.id: 600, self.lot_b.id: 400})

    def test_empty_specific_key_has_no_shares(self):
        key = DistributionKey.objects.create(residence=self.residence, code='HEATING', name='Heating')
        self.assertEqual(resolve_shares(self.residence, key), {})


class CoproCallServiceTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.co_owner_a = TestDataFactory.create_user()
        self.co_owner_b = TestDataFactory.create_user()
        self.lot_a = TestDataFactory.create_lot(self.residence, 'A1', tantiemes=600, owner=self.co_owner_a)
        self.lot_b = TestDataFactory.create_lot(self.residence, 'B1', tantiemes=400, owner=self.co_owner_b)
        self.lot_c = TestDataFactory.create_lot(self.residence, 'C1', tantiemes=0)
        self.service = CoproCallService()

    def _call(self, total='1000.00', call_type=CallType.EXCEPTIONAL, quarter=None, due_date=date(2024, 4, 1)):
        call = self.service.create_call(self.residence, CoproCallDTO(
            residence_id=self.residence.id,
            label='Roof repair',
            call_type=call_type,
            quarter=quarter,
            due_date=due_date,
            total_amount=Decimal(total),
        ), self.owner)
        return self.service.distribute_call(call)

    def _voted_budget(self, total='1000.01'):
        budget = CoproBudget.objects.create(residence=self.residence, fiscal_year=2024)
        BudgetLine.objects.create(budget=budget, category='General', label='All', budgeted_amount=Decimal(total))
        budget.status = BudgetStatus.VOTED
        budget.save()
        return budget

    def test_call_numbers(self):
        first = self._call(call_type=CallType.QUARTERLY, quarter=1)
        second = self._call(call_type=CallType.QUARTERLY, quarter=1)
        self.assertEqual(first.call_number, 'AF-2024-01')
        self.assertEqual(second.call_number, 'AF-2024-01-2')
        self.assertEqual(self._call().call_number, 'AF-2024-X01')
        self.assertEqual(self._call().call_number, 'AF-2024-X02')

    def test_quarter_required(self):
        with self.assertRaises(ValidationError):
            self._call(call_type=CallType.QUARTERLY)

    def test_distribution_skips_lots_without_shares(self):
        call = self._call()
        items = {item.lot_id: item for item in call.items.all()}
        self.assertEqual(set(items), {self.lot_a.id, self.lot_b.id})
        self.assertEqual(items[self.lot_a.id].amount, Decimal('600.00'))
        self.assertEqual(items[self.lot_a.id].owner, self.co_owner_a)

    def test_from_budget_requires_voted_budget(self):
        budget = CoproBudget.objects.create(residence=self.residence, fiscal_year=2024)
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.from_budget(budget, 1, date(2024, 1, 1))
        self.assertEqual(ctx.exception.code, 'BUDGET_NOT_VOTED')

    def test_from_budget_fourth_quarter_absorbs_rounding(self):
        budget = self._voted_budget()
        q1 = self.service.from_budget(budget, 1, date(2024, 1, 1))
        q4 = self.service.from_budget(budget, 4, date(2024, 10, 1))
        self.assertEqual(q1.total_amount, Decimal('250.00'))
        self.assertEqual(q4.total_amount, Decimal('250.01'))
        self.assertEqual(q1.budget, budget)
        self.assertEqual(q1.items.count(), 2)

    def test_send_creates_payments(self):
        call = self.service.send(self._call())
        self.assertEqual(call.status, CallStatus.SENT)
        payments = Payment.objects.filter(copro_call_item__call=call)
        self.assertEqual(payments.count(), 2)
        self.assertTrue(all(p.payment_type == PaymentType.COPRO_CALL for p in payments))
        self.assertEqual(payments.get(user=self.co_owner_b).amount, Decimal('400.00'))

        with self.assertRaises(InvalidTransitionError):
            self.service.send(call)

    def test_sent_call_cannot_be_redistributed(self):
        call = self.service.send(self._call())
        with self.assertRaises(InvalidTransitionError):
            self.service.distribute_call(call)

    def test_paying_the_payment_updates_the_call(self):
        call = self.service.send(self._call())
        payment_a = Payment.objects.get(copro_call_item__call=call, user=self.co_owner_a)
        payment_b = Payment.objects.get(copro_call_item__call=call, user=self.co_owner_b)

        PaymentService().pay(payment_a.id, PaymentDTO(amount=Decimal('600')))
        call.refresh_from_db()
        self.assertEqual(call.status, CallStatus.PARTIALLY_PAID)
        self.assertEqual(CoproCallItem.objects.get(pk=payment_a.copro_call_item_id).status, CallItemStatus.PAID)

        PaymentService().pay(payment_b.id, PaymentDTO(amount=Decimal('100')))
        PaymentService().pay(payment_b.id, PaymentDTO(amount=Decimal('300')))
        call.refresh_from_db()
        self.assertEqual(call.status, CallStatus.PAID)
        self.assertEqual(call.paid_amount, Decimal('1000.00'))

    def test_record_payment_syncs_payment(self):
        call = self.service.send(self._call())
        item = call.items.get(lot=self.lot_b)
        applied = self.service.record_payment(item, Decimal('500'), sync_payment=True)
        self.assertEqual(applied, Decimal('400.00'))

        payment = Payment.objects.get(copro_call_item=item)
        self.assertEqual(payment.paid_amount, Decimal('400.00'))
        self.assertEqual(self.service.record_payment(item, Decimal('1')), Decimal('0'))

    def test_record_payment_on_draft_rejected(self):
        item = self._call().items.first()
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.record_payment(item, Decimal('10'))
        self.assertEqual(ctx.exception.code, 'CALL_NOT_SENT')

    def test_cancel(self):
        call = self.service.send(self._call())
        call = self.service.cancel(call)
        self.assertEqual(call.status, CallStatus.CANCELLED)
        self.assertFalse(Payment.objects.filter(copro_call_item__call=call).exists())

    def test_cancel_with_payments_rejected(self):
        call = self.service.send(self._call())
        self.service.record_payment(call.items.first(), Decimal('10'))
        call.refresh_from_db()
        self.assertEqual(call.status, CallStatus.PARTIALLY_PAID)
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.cancel(call)
        self.assertEqual(ctx.exception.code, 'CALL_HAS_PAYMENTS')

    def test_paid_call_cannot_be_cancelled(self):
        call = self.service.send(self._call())
        for item in call.items.all():
            self.service.record_payment(item, item.amount)
        call.refresh_from_db()
        self.assertEqual(call.status, CallStatus.PAID)
        with self.assertRaises(InvalidTransitionError):
            self.service.cancel(call)

    def test_lot_without_owner_does_not_block_the_call(self):
        TestDataFactory.create_lot(self.residence, 'D1', tantiemes=1000)
        call = self.service.send(self._call(total='2000.00'))
        self.assertEqual(call.items.count(), 3)
        self.assertEqual(Payment.objects.filter(copro_call_item__call=call).count(), 2)

        for payment in Payment.objects.filter(copro_call_item__call=call):
            PaymentService().pay(payment.id, PaymentDTO(amount=payment.amount))
        call.refresh_from_db()
        self.assertEqual(call.status, CallStatus.PAID)
        self.assertEqual(call.items.get(owner__isnull=True).status, CallItemStatus.PENDING)

    def test_works_fund_call_feeds_the_fund(self):
        call = self.service.send(self._call(total='100.00', call_type=CallType.WORKS_FUND))
        payment = Payment.objects.get(copro_call_item__call=call, user=self.co_owner_a)
        self.assertEqual(payment.payment_type, PaymentType.WORKS_FUND)

        PaymentService().pay(payment.id, PaymentDTO(amount=Decimal('60')))
        fund = WorksFund.objects.get(residence=self.residence)
        self.assertEqual(fund.balance, Decimal('60.00'))
        self.assertEqual(fund.contributions.count(), 1)

    def test_collection_status(self):
        call = self.service.send(self._call())
        self.service.record_payment(call.items.get(lot=self.lot_a), Decimal('600'))
        result = self.service.collection_status(call)
        self.assertEqual(result['paid'], Decimal('600.00'))
        self.assertEqual(result['outstanding'], Decimal('400.00'))
        self.assertEqual(result['paid_ratio'], 0.6)
        self.assertEqual([item['lot_number'] for item in result['unpaid_items']], ['B1'])


class WorksFundServiceTests(TestCase):

    def setUp(self):
        self.residence = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.budget = CoproBudget.objects.create(residence=self.residence, fiscal_year=2024)
        BudgetLine.objects.create(budget=self.budget, category='General', label='All', budgeted_amount=Decimal('10000'))
        self.service = WorksFundService()

    def test_compliance(self):
        fund = self.service.contribute(self.residence, Decimal('300'), date(2024, 3, 1))
        self.service.contribute(self.residence, Decimal('100'), date(2023, 3, 1))

        result = self.service.compliance(fund, self.budget)
        self.assertEqual(result['required_contribution'], Decimal('500.00'))
        self.assertEqual(result['contributed'], Decimal('300.00'))
        self.assertEqual(result['missing'], Decimal('200.00'))
        self.assertFalse(result['is_compliant'])

        self.service.contribute(self.residence, Decimal('200'), date(2024, 6, 1))
        self.assertTrue(self.service.compliance(fund, self.budget)['is_compliant'])

    def test_balance_accumulates(self):
        self.service.contribute(self.residence, Decimal('10'), date(2024, 1, 1))
        fund = self.service.contribute(self.residence, Decimal('15'), date(2024, 2, 1))
        self.assertEqual(fund.balance, Decimal('25.00'))
        self.assertEqual(fund.last_contribution_date, date(2024, 2, 1))


class CoproAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.co_owner = TestDataFactory.create_user()
        self.lot_a = TestDataFactory.create_lot(self.residence, 'A1', tantiemes=500, owner=self.co_owner)
        self.lot_b = TestDataFactory.create_lot(self.residence, 'B1', tantiemes=500)
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def _create_call(self):
        return self.client.post('/api/copro/calls/', {
            'residence': self.residence.id,
            'label': 'Q1 2024',
            'call_type': CallType.QUARTERLY,
            'quarter': 1,
            'due_date': '2024-01-15',
            'total_amount': '2000.00',
        }, format='json')

    def test_call_lifecycle(self):
        response = self._create_call()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['call_number'], 'AF-2024-01')
        call_id = response.data['id']

        response = self.client.post(f'/api/copro/calls/{call_id}/distribute/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)

        response = self.client.post(f'/api/copro/calls/{call_id}/send/')
        self.assertEqual(response.data['status'], CallStatus.SENT)

        item_id = next(item['id'] for item in response.data['items'] if item['lot'] == self.lot_a.id)
        response = self.client.post(f'/api/copro/call-items/{item_id}/record-payment/', {'amount': '1000.00'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['item']['status'], CallItemStatus.PAID)

        response = self.client.get(f'/api/copro/calls/{call_id}/collection-status/')
        self.assertEqual(response.data['outstanding'], Decimal('1000.00'))

    def test_send_undistributed_call_returns_422(self):
        call_id = self._create_call().data['id']
        response = self.client.post(f'/api/copro/calls/{call_id}/send/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'CALL_NOT_DISTRIBUTED')

    def test_quarterly_call_without_quarter_rejected(self):
        response = self.client.post('/api/copro/calls/', {
            'residence': self.residence.id,
            'label': 'Missing quarter',
            'call_type': CallType.QUARTERLY,
            'due_date': '2024-01-15',
            'total_amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_notice_pdf(self):
        call_id = self._create_call().data['id']
        self.client.post(f'/api/copro/calls/{call_id}/distribute/')
        response = self.client.get(f'/api/copro/calls/{call_id}/notice/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')

    def test_set_key_shares(self):
        response = self.client.post('/api/copro/keys/', {
            'residence': self.residence.id, 'code': 'elevator', 'name': 'Elevator'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        key_id = response.data['id']

        response = self.client.post(f'/api/copro/keys/{key_id}/shares/', {
            'shares': [{'lot': self.lot_a.id, 'shares': 30}, {'lot': self.lot_b.id, 'shares': 70}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(f'/api/copro/keys/{key_id}/shares/')
        self.assertEqual(response.data['total_shares'], 100)

    def test_council_member_cannot_create_calls(self):
        member = TestDataFactory.create_user(role=UserRole.CS, agency=self.owner.agency)
        TestDataFactory.grant_access(member, self.residence)
        client = AuthenticatedAPIClient().authenticate_user(member)
        self.assertEqual(client.get('/api/copro/calls/').status_code, status.HTTP_200_OK)
        response = client.post('/api/copro/calls/', {'residence': self.residence.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
