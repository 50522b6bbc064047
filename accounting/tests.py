"""
Tests for double-entry accounting, budgets, regularization and bank reconciliation
"""
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase
from rest_framework import status

from core.constants import (
    EntryStatus, BudgetStatus, RegularizationStatus, JournalType, PaymentType, UserRole
)
from core.dto import PaymentDTO
from core.exceptions import (
    BusinessLogicError, ConflictError, InvalidTransitionError, ValidationError
)
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from accounting import reports
from accounting.models import (
    AccountingAccount, AccountingEntry, AccountingJournal, AccountingLine,
    CoproBudget, BudgetLine, BankAccount, BankTransaction
)
from accounting.reconciliation import ReconciliationService
from accounting.services import (
    ensure_system_accounts, EntryService, BudgetService, RegularizationService
)
from payments.services import PaymentService


class AccountingTestMixin:
    """Agency, residence, journal and the shared chart of accounts"""

    def setUp(self):
        ensure_system_accounts()
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.residence = TestDataFactory.create_residence(self.agency)
        self.journal = AccountingJournal.objects.create(
            agency=self.agency, code='BQ', name='Bank', journal_type=JournalType.BANK
        )
        self.bank = AccountingAccount.objects.get(agency=None, code='512')
        self.water = AccountingAccount.objects.get(agency=None, code='601')
        self.works = AccountingAccount.objects.get(agency=None, code='615')
        self.contributions = AccountingAccount.objects.get(agency=None, code='701')

    def _entry(self, lines, entry_date=date(2024, 3, 10), post=False, label='Entry'):
        entry = EntryService().create_entry(
            residence=self.residence,
            journal=self.journal,
            entry_date=entry_date,
            label=label,
            lines=lines,
            user=self.owner,
        )
        if post:
            entry = EntryService().post_entry(entry)
        return entry

    def _expense(self, account, amount, **kwargs):
        return self._entry([
            {'account': account, 'debit': Decimal(amount)},
            {'account': self.bank, 'credit': Decimal(amount)},
        ], **kwargs)


class SystemAccountsTests(TestCase):

    def test_chart_is_created_once(self):
        created = ensure_system_accounts()
        self.assertGreater(created, 0)
        self.assertEqual(ensure_system_accounts(), 0)
        self.assertTrue(AccountingAccount.objects.filter(code='512', is_system=True).exists())


class EntryServiceTests(AccountingTestMixin, TestCase):

    def test_post_balanced_entry(self):
        entry = self._expense(self.water, '120.00')
        self.assertEqual(entry.status, EntryStatus.DRAFT)

        entry = EntryService().post_entry(entry)
        self.assertEqual(entry.status, EntryStatus.POSTED)
        self.assertIsNotNone(entry.posted_at)

    def test_unbalanced_entry_cannot_be_posted(self):
        entry = self._entry([
            {'account': self.water, 'debit': Decimal('120.00')},
            {'account': self.bank, 'credit': Decimal('100.00')},
        ])
        with self.assertRaises(ValidationError) as ctx:
            EntryService().post_entry(entry)
        self.assertEqual(ctx.exception.code, 'ENTRY_UNBALANCED')

    def test_single_line_entry_cannot_be_posted(self):
        entry = self._entry([{'account': self.water, 'debit': Decimal('10.00')}])
        with self.assertRaises(ValidationError) as ctx:
            EntryService().post_entry(entry)
        self.assertEqual(ctx.exception.code, 'ENTRY_TOO_FEW_LINES')

    def test_posting_twice_fails(self):
        entry = self._expense(self.water, '50.00', post=True)
        with self.assertRaises(InvalidTransitionError):
            EntryService().post_entry(entry)

    def test_posted_entry_is_immutable(self):
        entry = self._expense(self.water, '50.00', post=True)
        entry = AccountingEntry.objects.get(pk=entry.pk)

        entry.label = 'Changed'
        with self.assertRaises(BusinessLogicError):
            entry.save()
        with self.assertRaises(BusinessLogicError):
            entry.delete()
        with self.assertRaises(BusinessLogicError):
            AccountingLine.objects.create(entry=entry, account=self.water, debit=Decimal('1.00'))
        with self.assertRaises(BusinessLogicError):
            entry.lines.first().delete()

    def test_line_needs_exactly_one_side(self):
        entry = self._entry([])
        with self.assertRaises(DjangoValidationError):
            AccountingLine.objects.create(
                entry=entry, account=self.water, debit=Decimal('5.00'), credit=Decimal('5.00')
            )
        with self.assertRaises(DjangoValidationError):
            AccountingLine.objects.create(entry=entry, account=self.water)

    def test_replace_lines_of_draft(self):
        entry = self._expense(self.water, '10.00')
        EntryService().replace_lines(entry, [
            {'account': self.works, 'debit': Decimal('30.00')},
            {'account': self.bank, 'credit': Decimal('30.00')},
        ])
        self.assertEqual(entry.totals(), (Decimal('30.00'), Decimal('30.00')))


class ReportTests(AccountingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self._expense(self.water, '100.00', entry_date=date(2024, 1, 15), post=True)
        self._expense(self.works, '300.00', entry_date=date(2024, 2, 10), post=True)
        self._entry([
            {'account': self.bank, 'debit': Decimal('1000.00')},
            {'account': self.contributions, 'credit': Decimal('1000.00')},
        ], entry_date=date(2024, 1, 5), post=True)
        # Drafts never reach the reports
        self._expense(self.water, '999.00', entry_date=date(2024, 1, 20))

    def test_trial_balance(self):
        result = reports.trial_balance(self.residence)
        self.assertTrue(result['is_balanced'])
        self.assertEqual(result['total_debit'], Decimal('1400.00'))
        bank = next(a for a in result['accounts'] if a['code'] == '512')
        self.assertEqual(bank['balance'], Decimal('600.00'))

    def test_general_ledger_running_balance(self):
        ledger = reports.general_ledger(self.residence, self.bank)
        self.assertEqual([line['balance'] for line in ledger['lines']],
                         [Decimal('1000.00'), Decimal('900.00'), Decimal('600.00')])
        self.assertEqual(ledger['closing_balance'], Decimal('600.00'))

    def test_general_ledger_opening_balance(self):
        ledger = reports.general_ledger(self.residence, self.bank, start=date(2024, 2, 1))
        self.assertEqual(ledger['opening_balance'], Decimal('900.00'))
        self.assertEqual(len(ledger['lines']), 1)

    def test_cash_flow(self):
        months = reports.cash_flow(self.residence, 2024)
        self.assertEqual(len(months), 12)
        self.assertEqual(months[0]['income'], Decimal('1000.00'))
        self.assertEqual(months[0]['expenses'], Decimal('100.00'))
        self.assertEqual(months[0]['net'], Decimal('900.00'))
        self.assertEqual(months[1]['expenses'], Decimal('300.00'))
        self.assertEqual(months[11]['net'], Decimal('0'))

    def test_expense_breakdown(self):
        result = reports.expense_breakdown(self.residence)
        self.assertEqual(result['total'], Decimal('400.00'))
        self.assertEqual([item['code'] for item in result['items']], ['615', '601'])
        self.assertEqual(result['items'][0]['percentage'], 75.0)


class BudgetServiceTests(AccountingTestMixin, TestCase):

    def _budget(self, year):
        budget = CoproBudget.objects.create(residence=self.residence, fiscal_year=year)
        BudgetLine.objects.create(
            budget=budget, category='Water', label='Water',
            budgeted_amount=Decimal('1000'), actual_amount=Decimal('1200')
        )
        BudgetLine.objects.create(
            budget=budget, category='Insurance', label='Insurance',
            budgeted_amount=Decimal('1000'), actual_amount=Decimal('500')
        )
        return budget

    def test_vote_and_close(self):
        budget = BudgetService().vote(self._budget(2024))
        self.assertEqual(budget.status, BudgetStatus.VOTED)
        self.assertIsNotNone(budget.voted_at)
        budget = BudgetService().close(budget)
        self.assertEqual(budget.status, BudgetStatus.CLOSED)

    def test_only_one_voted_budget_per_residence(self):
        BudgetService().vote(self._budget(2024))
        with self.assertRaises(ConflictError) as ctx:
            BudgetService().vote(self._budget(2025))
        self.assertEqual(ctx.exception.code, 'BUDGET_ALREADY_VOTED')

    def test_draft_budget_cannot_be_closed(self):
        with self.assertRaises(InvalidTransitionError):
            BudgetService().close(self._budget(2024))

    def test_usage(self):
        usage = BudgetService().usage(self._budget(2024))
        self.assertEqual(usage['total_budgeted'], Decimal('2000.00'))
        self.assertEqual(usage['total_actual'], Decimal('1700.00'))
        self.assertEqual(usage['percent_used'], 85.0)
        self.assertFalse(usage['is_over'])
        water = next(line for line in usage['lines'] if line['category'] == 'Water')
        self.assertTrue(water['is_over'])
        self.assertEqual(water['remaining'], Decimal('-200.00'))


class RegularizationServiceTests(AccountingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.lot = TestDataFactory.create_lot(self.residence)
        self.tenant, self.occupancy = TestDataFactory.create_tenant(self.lot)
        for month in (1, 2, 3):
            payment = TestDataFactory.create_payment(
                self.tenant, self.residence, lot=self.lot, occupancy=self.occupancy,
                amount=Decimal('100'), due_date=date(2024, month, 5), payment_type=PaymentType.CHARGES
            )
            PaymentService().pay(payment.id, PaymentDTO(amount=Decimal('100')))

    def test_provisions_default_to_paid_charges(self):
        regularization = RegularizationService().compute(
            self.occupancy, date(2024, 1, 1), date(2024, 12, 31), actual_charges=Decimal('360')
        )
        self.assertEqual(regularization.provisions_total, Decimal('300.00'))
        self.assertEqual(regularization.balance, Decimal('-60.00'))

    def test_refund_when_provisions_exceed_actual(self):
        regularization = RegularizationService().compute(
            self.occupancy, date(2024, 1, 1), date(2024, 12, 31),
            actual_charges=Decimal('250'), provisions_total=Decimal('300')
        )
        self.assertEqual(regularization.balance, Decimal('50.00'))

    def test_inverted_period_rejected(self):
        with self.assertRaises(ValidationError):
            RegularizationService().compute(
                self.occupancy, date(2024, 12, 31), date(2024, 1, 1), actual_charges=Decimal('1')
            )

    def test_only_tenant_occupancies(self):
        resident = TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot)
        with self.assertRaises(DjangoValidationError):
            RegularizationService().compute(
                resident, date(2024, 1, 1), date(2024, 12, 31), actual_charges=Decimal('1')
            )

    def test_sent_then_paid(self):
        service = RegularizationService()
        regularization = service.compute(
            self.occupancy, date(2024, 1, 1), date(2024, 12, 31), actual_charges=Decimal('360')
        )
        regularization = service.mark_sent(regularization)
        self.assertEqual(regularization.status, RegularizationStatus.SENT)
        with self.assertRaises(InvalidTransitionError):
            service.mark_sent(regularization)

        regularization = service.mark_paid(regularization)
        self.assertEqual(regularization.status, RegularizationStatus.PAID)
        with self.assertRaises(InvalidTransitionError):
            service.mark_paid(regularization)


class ReconciliationServiceTests(AccountingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.bank_account = BankAccount.objects.create(
            agency=self.agency, residence=self.residence,
            bank_name='Bank', account_name='Main', iban='fr76 3000 6000 0112 3456 7890 189'
        )
        self.service = ReconciliationService()

    def _import(self, rows):
        return self.service.import_transactions(self.bank_account, rows)

    def test_iban_is_normalized(self):
        self.assertEqual(self.bank_account.iban, 'FR7630006000011234567890189')

    def test_import_skips_known_external_ids(self):
        rows = [
            {'transaction_date': date(2024, 3, 10), 'amount': Decimal('-120.00'), 'label': 'Water', 'external_id': 'T1'},
            {'transaction_date': date(2024, 3, 11), 'amount': Decimal('500.00'), 'label': 'Call', 'external_id': 'T2'},
            {'transaction_date': date(2024, 3, 11), 'amount': Decimal('500.00'), 'label': 'Dup', 'external_id': 'T2'},
            {'transaction_date': date(2024, 3, 12), 'amount': Decimal('-5.00'), 'label': 'Fees'},
        ]
        result = self._import(rows)
        self.assertEqual(result['created'], 3)
        self.assertEqual(result['skipped'], 1)

        result = self._import(rows[:2])
        self.assertEqual(result['created'], 0)
        self.assertEqual(result['skipped'], 2)

        self.bank_account.refresh_from_db()
        self.assertEqual(self.bank_account.balance, Decimal('375.00'))
        self.assertIsNotNone(self.bank_account.last_sync_at)

    def test_suggest_and_reconcile(self):
        transaction = self._import([
            {'transaction_date': date(2024, 3, 12), 'amount': Decimal('-120.00'), 'label': 'Water'},
        ])['transactions'][0]
        near = self._expense(self.water, '120.00', entry_date=date(2024, 3, 10), post=True)
        far = self._expense(self.water, '120.00', entry_date=date(2024, 3, 6), post=True)
        self._expense(self.water, '120.00', entry_date=date(2024, 1, 1), post=True)
        self._expense(self.water, '99.00', entry_date=date(2024, 3, 12), post=True)

        self.assertEqual([e.id for e in self.service.suggest_matches(transaction)], [near.id, far.id])

        transaction = self.service.reconcile(transaction, near)
        self.assertTrue(transaction.is_reconciled)
        self.assertEqual(transaction.reconciled_with, near)
        self.assertEqual([e.id for e in self.service.suggest_matches(transaction)], [far.id])

        with self.assertRaises(ConflictError):
            self.service.reconcile(transaction, far)

        transaction = self.service.unreconcile(transaction)
        self.assertFalse(transaction.is_reconciled)
        self.assertIsNone(transaction.reconciled_with)

    def test_entry_matches_only_one_transaction(self):
        first, second = self._import([
            {'transaction_date': date(2024, 3, 12), 'amount': Decimal('-120.00'), 'label': 'Water'},
            {'transaction_date': date(2024, 3, 13), 'amount': Decimal('-120.00'), 'label': 'Water again'},
        ])['transactions']
        entry = self._expense(self.water, '120.00', entry_date=date(2024, 3, 12), post=True)
        self.service.reconcile(first, entry)

        with self.assertRaises(ConflictError) as ctx:
            self.service.reconcile(second, entry)
        self.assertEqual(ctx.exception.code, 'ENTRY_ALREADY_RECONCILED')
        second.refresh_from_db()
        self.assertFalse(second.is_reconciled)

    def test_reconcile_rejects_mismatches(self):
        transaction = self._import([
            {'transaction_date': date(2024, 3, 12), 'amount': Decimal('-120.00'), 'label': 'Water'},
        ])['transactions'][0]

        draft = self._expense(self.water, '120.00')
        with self.assertRaises(BusinessLogicError) as ctx:
            self.service.reconcile(transaction, draft)
        self.assertEqual(ctx.exception.code, 'ENTRY_NOT_POSTED')

        wrong_amount = self._expense(self.water, '80.00', post=True)
        with self.assertRaises(ValidationError) as ctx:
            self.service.reconcile(transaction, wrong_amount)
        self.assertEqual(ctx.exception.code, 'AMOUNT_MISMATCH')

    def test_unreconcile_requires_reconciled(self):
        transaction = BankTransaction.objects.create(
            bank_account=self.bank_account, transaction_date=date(2024, 3, 1),
            amount=Decimal('10.00'), label='Misc'
        )
        with self.assertRaises(BusinessLogicError):
            self.service.unreconcile(transaction)


class AccountingAPITests(AccountingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def _create_entry(self, credit='150.00'):
        return self.client.post('/api/accounting/entries/', {
            'residence': self.residence.id,
            'journal': self.journal.id,
            'date': '2024-03-10',
            'label': 'Water bill',
            'lines': [
                {'account': self.water.id, 'debit': '150.00', 'credit': '0'},
                {'account': self.bank.id, 'debit': '0', 'credit': credit},
            ],
        }, format='json')

    def test_create_and_post_entry(self):
        response = self._create_entry()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['lines']), 2)
        entry_id = response.data['id']

        response = self.client.post(f'/api/accounting/entries/{entry_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], EntryStatus.POSTED)

        response = self.client.patch(f'/api/accounting/entries/{entry_id}/', {'label': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'ENTRY_POSTED')

    def test_post_unbalanced_entry_returns_400(self):
        entry_id = self._create_entry(credit='100.00').data['id']
        response = self.client.post(f'/api/accounting/entries/{entry_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ENTRY_UNBALANCED')

    def test_trial_balance_requires_residence(self):
        response = self.client.get('/api/accounting/reports/trial-balance/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/accounting/reports/trial-balance/?residence={self.residence.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_balanced'])

    def test_council_member_reads_but_cannot_write(self):
        member = TestDataFactory.create_user(role=UserRole.CS, agency=self.agency)
        TestDataFactory.grant_access(member, self.residence)
        client = AuthenticatedAPIClient().authenticate_user(member)

        self.assertEqual(client.get('/api/accounting/entries/').status_code, status.HTTP_200_OK)
        response = client.post('/api/accounting/journals/', {'code': 'HA', 'name': 'Purchases'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_resident_has_no_access(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        self.assertEqual(client.get('/api/accounting/entries/').status_code, status.HTTP_403_FORBIDDEN)

    def test_bank_import_endpoint(self):
        bank_account = BankAccount.objects.create(agency=self.agency, bank_name='Bank', account_name='Main')
        payload = {'transactions': [
            {'transaction_date': '2024-03-01', 'amount': '-42.00', 'label': 'Fees', 'external_id': 'X1'},
        ]}
        response = self.client.post(f'/api/accounting/bank-accounts/{bank_account.id}/import/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 1)

        response = self.client.post(f'/api/accounting/bank-accounts/{bank_account.id}/import/', payload, format='json')
        self.assertEqual(response.data['skipped'], 1)
