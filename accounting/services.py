"""
Accounting services - entries and posting, budgets, charges regularization.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from core.constants import (
    AccountType, EntryStatus, BudgetStatus, RegularizationStatus, PaymentType
)
from core.exceptions import ValidationError, ConflictError, InvalidTransitionError
from core.services import BaseService
from core.validators import DateRangeValidator
from .models import (
    AccountingAccount, AccountingEntry, AccountingLine, CoproBudget, ChargesRegularization
)

ZERO = Decimal('0')

SYSTEM_ACCOUNTS = [
    ('102', 'Works fund', AccountType.EQUITY),
    ('401', 'Suppliers', AccountType.LIABILITY),
    ('411', 'Tenants', AccountType.ASSET),
    ('450', 'Co-owners', AccountType.ASSET),
    ('512', 'Bank', AccountType.ASSET),
    ('601', 'Water', AccountType.EXPENSE),
    ('602', 'Electricity', AccountType.EXPENSE),
    ('604', 'Supplies', AccountType.EXPENSE),
    ('614', 'Maintenance', AccountType.EXPENSE),
    ('615', 'Works', AccountType.EXPENSE),
    ('616', 'Insurance', AccountType.EXPENSE),
    ('621', 'Management fees', AccountType.EXPENSE),
    ('701', 'Co-owner contributions', AccountType.INCOME),
    ('706', 'Rents', AccountType.INCOME),
    ('708', 'Recovered charges', AccountType.INCOME),
]


def ensure_system_accounts() -> int:
    """Create the shared chart of accounts. Returns the number of accounts created."""
    created = 0
    for code, name, account_type in SYSTEM_ACCOUNTS:
        _, was_created = AccountingAccount.objects.get_or_create(
            agency=None,
            code=code,
            defaults={'name': name, 'account_type': account_type, 'is_system': True}
        )
        created += int(was_created)
    return created


class EntryService(BaseService):
    """Journal entries and posting"""

    @transaction.atomic
    def create_entry(self, residence, journal, entry_date: date, label: str, lines: List[dict],
                     reference: str = '', user=None) -> AccountingEntry:
        """
        Create a DRAFT entry with its lines.

        lines: [{'account': AccountingAccount, 'debit': Decimal, 'credit': Decimal, 'label': str, 'lot': Lot}]
        """
        entry = AccountingEntry.objects.create(
            residence=residence,
            journal=journal,
            date=entry_date,
            label=label,
            reference=reference,
            created_by=user,
        )
        for line in lines:
            AccountingLine.objects.create(entry=entry, **line)
        self.log_info("Accounting entry created", entry_id=entry.id, lines=len(lines))
        return entry

    @transaction.atomic
    def replace_lines(self, entry: AccountingEntry, lines: List[dict]) -> AccountingEntry:
        """Replace every line of a DRAFT entry"""
        entry = AccountingEntry.objects.select_for_update().get(pk=entry.pk)
        if entry.is_posted:
            raise InvalidTransitionError("Posted entries cannot be modified", code="ENTRY_POSTED")
        entry.lines.all().delete()
        for line in lines:
            AccountingLine.objects.create(entry=entry, **line)
        return entry

    @transaction.atomic
    def post_entry(self, entry: AccountingEntry) -> AccountingEntry:
        """
        DRAFT -> POSTED.

        Raises:
            InvalidTransitionError: entry already posted
            ValidationError: fewer than two lines, or debit != credit
        """
        entry = AccountingEntry.objects.select_for_update().get(pk=entry.pk)
        if entry.is_posted:
            raise InvalidTransitionError("Entry is already posted", code="ENTRY_POSTED")

        line_count = entry.lines.count()
        if line_count < 2:
            raise ValidationError(
                "An entry needs at least two lines to be posted",
                code="ENTRY_TOO_FEW_LINES",
                details={'lines': line_count}
            )
        debit, credit = entry.totals()
        if debit != credit:
            raise ValidationError(
                "Entry is not balanced",
                code="ENTRY_UNBALANCED",
                details={'total_debit': str(debit), 'total_credit': str(credit)}
            )

        entry.status = EntryStatus.POSTED
        entry.posted_at = timezone.now()
        entry.save()
        self.log_info("Accounting entry posted", entry_id=entry.id, amount=str(debit))
        return entry


class BudgetService(BaseService):
    """Budget vote / close and consumption"""

    @transaction.atomic
    def vote(self, budget: CoproBudget) -> CoproBudget:
        budget = CoproBudget.objects.select_for_update().get(pk=budget.pk)
        if budget.status != BudgetStatus.DRAFT:
            raise InvalidTransitionError(
                f"Only draft budgets can be voted (current: {budget.status})",
                details={'from': budget.status, 'to': BudgetStatus.VOTED}
            )
        other_voted = CoproBudget.objects.select_for_update().filter(
            residence_id=budget.residence_id, status=BudgetStatus.VOTED
        ).exclude(pk=budget.pk)
        if other_voted.exists():
            raise ConflictError(
                "Another budget is already voted for this residence; close it first",
                code="BUDGET_ALREADY_VOTED",
                details={'budget_id': other_voted.first().id}
            )
        budget.status = BudgetStatus.VOTED
        budget.voted_at = timezone.now()
        budget.save()
        self.log_info("Budget voted", budget_id=budget.id, fiscal_year=budget.fiscal_year)
        return budget

    @transaction.atomic
    def close(self, budget: CoproBudget) -> CoproBudget:
        budget = CoproBudget.objects.select_for_update().get(pk=budget.pk)
        if budget.status != BudgetStatus.VOTED:
            raise InvalidTransitionError(
                f"Only voted budgets can be closed (current: {budget.status})",
                details={'from': budget.status, 'to': BudgetStatus.CLOSED}
            )
        budget.status = BudgetStatus.CLOSED
        budget.save()
        self.log_info("Budget closed", budget_id=budget.id)
        return budget

    def usage(self, budget: CoproBudget) -> dict:
        """Consumption per line and overall"""
        lines = []
        total_budgeted = ZERO
        total_actual = ZERO
        for line in budget.lines.select_related('distribution_key'):
            total_budgeted += line.budgeted_amount
            total_actual += line.actual_amount
            lines.append({
                'id': line.id,
                'category': line.category,
                'label': line.label,
                'budgeted_amount': line.budgeted_amount,
                'actual_amount': line.actual_amount,
                'remaining': line.budgeted_amount - line.actual_amount,
                'percent_used': line.percent_used,
                'is_over': line.is_over,
            })
        overall = round(float(total_actual) / float(total_budgeted) * 100, 1) if total_budgeted else 0.0
        return {
            'budget_id': budget.id,
            'fiscal_year': budget.fiscal_year,
            'status': budget.status,
            'total_budgeted': total_budgeted,
            'total_actual': total_actual,
            'percent_used': overall,
            'is_over': overall > 100,
            'lines': lines,
        }


class RegularizationService(BaseService):
    """Yearly charges regularization of tenant occupancies"""

    def provisions_paid(self, occupancy, period_start: date, period_end: date) -> Decimal:
        from payments.models import Payment
        total = Payment.objects.filter(
            occupancy=occupancy,
            payment_type=PaymentType.CHARGES,
            due_date__range=(period_start, period_end),
        ).aggregate(total=Sum('paid_amount'))['total']
        return total or ZERO

    @transaction.atomic
    def compute(self, occupancy, period_start: date, period_end: date, actual_charges: Decimal,
                provisions_total: Optional[Decimal] = None) -> ChargesRegularization:
        """Create a regularization; provisions default to the charges paid over the period"""
        DateRangeValidator.validate_range(period_start, period_end)
        if provisions_total is None:
            provisions_total = self.provisions_paid(occupancy, period_start, period_end)
        regularization = ChargesRegularization.objects.create(
            occupancy=occupancy,
            period_start=period_start,
            period_end=period_end,
            provisions_total=provisions_total,
            actual_charges=actual_charges,
        )
        self.log_info(
            "Charges regularization computed",
            regularization_id=regularization.id, balance=str(regularization.balance)
        )
        return regularization

    def summary(self, queryset) -> dict:
        totals = queryset.aggregate(
            provisions=Sum('provisions_total'),
            actual=Sum('actual_charges'),
            balance=Sum('balance'),
        )
        return {
            'count': queryset.count(),
            'total_provisions': totals['provisions'] or ZERO,
            'total_actual': totals['actual'] or ZERO,
            'total_balance': totals['balance'] or ZERO,
        }

    @transaction.atomic
    def mark_sent(self, regularization: ChargesRegularization) -> ChargesRegularization:
        regularization = ChargesRegularization.objects.select_for_update().get(pk=regularization.pk)
        if regularization.status != RegularizationStatus.PENDING:
            raise InvalidTransitionError("Only pending regularizations can be sent")
        regularization.status = RegularizationStatus.SENT
        regularization.sent_at = timezone.now()
        regularization.save()
        return regularization

    @transaction.atomic
    def mark_paid(self, regularization: ChargesRegularization) -> ChargesRegularization:
        regularization = ChargesRegularization.objects.select_for_update().get(pk=regularization.pk)
        if regularization.status == RegularizationStatus.PAID:
            raise InvalidTransitionError("Regularization is already settled")
        regularization.status = RegularizationStatus.PAID
        regularization.paid_at = timezone.now()
        if not regularization.sent_at:
            regularization.sent_at = regularization.paid_at
        regularization.save()
        return regularization
