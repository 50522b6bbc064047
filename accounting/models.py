from decimal import Decimal
from django.db import models
from django.db.models import Sum, Q
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from core.constants import (
    AccountType, JournalType, EntryStatus, BudgetStatus, RegularizationStatus, OccupancyType
)
from core.exceptions import BusinessLogicError
from agencies.models import Agency
from residences.models import Residence, Lot

ZERO = Decimal('0')


class AccountingAccount(models.Model):
    """Chart of accounts entry. agency=None marks a shared system account."""
    agency = models.ForeignKey(
        Agency, on_delete=models.CASCADE, null=True, blank=True, related_name='accounting_accounts'
    )
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=20, choices=AccountType.CHOICES)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    is_system = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['code']
        constraints = [
            models.UniqueConstraint(fields=['agency', 'code'], name='unique_account_code_per_agency'),
            models.UniqueConstraint(
                fields=['code'], condition=Q(agency__isnull=True), name='unique_system_account_code'
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def clean(self):
        if self.parent_id and self.parent.agency_id not in (None, self.agency_id):
            raise ValidationError({'parent': "Parent account belongs to another agency."})


class AccountingJournal(models.Model):
    agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='accounting_journals')
    code = models.CharField(max_length=10)
    name = models.CharField(max_length=255)
    journal_type = models.CharField(max_length=20, choices=JournalType.CHOICES, default=JournalType.GENERAL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['code']
        unique_together = ['agency', 'code']

    def __str__(self):
        return f"{self.code} - {self.name}"


class AccountingEntry(models.Model):
    """
    Double-entry journal entry. Lines are editable while DRAFT;
    once POSTED the entry and its lines are immutable.
    """
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='accounting_entries')
    journal = models.ForeignKey(AccountingJournal, on_delete=models.PROTECT, related_name='entries')
    date = models.DateField()
    label = models.CharField(max_length=255)
    reference = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=10, choices=EntryStatus.CHOICES, default=EntryStatus.DRAFT)
    posted_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='accounting_entries'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-id']
        verbose_name_plural = "Accounting entries"
        indexes = [
            models.Index(fields=['residence', 'status', 'date']),
        ]

    def __str__(self):
        return f"{self.date} {self.journal.code} {self.label}"

    def clean(self):
        if self.journal_id and self.residence_id and self.journal.agency_id != self.residence.agency_id:
            raise ValidationError({'journal': "Journal belongs to another agency."})

    def save(self, *args, **kwargs):
        if self.pk:
            stored_status = AccountingEntry.objects.filter(pk=self.pk).values_list('status', flat=True).first()
            if stored_status == EntryStatus.POSTED:
                raise BusinessLogicError("Posted entries cannot be modified", code="ENTRY_POSTED")
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.status == EntryStatus.POSTED:
            raise BusinessLogicError("Posted entries cannot be deleted", code="ENTRY_POSTED")
        return super().delete(*args, **kwargs)

    @property
    def is_posted(self):
        return self.status == EntryStatus.POSTED

    def totals(self):
        """(total debit, total credit)"""
        sums = self.lines.aggregate(debit=Sum('debit'), credit=Sum('credit'))
        return sums['debit'] or ZERO, sums['credit'] or ZERO

    @property
    def total_debit(self):
        return self.totals()[0]

    @property
    def is_balanced(self):
        debit, credit = self.totals()
        return debit == credit


class AccountingLine(models.Model):
    entry = models.ForeignKey(AccountingEntry, on_delete=models.CASCADE, related_name='lines')
    account = models.ForeignKey(AccountingAccount, on_delete=models.PROTECT, related_name='lines')
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name='accounting_lines')
    label = models.CharField(max_length=255, blank=True)
    debit = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    credit = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.account.code} D{self.debit} C{self.credit}"

    def clean(self):
        debit = self.debit or ZERO
        credit = self.credit or ZERO
        if (debit > 0) == (credit > 0):
            raise ValidationError("Exactly one of debit or credit must be greater than zero.")
        entry = self.entry
        if self.account_id and self.account.agency_id not in (None, entry.residence.agency_id):
            raise ValidationError({'account': "Account belongs to another agency."})
        if self.lot_id and self.lot.residence_id != entry.residence_id:
            raise ValidationError({'lot': "Lot must belong to the entry's residence."})

    def save(self, *args, **kwargs):
        if self.entry.is_posted:
            raise BusinessLogicError("Lines of a posted entry cannot be modified", code="ENTRY_POSTED")
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.entry.is_posted:
            raise BusinessLogicError("Lines of a posted entry cannot be deleted", code="ENTRY_POSTED")
        return super().delete(*args, **kwargs)


class CoproBudget(models.Model):
    """Yearly co-ownership budget voted by the general assembly"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='budgets')
    fiscal_year = models.PositiveIntegerField()
    status = models.CharField(max_length=10, choices=BudgetStatus.CHOICES, default=BudgetStatus.DRAFT)
    voted_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-fiscal_year']
        unique_together = ['residence', 'fiscal_year']

    def __str__(self):
        return f"{self.residence.name} - {self.fiscal_year}"

    @property
    def total_budget(self):
        return self.lines.aggregate(total=Sum('budgeted_amount'))['total'] or ZERO

    @property
    def total_actual(self):
        return self.lines.aggregate(total=Sum('actual_amount'))['total'] or ZERO


class BudgetLine(models.Model):
    budget = models.ForeignKey(CoproBudget, on_delete=models.CASCADE, related_name='lines')
    category = models.CharField(max_length=100)
    label = models.CharField(max_length=255)
    budgeted_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    actual_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    distribution_key = models.ForeignKey(
        'copro.DistributionKey', on_delete=models.SET_NULL, null=True, blank=True, related_name='budget_lines'
    )

    class Meta:
        ordering = ['category', 'id']

    def __str__(self):
        return f"{self.category} - {self.label}"

    def clean(self):
        if self.distribution_key_id and self.distribution_key.residence_id != self.budget.residence_id:
            raise ValidationError({'distribution_key': "Distribution key belongs to another residence."})

    @property
    def percent_used(self):
        if not self.budgeted_amount:
            return 0.0
        return round(float(self.actual_amount) / float(self.budgeted_amount) * 100, 1)

    @property
    def is_over(self):
        return self.percent_used > 100


class ChargesRegularization(models.Model):
    """
    Yearly comparison of the charge provisions paid by a tenant with the actual charges.
    balance > 0: refund due to the tenant, balance < 0: the tenant owes the difference.
    """
    occupancy = models.ForeignKey(
        'occupancy.Occupancy', on_delete=models.CASCADE, related_name='regularizations'
    )
    period_start = models.DateField()
    period_end = models.DateField()
    provisions_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    actual_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(
        max_length=10, choices=RegularizationStatus.CHOICES, default=RegularizationStatus.PENDING
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-period_end']

    def __str__(self):
        return f"Regularization {self.occupancy_id} {self.period_start} - {self.period_end}"

    def clean(self):
        if self.period_end and self.period_start and self.period_end < self.period_start:
            raise ValidationError({'period_end': "Period end cannot be before period start."})
        if self.occupancy_id and self.occupancy.occupancy_type != OccupancyType.TENANT:
            raise ValidationError({'occupancy': "Charges are only regularized for tenant occupancies."})

    def save(self, *args, **kwargs):
        self.balance = (self.provisions_total or ZERO) - (self.actual_charges or ZERO)
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def residence(self):
        return self.occupancy.lot.residence


class BankAccount(models.Model):
    agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='bank_accounts')
    residence = models.ForeignKey(
        Residence, on_delete=models.SET_NULL, null=True, blank=True, related_name='bank_accounts'
    )
    bank_name = models.CharField(max_length=255)
    account_name = models.CharField(max_length=255)
    iban = models.CharField(max_length=34, blank=True)
    bic = models.CharField(max_length=11, blank=True)
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    is_main = models.BooleanField(default=False)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['bank_name', 'account_name']

    def __str__(self):
        return f"{self.bank_name} - {self.account_name}"

    def clean(self):
        if self.residence_id and self.residence.agency_id != self.agency_id:
            raise ValidationError({'residence': "Residence belongs to another agency."})

    def save(self, *args, **kwargs):
        self.iban = self.iban.replace(' ', '').upper()
        self.full_clean()
        super().save(*args, **kwargs)


class BankTransaction(models.Model):
    bank_account = models.ForeignKey(BankAccount, on_delete=models.CASCADE, related_name='transactions')
    transaction_date = models.DateField()
    value_date = models.DateField(null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, help_text="Positive: credit, negative: debit")
    label = models.CharField(max_length=255)
    counterparty = models.CharField(max_length=255, blank=True)
    category = models.CharField(max_length=100, blank=True)
    external_id = models.CharField(max_length=100, null=True, blank=True)
    is_reconciled = models.BooleanField(default=False)
    reconciled_at = models.DateTimeField(null=True, blank=True)
    reconciled_with = models.ForeignKey(
        AccountingEntry, on_delete=models.SET_NULL, null=True, blank=True, related_name='bank_transactions'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-transaction_date', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['bank_account', 'external_id'],
                condition=Q(external_id__isnull=False),
                name='unique_transaction_external_id'
            ),
        ]
        indexes = [
            models.Index(fields=['bank_account', 'is_reconciled']),
        ]

    def __str__(self):
        return f"{self.transaction_date} {self.label} {self.amount}"

    def save(self, *args, **kwargs):
        if not self.external_id:
            self.external_id = None
        super().save(*args, **kwargs)
