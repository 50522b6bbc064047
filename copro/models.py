from decimal import Decimal
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db.models import Sum
from core.constants import CallType, CallStatus, CallItemStatus
from residences.models import Residence, Lot

ZERO = Decimal('0')


class DistributionKey(models.Model):
    """Named share table (elevator, heating...) overriding the general tantiemes"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='distribution_keys')
    code = models.CharField(max_length=30)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['code']
        unique_together = ['residence', 'code']

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    @property
    def total_shares(self):
        return self.lot_shares.aggregate(total=Sum('shares'))['total'] or 0


class LotShare(models.Model):
    key = models.ForeignKey(DistributionKey, on_delete=models.CASCADE, related_name='lot_shares')
    lot = models.ForeignKey(Lot, on_delete=models.CASCADE, related_name='shares')
    shares = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['lot__lot_number']
        unique_together = ['key', 'lot']

    def __str__(self):
        return f"{self.key.code} / {self.lot.lot_number}: {self.shares}"

    def clean(self):
        if self.lot_id and self.key_id and self.lot.residence_id != self.key.residence_id:
            raise ValidationError({'lot': "Lot must belong to the distribution key's residence."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class CoproCall(models.Model):
    """Fund call (appel de fonds) split across the lots of a residence"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='copro_calls')
    budget = models.ForeignKey(
        'accounting.CoproBudget', on_delete=models.SET_NULL, null=True, blank=True, related_name='calls'
    )
    distribution_key = models.ForeignKey(
        DistributionKey, on_delete=models.SET_NULL, null=True, blank=True, related_name='calls'
    )
    call_number = models.CharField(max_length=30)
    label = models.CharField(max_length=255)
    call_type = models.CharField(max_length=20, choices=CallType.CHOICES, default=CallType.QUARTERLY)
    quarter = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(4)]
    )
    due_date = models.DateField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    status = models.CharField(max_length=20, choices=CallStatus.CHOICES, default=CallStatus.DRAFT)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='copro_calls'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-due_date', '-id']
        unique_together = ['residence', 'call_number']

    def __str__(self):
        return f"{self.call_number} - {self.label}"

    def clean(self):
        if self.call_type == CallType.QUARTERLY and not self.quarter:
            raise ValidationError({'quarter': "Quarter is required for quarterly calls."})
        if self.distribution_key_id and self.distribution_key.residence_id != self.residence_id:
            raise ValidationError({'distribution_key': "Distribution key belongs to another residence."})
        if self.budget_id and self.budget.residence_id != self.residence_id:
            raise ValidationError({'budget': "Budget belongs to another residence."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def paid_amount(self):
        return self.items.aggregate(total=Sum('paid_amount'))['total'] or ZERO


class CoproCallItem(models.Model):
    """Share of a fund call due for one lot"""
    call = models.ForeignKey(CoproCall, on_delete=models.CASCADE, related_name='items')
    lot = models.ForeignKey(Lot, on_delete=models.CASCADE, related_name='call_items')
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='call_items'
    )
    shares = models.PositiveIntegerField(default=0)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=CallItemStatus.CHOICES, default=CallItemStatus.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['lot__lot_number']
        unique_together = ['call', 'lot']

    def __str__(self):
        return f"{self.call.call_number} / {self.lot.lot_number}: {self.amount}"

    @property
    def remaining_amount(self):
        return self.amount - self.paid_amount


def default_works_fund_percentage():
    from common.utils import get_site_settings
    return get_site_settings().works_fund_min_percentage


class WorksFund(models.Model):
    """Reserve fund fed by a minimum yearly contribution (fonds de travaux)"""
    residence = models.OneToOneField(Residence, on_delete=models.CASCADE, related_name='works_fund')
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    minimum_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default_works_fund_percentage,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    last_contribution_date = models.DateField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Works fund {self.residence.name}: {self.balance}"


class WorksFundContribution(models.Model):
    fund = models.ForeignKey(WorksFund, on_delete=models.CASCADE, related_name='contributions')
    call_item = models.ForeignKey(
        CoproCallItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='contributions'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    contributed_on = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-contributed_on', '-id']

    def __str__(self):
        return f"{self.fund.residence.name} +{self.amount} ({self.contributed_on})"
