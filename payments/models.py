from decimal import Decimal
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.utils import timezone
from core.constants import PaymentType, PaymentStatus, PaymentMethod
from residences.models import Residence, Lot
from occupancy.models import Occupancy


class Payment(models.Model):
    """Money due by a user: rent, charges, fund call share, works fund..."""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='payments')
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payments')
    occupancy = models.ForeignKey(
        Occupancy, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments'
    )
    copro_call_item = models.OneToOneField(
        'copro.CoproCallItem', on_delete=models.SET_NULL, null=True, blank=True, related_name='payment'
    )
    payment_type = models.CharField(max_length=20, choices=PaymentType.CHOICES, default=PaymentType.RENT)
    label = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    paid_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=PaymentStatus.CHOICES, default=PaymentStatus.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.CHOICES, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-due_date', '-id']
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=['residence', 'status']),
            models.Index(fields=['residence', 'due_date']),
            models.Index(fields=['user', 'status']),
            models.Index(fields=['occupancy', 'payment_type', 'due_date']),
            models.Index(fields=['status', 'due_date']),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.get_payment_type_display()} {self.due_date} - {self.get_status_display()}"

    def clean(self):
        if self.lot_id and self.lot.residence_id != self.residence_id:
            raise ValidationError({'lot': "Lot must belong to the payment's residence."})
        if self.paid_amount is not None and self.amount is not None and self.paid_amount > self.amount:
            raise ValidationError({'paid_amount': "Paid amount cannot exceed the amount due."})

    def save(self, *args, **kwargs):
        """Auto-update status based on paid_amount and due date"""
        self.status = self.compute_status()
        if self.status == PaymentStatus.PAID and not self.paid_at:
            self.paid_at = timezone.now()
        self.full_clean()
        super().save(*args, **kwargs)

    def compute_status(self, today=None):
        today = today or timezone.localdate()
        paid = self.paid_amount or Decimal('0')
        if paid >= self.amount:
            return PaymentStatus.PAID
        if paid > 0:
            return PaymentStatus.PARTIAL
        if self.due_date and self.due_date < today:
            return PaymentStatus.OVERDUE
        return PaymentStatus.PENDING

    @property
    def remaining_amount(self):
        return self.amount - self.paid_amount

    @property
    def is_overdue(self):
        return self.status in PaymentStatus.UNPAID and self.due_date < timezone.localdate()


class RentReceipt(models.Model):
    """Receipt (quittance) issued for a paid rent or charges payment"""
    payment = models.OneToOneField(Payment, on_delete=models.CASCADE, related_name='receipt')
    tenant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='rent_receipts')
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name='rent_receipts')
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='rent_receipts')
    period_start = models.DateField()
    period_end = models.DateField()
    rent_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    charges_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    issued_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-period_start']

    def __str__(self):
        return f"Receipt {self.receipt_number}"

    @property
    def receipt_number(self):
        return f"RR-{self.id:06d}" if self.id else "RR-DRAFT"

    def save(self, *args, **kwargs):
        self.total_amount = (self.rent_amount or 0) + (self.charges_amount or 0)
        super().save(*args, **kwargs)
