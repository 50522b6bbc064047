from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from core.constants import OccupancyType
from residences.models import Lot


class Occupancy(models.Model):
    """
    Links a user to a lot over a time range.

    A lot may have several active occupancies (owner, tenant, residents)
    but at most one active TENANT.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='occupancies')
    lot = models.ForeignKey(Lot, on_delete=models.CASCADE, related_name='occupancies')
    occupancy_type = models.CharField(max_length=20, choices=OccupancyType.CHOICES, default=OccupancyType.RESIDENT)

    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    # Only meaningful for TENANT occupancies
    rent_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    charges_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])

    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_date']
        verbose_name = "Occupancy"
        verbose_name_plural = "Occupancies"
        indexes = [
            models.Index(fields=['user', 'is_active']),
            models.Index(fields=['lot', 'is_active']),
            models.Index(fields=['occupancy_type', 'is_active']),
            models.Index(fields=['is_active', 'start_date']),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.lot.lot_number} ({self.get_occupancy_type_display()})"

    @property
    def residence(self):
        return self.lot.residence

    @property
    def monthly_total(self):
        return self.rent_amount + self.charges_amount

    def clean(self):
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date cannot be before start date."})
        if self.occupancy_type != OccupancyType.TENANT and (self.rent_amount or self.charges_amount):
            raise ValidationError("Rent and charges only apply to TENANT occupancies.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
