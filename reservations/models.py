from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from core.constants import ReservationStatus
from residences.models import Residence


class CommonArea(models.Model):
    """Bookable shared space or equipment (party room, guest room, barbecue...)"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='common_areas')
    name = models.CharField(max_length=100)
    area_type = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    requires_approval = models.BooleanField(
        default=True,
        help_text="Bookings stay PENDING until staff confirm them"
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['residence', 'name']
        unique_together = ['residence', 'name']

    def __str__(self):
        return f"{self.name} ({self.residence.name})"


class Reservation(models.Model):
    area = models.ForeignKey(CommonArea, on_delete=models.CASCADE, related_name='reservations')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reservations')
    title = models.CharField(max_length=200)
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    status = models.CharField(max_length=10, choices=ReservationStatus.CHOICES, default=ReservationStatus.PENDING)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='reservations_decided'
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    decision_note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['start_at']
        indexes = [
            models.Index(fields=['area', 'start_at']),
        ]

    def __str__(self):
        return f"{self.area.name}: {self.title} ({self.start_at:%Y-%m-%d %H:%M})"

    def clean(self):
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValidationError({'end_at': "End must be after start."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def residence(self):
        return self.area.residence
