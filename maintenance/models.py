from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from core.constants import WorkOrderStatus, TicketPriority
from agencies.models import Agency
from residences.models import Residence, Building, Lot


class ServiceProvider(models.Model):
    """Contractor used by an agency (plumber, electrician, elevator company...)"""
    agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='service_providers')
    name = models.CharField(max_length=255)
    trade = models.CharField(max_length=100, blank=True, help_text="e.g., 'Plumbing', 'Elevator'")
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['agency', 'is_active']),
        ]

    def __str__(self):
        return f"{self.name} ({self.trade})" if self.trade else self.name


class WorkOrder(models.Model):
    """Intervention planned in a residence, optionally linked to a ticket"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='work_orders')
    building = models.ForeignKey(Building, on_delete=models.SET_NULL, null=True, blank=True, related_name='work_orders')
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name='work_orders')
    ticket = models.ForeignKey(
        'tickets.Ticket', on_delete=models.SET_NULL, null=True, blank=True, related_name='work_orders'
    )
    provider = models.ForeignKey(
        ServiceProvider, on_delete=models.SET_NULL, null=True, blank=True, related_name='work_orders'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_work_orders'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    priority = models.CharField(max_length=20, choices=TicketPriority.CHOICES, default=TicketPriority.MEDIUM)
    status = models.CharField(max_length=20, choices=WorkOrderStatus.CHOICES, default=WorkOrderStatus.PENDING)
    scheduled_date = models.DateField(null=True, blank=True)
    completed_date = models.DateField(null=True, blank=True)
    estimated_cost = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    actual_cost = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    completion_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['residence', 'status']),
            models.Index(fields=['scheduled_date']),
        ]

    def __str__(self):
        return f"{self.title} ({self.get_status_display()})"

    def clean(self):
        if self.lot_id and self.lot.residence_id != self.residence_id:
            raise ValidationError({'lot': "Lot must belong to the work order's residence."})
        if self.ticket_id and self.ticket.residence_id != self.residence_id:
            raise ValidationError({'ticket': "Ticket must belong to the work order's residence."})
        if self.provider_id and self.provider.agency_id != self.residence.agency_id:
            raise ValidationError({'provider': "Provider must belong to the residence's agency."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
