from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from core.constants import TicketStatus, TicketPriority, TicketType, TicketScope
from residences.models import Residence, Building, Lot


class TicketCategory(models.Model):
    """Category of incident/request (plumbing, elevator, cleaning...)"""
    name = models.CharField(max_length=100)
    scope = models.CharField(max_length=10, choices=TicketScope.CATEGORY_CHOICES, default=TicketScope.BOTH)
    icon = models.CharField(max_length=50, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['display_order', 'name']
        verbose_name = "Ticket Category"
        verbose_name_plural = "Ticket Categories"

    def __str__(self):
        return self.name


class Ticket(models.Model):
    """Incident / maintenance request raised in a residence"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='tickets')
    building = models.ForeignKey(Building, on_delete=models.SET_NULL, null=True, blank=True, related_name='tickets')
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name='tickets')
    category = models.ForeignKey(
        TicketCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name='tickets'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_tickets'
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_tickets'
    )
    title = models.CharField(max_length=255)
    description = models.TextField()
    location = models.CharField(max_length=255, blank=True)
    ticket_type = models.CharField(max_length=20, choices=TicketType.CHOICES, default=TicketType.INCIDENT)
    scope = models.CharField(max_length=10, choices=TicketScope.CHOICES, default=TicketScope.PRIVATE)
    priority = models.CharField(max_length=20, choices=TicketPriority.CHOICES, default=TicketPriority.MEDIUM)
    status = models.CharField(max_length=20, choices=TicketStatus.CHOICES, default=TicketStatus.OPEN)
    resolved_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Ticket"
        verbose_name_plural = "Tickets"
        indexes = [
            models.Index(fields=['residence', 'status']),
            models.Index(fields=['residence', 'priority']),
            models.Index(fields=['created_by', 'status']),
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"{self.residence.name} - {self.title} ({self.get_status_display()})"

    def clean(self):
        if self.lot_id and self.lot.residence_id != self.residence_id:
            raise ValidationError({'lot': "Lot must belong to the ticket's residence."})
        if self.building_id and self.building.residence_id != self.residence_id:
            raise ValidationError({'building': "Building must belong to the ticket's residence."})

    def save(self, *args, **kwargs):
        """Keep resolved_at/closed_at in line with the status"""
        now = timezone.now()
        if self.status == TicketStatus.RESOLVED and not self.resolved_at:
            self.resolved_at = now
        elif self.status in TicketStatus.ACTIVE:
            self.resolved_at = None
        if self.status == TicketStatus.CLOSED and not self.closed_at:
            self.closed_at = now
        elif self.status != TicketStatus.CLOSED:
            self.closed_at = None
        self.full_clean()
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        return new_status in TicketStatus.TRANSITIONS.get(self.status, set())

    @property
    def is_open(self):
        return self.status in TicketStatus.ACTIVE

    @property
    def resolution_hours(self):
        if not self.resolved_at:
            return None
        return round((self.resolved_at - self.created_at).total_seconds() / 3600, 1)


class TicketComment(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='ticket_comments')
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Comment on #{self.ticket_id} by {self.user}"

    def clean(self):
        if not (self.content or '').strip():
            raise ValidationError({'content': "Comment cannot be empty."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
