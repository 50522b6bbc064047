"""
Audit trail of staff and resident actions, scoped to an agency.

Rows are append-only: save() refuses updates and delete() always raises.
"""

from datetime import timedelta

from django.db import models
from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.utils import timezone

from core.constants import AuditAction


class AuditLogQuerySet(models.QuerySet):

    def for_agency(self, agency):
        return self.filter(agency=agency)

    def for_entity(self, entity_type, entity_id):
        return self.filter(entity_type=entity_type, entity_id=entity_id)

    def critical(self):
        return self.filter(action__in=AuditAction.CRITICAL)

    def since(self, days):
        return self.filter(timestamp__gte=timezone.now() - timedelta(days=days))

    def today(self):
        return self.filter(timestamp__date=timezone.localdate())


class AuditLog(models.Model):
    """
    One recorded action. agency is always set (from the residence, else the
    acting user) except for platform admins acting outside any agency.
    """
    agency = models.ForeignKey(
        'agencies.Agency',
        on_delete=models.CASCADE,
        related_name='audit_logs',
        null=True,
        blank=True,
    )
    residence = models.ForeignKey(
        'residences.Residence',
        on_delete=models.SET_NULL,
        related_name='audit_logs',
        null=True,
        blank=True,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Acting user (empty for scheduled jobs)"
    )
    action = models.CharField(max_length=20, choices=AuditAction.CHOICES, db_index=True)
    entity_type = models.CharField(max_length=50, db_index=True, help_text="Model name, e.g. Payment")
    entity_id = models.IntegerField(null=True, blank=True)
    description = models.TextField()
    old_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default='')
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['agency', '-timestamp']),
            models.Index(fields=['residence', '-timestamp']),
            models.Index(fields=['entity_type', 'entity_id']),
        ]

    def __str__(self):
        return f"{self.user_display} {self.action} {self.entity_type}#{self.entity_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise PermissionDenied("Audit logs cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDenied("Audit logs cannot be deleted.")

    @property
    def user_display(self):
        if self.user:
            return self.user.get_full_name() or self.user.username
        return "System"
