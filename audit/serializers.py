"""
Audit Log Serializers
"""

from rest_framework import serializers
from audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    """Read-only: audit logs cannot be created/updated via API."""

    user_display = serializers.CharField(read_only=True)
    action_display = serializers.CharField(source='get_action_display', read_only=True)
    user_username = serializers.CharField(source='user.username', read_only=True, allow_null=True)
    residence_name = serializers.CharField(source='residence.name', read_only=True, allow_null=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'agency', 'residence', 'residence_name', 'user', 'user_username',
            'user_display', 'action', 'action_display', 'entity_type', 'entity_id',
            'description', 'old_data', 'new_data', 'metadata', 'ip_address',
            'user_agent', 'timestamp'
        ]
        read_only_fields = fields
