from rest_framework import serializers
from .models import Agency


class AgencySerializer(serializers.ModelSerializer):
    """Serializer for Agency"""
    is_trial_expired = serializers.ReadOnlyField()

    class Meta:
        model = Agency
        fields = [
            'id', 'name', 'agency_type', 'plan', 'status', 'siret', 'email',
            'phone', 'address', 'city', 'postal_code', 'trial_ends_at',
            'is_trial_expired', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'plan', 'status', 'trial_ends_at', 'created_at', 'updated_at']


class AgencyAdminSerializer(AgencySerializer):
    """Platform admin view - can change plan, status and limits"""

    class Meta(AgencySerializer.Meta):
        fields = AgencySerializer.Meta.fields + ['max_residences', 'max_managers']
        read_only_fields = ['id', 'created_at', 'updated_at']
