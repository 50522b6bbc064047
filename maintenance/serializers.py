from rest_framework import serializers
from .models import ServiceProvider, WorkOrder


class ServiceProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceProvider
        fields = ['id', 'agency', 'name', 'trade', 'email', 'phone', 'notes', 'is_active', 'created_at']
        read_only_fields = ['id', 'agency', 'created_at']


class WorkOrderSerializer(serializers.ModelSerializer):
    """Serializer for WorkOrder"""
    provider_name = serializers.CharField(source='provider.name', read_only=True, allow_null=True)
    residence_name = serializers.CharField(source='residence.name', read_only=True)

    class Meta:
        model = WorkOrder
        fields = [
            'id', 'residence', 'residence_name', 'building', 'lot', 'ticket', 'provider',
            'provider_name', 'title', 'description', 'category', 'priority', 'status',
            'scheduled_date', 'completed_date', 'estimated_cost', 'actual_cost',
            'completion_notes', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'status', 'completed_date', 'created_by', 'created_at', 'updated_at'
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            from residences.models import Building, Lot
            from tickets.models import Ticket
            residences = get_accessible_residences(request.user)
            self.fields['residence'].queryset = residences
            self.fields['building'].queryset = Building.objects.filter(residence__in=residences)
            self.fields['lot'].queryset = Lot.objects.filter(residence__in=residences)
            self.fields['ticket'].queryset = Ticket.objects.filter(residence__in=residences)
            self.fields['provider'].queryset = ServiceProvider.objects.filter(agency_id=request.user.agency_id)

    def validate(self, data):
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        for field in ('lot', 'building', 'ticket'):
            related = data.get(field)
            if related and residence and related.residence_id != residence.id:
                raise serializers.ValidationError({field: f'{field.capitalize()} must belong to the selected residence.'})
        return data


class ScheduleSerializer(serializers.Serializer):
    scheduled_date = serializers.DateField()
    provider = serializers.IntegerField(required=False, allow_null=True)


class CompleteSerializer(serializers.Serializer):
    actual_cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    completion_notes = serializers.CharField(required=False, allow_blank=True, default='')
