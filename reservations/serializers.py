from rest_framework import serializers
from .models import CommonArea, Reservation


class CommonAreaSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommonArea
        fields = [
            'id', 'residence', 'name', 'area_type', 'description', 'capacity',
            'requires_approval', 'is_active', 'created_at'
        ]
        read_only_fields = ['id', 'created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)


class ReservationSerializer(serializers.ModelSerializer):
    area_name = serializers.CharField(source='area.name', read_only=True)
    user_name = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id', 'area', 'area_name', 'user', 'user_name', 'title', 'start_at', 'end_at', 'status',
            'decided_by', 'decided_at', 'decision_note', 'created_at'
        ]
        read_only_fields = ['id', 'user', 'status', 'decided_by', 'decided_at', 'decision_note', 'created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['area'].queryset = CommonArea.objects.filter(
                residence__in=get_accessible_residences(request.user)
            )

    def validate(self, data):
        if data['end_at'] <= data['start_at']:
            raise serializers.ValidationError({'end_at': 'End must be after start.'})
        return data


class DecisionSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
