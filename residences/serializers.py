from rest_framework import serializers
from core.constants import LotType, DefaultLimits
from .models import Residence, Building, Lot, ResidenceAccess


class ResidenceSerializer(serializers.ModelSerializer):
    """Serializer for Residence"""
    total_lots = serializers.ReadOnlyField()
    occupied_lots = serializers.ReadOnlyField()

    class Meta:
        model = Residence
        fields = [
            'id', 'agency', 'name', 'address', 'city', 'postal_code', 'country',
            'join_code', 'allow_landlord_join', 'requires_syndic_approval', 'settings',
            'total_lots', 'occupied_lots', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'agency', 'join_code', 'created_at', 'updated_at']


class ResidenceListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list view"""

    class Meta:
        model = Residence
        fields = ['id', 'name', 'city', 'postal_code']


class BuildingSerializer(serializers.ModelSerializer):
    """Serializer for Building"""
    lots_count = serializers.SerializerMethodField()

    class Meta:
        model = Building
        fields = ['id', 'residence', 'name', 'address', 'lots_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from .access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def get_lots_count(self, obj):
        return obj.lots.count()


class LotSerializer(serializers.ModelSerializer):
    """Serializer for Lot"""
    status = serializers.ReadOnlyField()
    building_name = serializers.CharField(source='building.name', read_only=True, allow_null=True)

    class Meta:
        model = Lot
        fields = [
            'id', 'residence', 'building', 'building_name', 'lot_number', 'lot_type',
            'floor', 'door', 'surface', 'rooms', 'tantiemes', 'owner', 'primary_resident',
            'join_code', 'notes', 'status', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'join_code', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from .access import get_accessible_residences
            residences = get_accessible_residences(request.user)
            self.fields['residence'].queryset = residences
            self.fields['building'].queryset = Building.objects.filter(residence__in=residences)

    def validate(self, data):
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        building = data.get('building', getattr(self.instance, 'building', None))
        if building and residence and building.residence_id != residence.id:
            raise serializers.ValidationError({'building': "Building must belong to the lot's residence."})
        return data


class LotListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list view"""
    building_name = serializers.CharField(source='building.name', read_only=True, allow_null=True)
    status = serializers.ReadOnlyField()

    class Meta:
        model = Lot
        fields = ['id', 'residence', 'building_name', 'lot_number', 'lot_type', 'floor', 'tantiemes', 'status']


class BulkLotsSerializer(serializers.Serializer):
    """Input for bulk lot creation"""
    building = serializers.IntegerField(required=False, allow_null=True)
    prefix = serializers.CharField(max_length=20, allow_blank=True, default='')
    start = serializers.IntegerField(min_value=0)
    end = serializers.IntegerField(min_value=0)
    lot_type = serializers.ChoiceField(choices=LotType.CHOICES, default=LotType.APARTMENT)
    tantiemes = serializers.IntegerField(min_value=0, default=0)
    floor = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, data):
        if data['end'] < data['start']:
            raise serializers.ValidationError({'end': 'end must be greater than or equal to start.'})
        if data['end'] - data['start'] + 1 > DefaultLimits.MAX_BULK_LOTS:
            raise serializers.ValidationError(
                f'At most {DefaultLimits.MAX_BULK_LOTS} lots can be created at once.'
            )
        return data


class ResidenceAccessSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    role = serializers.CharField(source='user.role', read_only=True)
    granted_by_username = serializers.CharField(source='granted_by.username', read_only=True, allow_null=True)

    class Meta:
        model = ResidenceAccess
        fields = ['id', 'user', 'username', 'role', 'residence', 'granted_by_username', 'created_at']
        read_only_fields = fields
