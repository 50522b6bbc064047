from rest_framework import serializers
from users.serializers import UserListSerializer
from .models import Occupancy


def get_lot_queryset():
    """Get lot queryset - will be filtered in __init__"""
    from residences.models import Lot
    return Lot.objects.all()


def get_user_queryset():
    from users.models import User
    return User.objects.all()


class OccupancySerializer(serializers.ModelSerializer):
    """Serializer for Occupancy"""
    user = UserListSerializer(read_only=True)
    user_id = serializers.PrimaryKeyRelatedField(
        queryset=get_user_queryset(), source='user', write_only=True
    )
    lot_id = serializers.PrimaryKeyRelatedField(
        queryset=get_lot_queryset(), source='lot', write_only=True
    )
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True)
    residence_id = serializers.IntegerField(source='lot.residence_id', read_only=True)
    monthly_total = serializers.ReadOnlyField()

    class Meta:
        model = Occupancy
        fields = [
            'id', 'user', 'user_id', 'lot_id', 'lot_number', 'residence_id',
            'occupancy_type', 'start_date', 'end_date', 'is_active',
            'rent_amount', 'charges_amount', 'monthly_total', 'notes',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import filter_by_accessible_residences
            from residences.models import Lot
            self.fields['lot_id'].queryset = filter_by_accessible_residences(Lot.objects.all(), request.user)

    def validate(self, data):
        start_date = data.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = data.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before start date.'})
        return data


class OccupancyListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list view"""
    username = serializers.CharField(source='user.username', read_only=True)
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True)
    residence_id = serializers.IntegerField(source='lot.residence_id', read_only=True)

    class Meta:
        model = Occupancy
        fields = [
            'id', 'username', 'lot_number', 'residence_id', 'occupancy_type',
            'rent_amount', 'charges_amount', 'start_date', 'end_date', 'is_active'
        ]


class VacateSerializer(serializers.Serializer):
    end_date = serializers.DateField(required=False)
