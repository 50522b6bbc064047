from rest_framework import serializers
from core.constants import PaymentMethod
from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    """Serializer for Payment"""
    username = serializers.CharField(source='user.username', read_only=True)
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True, default=None)
    residence_name = serializers.CharField(source='residence.name', read_only=True)
    remaining_amount = serializers.ReadOnlyField()
    has_receipt = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id', 'residence', 'residence_name', 'lot', 'lot_number', 'user', 'username',
            'occupancy', 'copro_call_item', 'payment_type', 'label', 'amount',
            'paid_amount', 'remaining_amount', 'due_date', 'status', 'paid_at',
            'payment_method', 'reference', 'notes', 'has_receipt',
            'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'copro_call_item', 'paid_amount', 'status', 'paid_at',
            'created_at', 'updated_at'
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences, filter_by_accessible_residences
            from residences.models import Lot
            self.fields['residence'].queryset = get_accessible_residences(request.user)
            self.fields['lot'].queryset = filter_by_accessible_residences(Lot.objects.all(), request.user)

    def get_has_receipt(self, obj):
        return hasattr(obj, 'receipt')

    def validate(self, data):
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        lot = data.get('lot', getattr(self.instance, 'lot', None))
        if lot and residence and lot.residence_id != residence.id:
            raise serializers.ValidationError({'lot': "Lot must belong to the selected residence."})
        occupancy = data.get('occupancy')
        if occupancy and lot and occupancy.lot_id != lot.id:
            raise serializers.ValidationError({'occupancy': "Occupancy must be on the selected lot."})
        return data


class PaymentListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list view"""
    username = serializers.CharField(source='user.username', read_only=True)
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'residence', 'lot_number', 'username', 'payment_type', 'label',
            'amount', 'paid_amount', 'due_date', 'status'
        ]


class PaySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.CHOICES, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value
