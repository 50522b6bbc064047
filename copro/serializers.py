from rest_framework import serializers
from core.constants import CallType
from .models import DistributionKey, LotShare, CoproCall, CoproCallItem, WorksFund, WorksFundContribution


class DistributionKeySerializer(serializers.ModelSerializer):
    total_shares = serializers.ReadOnlyField()

    class Meta:
        model = DistributionKey
        fields = ['id', 'residence', 'code', 'name', 'description', 'total_shares', 'created_at']
        read_only_fields = ['id', 'created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)


class LotShareSerializer(serializers.ModelSerializer):
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True)

    class Meta:
        model = LotShare
        fields = ['id', 'key', 'lot', 'lot_number', 'shares']
        read_only_fields = ['id']

    def validate(self, data):
        key = data.get('key', getattr(self.instance, 'key', None))
        lot = data.get('lot', getattr(self.instance, 'lot', None))
        if key and lot and lot.residence_id != key.residence_id:
            raise serializers.ValidationError({'lot': "Lot must belong to the distribution key's residence."})
        return data


class ShareRowSerializer(serializers.Serializer):
    lot = serializers.IntegerField()
    shares = serializers.IntegerField(min_value=0)


class SetSharesSerializer(serializers.Serializer):
    shares = ShareRowSerializer(many=True, allow_empty=False)


class CoproCallItemSerializer(serializers.ModelSerializer):
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True)
    owner_name = serializers.CharField(source='owner.username', read_only=True, default=None)
    remaining_amount = serializers.ReadOnlyField()

    class Meta:
        model = CoproCallItem
        fields = [
            'id', 'call', 'lot', 'lot_number', 'owner', 'owner_name', 'shares', 'amount',
            'paid_amount', 'remaining_amount', 'status', 'paid_at'
        ]
        read_only_fields = fields


class CoproCallSerializer(serializers.ModelSerializer):
    items = CoproCallItemSerializer(many=True, read_only=True)
    paid_amount = serializers.ReadOnlyField()

    class Meta:
        model = CoproCall
        fields = [
            'id', 'residence', 'budget', 'distribution_key', 'call_number', 'label',
            'call_type', 'quarter', 'due_date', 'total_amount', 'paid_amount', 'status',
            'sent_at', 'created_by', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'call_number', 'status', 'sent_at', 'created_by', 'created_at', 'updated_at'
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def validate(self, data):
        call_type = data.get('call_type', getattr(self.instance, 'call_type', CallType.QUARTERLY))
        quarter = data.get('quarter', getattr(self.instance, 'quarter', None))
        if call_type == CallType.QUARTERLY and not quarter:
            raise serializers.ValidationError({'quarter': "Quarter is required for quarterly calls."})
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        key = data.get('distribution_key')
        if key and residence and key.residence_id != residence.id:
            raise serializers.ValidationError({'distribution_key': "Distribution key belongs to another residence."})
        budget = data.get('budget')
        if budget and residence and budget.residence_id != residence.id:
            raise serializers.ValidationError({'budget': "Budget belongs to another residence."})
        return data


class CoproCallListSerializer(serializers.ModelSerializer):
    class Meta:
        model = CoproCall
        fields = ['id', 'residence', 'call_number', 'label', 'call_type', 'due_date', 'total_amount', 'status']


class FromBudgetSerializer(serializers.Serializer):
    budget = serializers.IntegerField()
    quarter = serializers.IntegerField(min_value=1, max_value=4)
    due_date = serializers.DateField()


class RecordPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value


class WorksFundContributionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WorksFundContribution
        fields = ['id', 'amount', 'contributed_on', 'call_item', 'created_at']


class WorksFundSerializer(serializers.ModelSerializer):
    residence_name = serializers.CharField(source='residence.name', read_only=True)

    class Meta:
        model = WorksFund
        fields = [
            'id', 'residence', 'residence_name', 'balance', 'minimum_percentage',
            'last_contribution_date', 'updated_at'
        ]
        read_only_fields = ['id', 'balance', 'last_contribution_date', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)
