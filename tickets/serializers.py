from rest_framework import serializers
from core.constants import TicketStatus
from users.serializers import UserListSerializer
from .models import Ticket, TicketCategory, TicketComment


class TicketCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketCategory
        fields = ['id', 'name', 'scope', 'icon', 'display_order', 'is_active']


class TicketCommentSerializer(serializers.ModelSerializer):
    user = UserListSerializer(read_only=True)

    class Meta:
        model = TicketComment
        fields = ['id', 'ticket', 'user', 'content', 'created_at']
        read_only_fields = ['id', 'ticket', 'user', 'created_at']


class TicketSerializer(serializers.ModelSerializer):
    """Serializer for Ticket"""
    created_by = UserListSerializer(read_only=True)
    assignee = UserListSerializer(read_only=True)
    category_name = serializers.CharField(source='category.name', read_only=True, allow_null=True)
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True, allow_null=True)
    resolution_hours = serializers.ReadOnlyField()
    is_open = serializers.ReadOnlyField()
    comments_count = serializers.SerializerMethodField()

    class Meta:
        model = Ticket
        fields = [
            'id', 'residence', 'building', 'lot', 'lot_number', 'category', 'category_name',
            'created_by', 'assignee', 'title', 'description', 'location', 'ticket_type',
            'scope', 'priority', 'status', 'is_open', 'resolved_at', 'closed_at', 'resolution_hours',
            'comments_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'status', 'resolved_at', 'closed_at', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            from residences.models import Building, Lot
            residences = get_accessible_residences(request.user)
            self.fields['residence'].queryset = residences
            self.fields['building'].queryset = Building.objects.filter(residence__in=residences)
            self.fields['lot'].queryset = Lot.objects.filter(residence__in=residences)
            self.fields['category'].queryset = TicketCategory.objects.filter(is_active=True)

    def validate(self, data):
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        lot = data.get('lot', getattr(self.instance, 'lot', None))
        building = data.get('building', getattr(self.instance, 'building', None))
        if lot and residence and lot.residence_id != residence.id:
            raise serializers.ValidationError({'lot': 'Lot must belong to the selected residence.'})
        if building and residence and building.residence_id != residence.id:
            raise serializers.ValidationError({'building': 'Building must belong to the selected residence.'})
        return data

    def get_comments_count(self, obj):
        return obj.comments.count()


class TicketListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list view"""
    residence_name = serializers.CharField(source='residence.name', read_only=True)
    category_name = serializers.CharField(source='category.name', read_only=True, allow_null=True)

    class Meta:
        model = Ticket
        fields = [
            'id', 'residence', 'residence_name', 'title', 'category_name', 'ticket_type',
            'scope', 'priority', 'status', 'created_at'
        ]


class TicketStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TicketStatus.CHOICES)
