from rest_framework import serializers
from core.constants import MajorityRule, VoteChoice
from accounting.models import CoproBudget
from .models import GeneralAssembly, Resolution, AssemblyVote


class ResolutionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Resolution
        fields = [
            'id', 'order', 'title', 'description', 'majority', 'budget', 'outcome',
            'shares_for', 'shares_against', 'shares_abstain'
        ]
        read_only_fields = fields


class AgendaItemSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    majority = serializers.ChoiceField(choices=MajorityRule.CHOICES, default=MajorityRule.SIMPLE)
    budget = serializers.PrimaryKeyRelatedField(queryset=CoproBudget.objects.all(), required=False, allow_null=True)


class GeneralAssemblySerializer(serializers.ModelSerializer):
    resolutions = ResolutionSerializer(many=True, read_only=True)
    agenda = AgendaItemSerializer(many=True, write_only=True, required=False)

    class Meta:
        model = GeneralAssembly
        fields = [
            'id', 'residence', 'title', 'description', 'scheduled_at', 'location', 'video_link',
            'status', 'minutes_url', 'created_by', 'voting_opened_at', 'closed_at',
            'resolutions', 'agenda', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'status', 'created_by', 'voting_opened_at', 'closed_at', 'created_at', 'updated_at'
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def validate_residence(self, value):
        if self.instance is not None and value != self.instance.residence:
            raise serializers.ValidationError("An assembly cannot move to another residence.")
        return value


class GeneralAssemblyListSerializer(serializers.ModelSerializer):
    residence_name = serializers.CharField(source='residence.name', read_only=True)
    resolutions_count = serializers.IntegerField(source='resolutions.count', read_only=True)

    class Meta:
        model = GeneralAssembly
        fields = ['id', 'residence', 'residence_name', 'title', 'scheduled_at', 'location', 'status',
                  'resolutions_count']


class CastVoteSerializer(serializers.Serializer):
    resolution = serializers.IntegerField()
    lot = serializers.IntegerField()
    choice = serializers.ChoiceField(choices=VoteChoice.CHOICES)


class AssemblyVoteSerializer(serializers.ModelSerializer):
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True)

    class Meta:
        model = AssemblyVote
        fields = ['id', 'resolution', 'lot', 'lot_number', 'voter', 'choice', 'shares', 'cast_at']
        read_only_fields = fields
