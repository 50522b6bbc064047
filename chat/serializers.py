from rest_framework import serializers
from core.constants import ConversationType
from users.serializers import UserListSerializer
from .models import Conversation, Message


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.username', read_only=True, default=None)

    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'sender_name', 'content', 'message_type', 'attachments', 'created_at']
        read_only_fields = ['id', 'conversation', 'sender', 'message_type', 'created_at']


class ConversationSerializer(serializers.ModelSerializer):
    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()
    last_activity = serializers.ReadOnlyField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'residence', 'name', 'conversation_type', 'created_by', 'participants',
            'last_message', 'unread_count', 'last_activity', 'created_at'
        ]

    def get_participants(self, obj):
        return UserListSerializer([p.user for p in obj.participants.all()], many=True).data

    def get_last_message(self, obj):
        message = obj.messages.order_by('-created_at', '-id').first()
        return MessageSerializer(message).data if message else None

    def get_unread_count(self, obj):
        from .services import ChatService
        request = self.context.get('request')
        if not (request and request.user.is_authenticated):
            return 0
        return ChatService().unread_count(obj, request.user)


class StartConversationSerializer(serializers.Serializer):
    participant_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    conversation_type = serializers.ChoiceField(choices=ConversationType.CHOICES, default=ConversationType.DIRECT)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    residence = serializers.IntegerField(required=False, allow_null=True)
    first_message = serializers.CharField(required=False, allow_blank=True, default='')


class SendMessageSerializer(serializers.Serializer):
    content = serializers.CharField()
    attachments = serializers.ListField(child=serializers.URLField(), required=False, default=list)
