from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.dto import ConversationDTO
from core.exceptions import NotFoundError
from residences.access import get_accessible_residences
from .serializers import (
    ConversationSerializer, MessageSerializer, StartConversationSerializer, SendMessageSerializer
)
from .services import ChatService


class ConversationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Conversations of the current user, most recent activity first.

    POST /conversations/start/ to open one, /messages/ to read or post.
    """
    serializer_class = ConversationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return ChatService().conversations_for(self.request.user)

    @action(detail=False, methods=['post'])
    def start(self, request):
        """
        Body: { "participant_ids": [..], "conversation_type": "DIRECT|GROUP|BROADCAST",
                "name": "...", "residence": <id>, "first_message": "..." }
        Returns the existing conversation (200) for a known direct pair.
        """
        serializer = StartConversationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        residence = None
        if data.get('residence'):
            residence = get_accessible_residences(request.user).filter(id=data['residence']).first()
            if residence is None:
                raise NotFoundError('Residence', data['residence'])

        conversation, created = ChatService().start_conversation(request.user, ConversationDTO(
            participant_ids=data['participant_ids'],
            conversation_type=data['conversation_type'],
            name=data['name'],
            residence_id=residence.id if residence else None,
            first_message=data['first_message'],
        ), residence=residence)
        return Response(
            ConversationSerializer(conversation, context={'request': request}).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    @action(detail=True, methods=['get', 'post'])
    def messages(self, request, pk=None):
        """GET: messages in order (?after=<message id>). POST: { "content": "...", "attachments": [] }"""
        conversation = self.get_object()
        service = ChatService()
        if request.method == 'POST':
            serializer = SendMessageSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            message = service.send_message(
                conversation, request.user,
                serializer.validated_data['content'],
                serializer.validated_data.get('attachments')
            )
            return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

        messages = conversation.messages.select_related('sender')
        after = request.query_params.get('after')
        if after and after.isdigit():
            messages = messages.filter(id__gt=int(after))
        return Response(MessageSerializer(messages, many=True).data)

    @action(detail=True, methods=['post'], url_path='mark-read')
    def mark_read(self, request, pk=None):
        ChatService().mark_read(self.get_object(), request.user)
        return Response({'unread_count': 0})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        """Unread messages per conversation and in total"""
        service = ChatService()
        counts = {
            conversation.id: service.unread_count(conversation, request.user)
            for conversation in self.get_queryset()
        }
        return Response({'total': sum(counts.values()), 'conversations': counts})
