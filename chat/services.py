"""
Chat service - conversations, messages and read tracking.
"""
from typing import Optional
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from core.constants import ConversationType, MessageType
from core.dto import ConversationDTO
from core.exceptions import ValidationError, PermissionDeniedError, NotFoundError
from core.services import BaseService
from residences.access import get_accessible_residence_ids, can_manage_residence
from .models import Conversation, ConversationParticipant, Message


def can_contact(sender, user) -> bool:
    """Users can talk when they share an agency or a residence"""
    if sender.is_platform_admin or user.is_platform_admin:
        return True
    if sender.agency_id and sender.agency_id == user.agency_id:
        return True
    shared = set(get_accessible_residence_ids(sender)) & set(get_accessible_residence_ids(user))
    return bool(shared)


class ChatService(BaseService):

    def _find_direct(self, user_a, user_b) -> Optional[Conversation]:
        return (
            Conversation.objects.filter(conversation_type=ConversationType.DIRECT)
            .annotate(member_count=Count('participants', distinct=True))
            .filter(member_count=2)
            .filter(participants__user=user_a)
            .filter(participants__user=user_b)
            .first()
        )

    def _broadcast_recipients(self, residence):
        from users.models import User
        return list(
            User.objects.filter(
                occupancies__lot__residence=residence,
                occupancies__is_active=True,
                is_active=True,
            ).distinct()
        )

    @transaction.atomic
    def start_conversation(self, creator, data: ConversationDTO, residence=None):
        """
        Returns (conversation, created). A DIRECT conversation that already
        exists between the two users is returned as is.

        Raises:
            ValidationError: wrong participant count or missing group name
            PermissionDeniedError: broadcast by a non-staff user, or unreachable participants
        """
        from users.models import User
        other_ids = set(data.participant_ids) - {creator.id}
        others = list(User.objects.filter(id__in=other_ids, is_active=True))
        if len(others) != len(other_ids):
            raise NotFoundError('User', message="Some participants do not exist")

        conversation_type = data.conversation_type
        if conversation_type == ConversationType.BROADCAST:
            if not creator.is_staff_role:
                raise PermissionDeniedError("Only staff can broadcast")
            if residence is None or not can_manage_residence(creator, residence):
                raise PermissionDeniedError("Broadcasts need a residence you manage")
            recipients = {user.id: user for user in others}
            for user in self._broadcast_recipients(residence):
                recipients.setdefault(user.id, user)
            recipients.pop(creator.id, None)
            others = list(recipients.values())
        else:
            for user in others:
                if not can_contact(creator, user):
                    raise PermissionDeniedError(f"You cannot start a conversation with {user.username}")

        if not others:
            raise ValidationError("A conversation needs at least one other participant", code="NO_PARTICIPANTS")

        if conversation_type == ConversationType.DIRECT:
            if len(others) != 1:
                raise ValidationError("A direct conversation has exactly one other participant",
                                      code="DIRECT_PARTICIPANTS")
            existing = self._find_direct(creator, others[0])
            if existing:
                if data.first_message:
                    self.send_message(existing, creator, data.first_message)
                return existing, False
        if conversation_type == ConversationType.GROUP and not data.name.strip():
            raise ValidationError("Group conversations need a name", code="NAME_REQUIRED")

        conversation = Conversation.objects.create(
            residence=residence,
            name=data.name,
            conversation_type=conversation_type,
            created_by=creator,
        )
        ConversationParticipant.objects.bulk_create([
            ConversationParticipant(conversation=conversation, user=user)
            for user in [creator] + others
        ])
        if data.first_message:
            self.send_message(conversation, creator, data.first_message)
        self.log_info(
            "Conversation started",
            conversation_id=conversation.id, type=conversation_type, participants=len(others) + 1
        )
        return conversation, True

    def is_participant(self, conversation, user) -> bool:
        return conversation.participants.filter(user=user).exists()

    @transaction.atomic
    def send_message(self, conversation, sender, content: str, attachments=None) -> Message:
        if not self.is_participant(conversation, sender):
            raise PermissionDeniedError("You are not part of this conversation")
        if conversation.conversation_type == ConversationType.BROADCAST and not sender.is_staff_role:
            raise PermissionDeniedError("Only staff can post in a broadcast")
        if not content or not content.strip():
            raise ValidationError("Message cannot be empty", code="EMPTY_MESSAGE")

        message = Message.objects.create(
            conversation=conversation,
            sender=sender,
            content=content.strip(),
            message_type=MessageType.TEXT,
            attachments=attachments or [],
        )
        conversation.last_message_at = message.created_at
        conversation.save(update_fields=['last_message_at', 'updated_at'])
        ConversationParticipant.objects.filter(conversation=conversation, user=sender).update(
            last_read_at=message.created_at
        )
        return message

    def mark_read(self, conversation, user):
        updated = ConversationParticipant.objects.filter(conversation=conversation, user=user).update(
            last_read_at=timezone.now()
        )
        if not updated:
            raise PermissionDeniedError("You are not part of this conversation")

    def unread_count(self, conversation, user) -> int:
        participant = conversation.participants.filter(user=user).first()
        if participant is None:
            return 0
        messages = conversation.messages.exclude(sender=user)
        if participant.last_read_at:
            messages = messages.filter(created_at__gt=participant.last_read_at)
        return messages.count()

    def conversations_for(self, user):
        """Conversations of the user, most recent activity first"""
        from django.db.models.functions import Coalesce
        return (
            Conversation.objects.filter(participants__user=user)
            .annotate(activity=Coalesce('last_message_at', 'created_at'))
            .order_by('-activity', '-id')
            .prefetch_related('participants__user')
        )
