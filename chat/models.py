from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from core.constants import ConversationType, MessageType
from residences.models import Residence


class Conversation(models.Model):
    residence = models.ForeignKey(
        Residence, on_delete=models.CASCADE, null=True, blank=True, related_name='conversations'
    )
    name = models.CharField(max_length=200, blank=True)
    conversation_type = models.CharField(
        max_length=20, choices=ConversationType.CHOICES, default=ConversationType.DIRECT
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='created_conversations'
    )
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return self.name or f"{self.get_conversation_type_display()} #{self.id}"

    @property
    def last_activity(self):
        return self.last_message_at or self.created_at


class ConversationParticipant(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='participants')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='conversation_memberships'
    )
    joined_at = models.DateTimeField(auto_now_add=True)
    last_read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ['conversation', 'user']

    def __str__(self):
        return f"{self.user.username} in {self.conversation}"


class Message(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='messages'
    )
    content = models.TextField()
    message_type = models.CharField(max_length=10, choices=MessageType.CHOICES, default=MessageType.TEXT)
    attachments = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['conversation', 'created_at']),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.content[:40]}"

    def clean(self):
        if not self.content or not self.content.strip():
            raise ValidationError({'content': "Message cannot be empty."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
