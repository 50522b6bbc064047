"""
Tests for conversations and messages
"""
from django.test import TestCase
from rest_framework import status

from core.constants import ConversationType, UserRole
from core.dto import ConversationDTO
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from chat.models import Conversation, Message
from chat.services import ChatService, can_contact


class ChatTestMixin:

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.alice = TestDataFactory.create_user()
        self.bob = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.alice, TestDataFactory.create_lot(self.residence))
        TestDataFactory.create_occupancy(self.bob, TestDataFactory.create_lot(self.residence))

        elsewhere = TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.stranger = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.stranger, TestDataFactory.create_lot(elsewhere))
        self.service = ChatService()

    def _direct(self, creator, other, first_message=''):
        return self.service.start_conversation(creator, ConversationDTO(
            participant_ids=[other.id], first_message=first_message
        ))


class ContactRulesTests(ChatTestMixin, TestCase):

    def test_neighbours_can_talk(self):
        self.assertTrue(can_contact(self.alice, self.bob))

    def test_staff_reaches_residents_of_their_residences(self):
        self.assertTrue(can_contact(self.owner, self.alice))
        self.assertFalse(can_contact(self.owner, self.stranger))

    def test_colleagues_can_talk(self):
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.owner.agency)
        self.assertTrue(can_contact(self.owner, manager))

    def test_strangers_cannot_talk(self):
        self.assertFalse(can_contact(self.alice, self.stranger))

    def test_platform_admin_reaches_everyone(self):
        self.assertTrue(can_contact(TestDataFactory.create_admin(), self.stranger))


class ChatServiceTests(ChatTestMixin, TestCase):

    def test_direct_conversation_is_reused(self):
        conversation, created = self._direct(self.alice, self.bob, first_message='Hello')
        self.assertTrue(created)
        self.assertEqual(conversation.participants.count(), 2)
        self.assertEqual(conversation.messages.count(), 1)

        again, created = self._direct(self.bob, self.alice, first_message='Hi back')
        self.assertFalse(created)
        self.assertEqual(again.id, conversation.id)
        self.assertEqual(conversation.messages.count(), 2)

    def test_direct_lookup_matches_the_exact_pair(self):
        self.service.start_conversation(self.alice, ConversationDTO(
            participant_ids=[self.bob.id, self.owner.id],
            conversation_type=ConversationType.GROUP,
            name='Lobby'
        ))
        with_owner, _ = self._direct(self.alice, self.owner)
        with_bob, created = self._direct(self.alice, self.bob)
        self.assertTrue(created)
        self.assertNotEqual(with_bob.id, with_owner.id)

        again, created = self._direct(self.bob, self.alice)
        self.assertFalse(created)
        self.assertEqual(again.id, with_bob.id)
        self.assertEqual(Conversation.objects.filter(conversation_type=ConversationType.DIRECT).count(), 2)

    def test_direct_needs_exactly_one_other(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.start_conversation(self.alice, ConversationDTO(
                participant_ids=[self.bob.id, self.owner.id]
            ))
        self.assertEqual(ctx.exception.code, 'DIRECT_PARTICIPANTS')

    def test_conversation_with_self_only_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.start_conversation(self.alice, ConversationDTO(participant_ids=[self.alice.id]))
        self.assertEqual(ctx.exception.code, 'NO_PARTICIPANTS')

    def test_unknown_participant(self):
        with self.assertRaises(NotFoundError):
            self.service.start_conversation(self.alice, ConversationDTO(participant_ids=[999999]))

    def test_group_needs_a_name(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.start_conversation(self.alice, ConversationDTO(
                participant_ids=[self.bob.id, self.owner.id],
                conversation_type=ConversationType.GROUP
            ))
        self.assertEqual(ctx.exception.code, 'NAME_REQUIRED')

    def test_group_conversation(self):
        conversation, created = self.service.start_conversation(self.alice, ConversationDTO(
            participant_ids=[self.bob.id, self.owner.id],
            conversation_type=ConversationType.GROUP,
            name='Garden committee'
        ))
        self.assertTrue(created)
        self.assertEqual(conversation.participants.count(), 3)

    def test_stranger_cannot_be_contacted(self):
        with self.assertRaises(PermissionDeniedError):
            self._direct(self.alice, self.stranger)

    def test_broadcast_reaches_active_occupants(self):
        conversation, _ = self.service.start_conversation(self.owner, ConversationDTO(
            conversation_type=ConversationType.BROADCAST,
            name='Water shut-off',
            first_message='Water will be cut on Monday'
        ), residence=self.residence)
        members = set(conversation.participants.values_list('user_id', flat=True))
        self.assertEqual(members, {self.owner.id, self.alice.id, self.bob.id})

        with self.assertRaises(PermissionDeniedError):
            self.service.send_message(conversation, self.alice, 'Why?')

    def test_residents_cannot_broadcast(self):
        with self.assertRaises(PermissionDeniedError):
            self.service.start_conversation(self.alice, ConversationDTO(
                conversation_type=ConversationType.BROADCAST
            ), residence=self.residence)

    def test_broadcast_needs_a_managed_residence(self):
        with self.assertRaises(PermissionDeniedError):
            self.service.start_conversation(self.owner, ConversationDTO(
                conversation_type=ConversationType.BROADCAST
            ))

    def test_send_message_rules(self):
        conversation, _ = self._direct(self.alice, self.bob)
        with self.assertRaises(PermissionDeniedError):
            self.service.send_message(conversation, self.owner, 'Intrusion')
        with self.assertRaises(ValidationError):
            self.service.send_message(conversation, self.alice, '   ')

        message = self.service.send_message(conversation, self.alice, '  Trimmed  ')
        self.assertEqual(message.content, 'Trimmed')
        conversation.refresh_from_db()
        self.assertEqual(conversation.last_message_at, message.created_at)

    def test_unread_count_and_mark_read(self):
        conversation, _ = self._direct(self.alice, self.bob)
        self.service.send_message(conversation, self.alice, 'One')
        self.service.send_message(conversation, self.alice, 'Two')

        self.assertEqual(self.service.unread_count(conversation, self.alice), 0)
        self.assertEqual(self.service.unread_count(conversation, self.bob), 2)

        self.service.mark_read(conversation, self.bob)
        self.assertEqual(self.service.unread_count(conversation, self.bob), 0)

        with self.assertRaises(PermissionDeniedError):
            self.service.mark_read(conversation, self.owner)

    def test_conversations_ordered_by_activity(self):
        first, _ = self._direct(self.alice, self.bob)
        second, _ = self._direct(self.alice, self.owner)
        self.service.send_message(first, self.alice, 'Bump')
        ids = list(self.service.conversations_for(self.alice).values_list('id', flat=True))
        self.assertEqual(ids, [first.id, second.id])


class ConversationAPITests(ChatTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient().authenticate_user(self.alice)

    def _start(self, **payload):
        payload.setdefault('participant_ids', [self.bob.id])
        return self.client.post('/api/conversations/start/', payload, format='json')

    def test_start_and_reuse_direct(self):
        response = self._start(first_message='Hello Bob')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['last_message']['content'], 'Hello Bob')

        response = self._start()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Conversation.objects.count(), 1)

    def test_start_with_stranger_forbidden(self):
        response = self._start(participant_ids=[self.stranger.id])
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_post_and_read_messages(self):
        conversation_id = self._start().data['id']
        url = f'/api/conversations/{conversation_id}/messages/'

        response = self.client.post(url, {'content': 'First'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        first_id = response.data['id']
        self.client.post(url, {'content': 'Second'}, format='json')

        response = self.client.get(url)
        self.assertEqual([m['content'] for m in response.data], ['First', 'Second'])
        response = self.client.get(f'{url}?after={first_id}')
        self.assertEqual([m['content'] for m in response.data], ['Second'])

    def test_unread_count_endpoint(self):
        conversation_id = self._start(first_message='Ping').data['id']
        bob = AuthenticatedAPIClient().authenticate_user(self.bob)

        response = bob.get('/api/conversations/unread-count/')
        self.assertEqual(response.data['total'], 1)

        bob.post(f'/api/conversations/{conversation_id}/mark-read/')
        self.assertEqual(bob.get('/api/conversations/unread-count/').data['total'], 0)

    def test_non_participant_gets_404(self):
        conversation_id = self._start().data['id']
        client = AuthenticatedAPIClient().authenticate_user(self.owner)
        response = client.get(f'/api/conversations/{conversation_id}/messages/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Message.objects.filter(sender=self.owner).exists())

    def test_list_only_own_conversations(self):
        self._start()
        self.service.start_conversation(self.bob, ConversationDTO(participant_ids=[self.owner.id]))
        response = self.client.get('/api/conversations/')
        self.assertEqual(response.data['count'], 1)
