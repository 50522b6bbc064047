"""
Tests for tickets: visibility, status machine and comments
"""
from datetime import timedelta

from django.test import TestCase
from rest_framework import status

from core.constants import TicketStatus, TicketScope, UserRole
from core.exceptions import InvalidTransitionError, PermissionDeniedError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tickets.models import Ticket
from tickets.services import TicketService, get_visible_tickets


class TicketModelTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)

    def test_resolved_at_follows_status(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.owner)
        self.assertIsNone(ticket.resolved_at)
        ticket.status = TicketStatus.RESOLVED
        ticket.save()
        self.assertIsNotNone(ticket.resolved_at)

        ticket.status = TicketStatus.IN_PROGRESS
        ticket.save()
        self.assertIsNone(ticket.resolved_at)

    def test_resolution_hours(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.owner)
        ticket.resolved_at = ticket.created_at + timedelta(hours=5, minutes=30)
        self.assertEqual(ticket.resolution_hours, 5.5)


class TicketServiceTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.resident = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.resident, self.lot)
        self.service = TicketService()

    def test_resident_creates_ticket(self):
        ticket = self.service.create_ticket(
            self.resident, residence=self.residence, title='Leak', description='Water everywhere'
        )
        self.assertEqual(ticket.created_by, self.resident)
        self.assertEqual(ticket.status, TicketStatus.OPEN)

    def test_outsider_cannot_create_ticket(self):
        outsider = TestDataFactory.create_user()
        with self.assertRaises(PermissionDeniedError):
            self.service.create_ticket(outsider, residence=self.residence, title='X', description='Y')

    def test_transition_table(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident)
        ticket, old = self.service.change_status(ticket, TicketStatus.IN_PROGRESS, self.owner)
        self.assertEqual(old, TicketStatus.OPEN)
        ticket, _ = self.service.change_status(ticket, TicketStatus.RESOLVED, self.owner)
        ticket, _ = self.service.change_status(ticket, TicketStatus.CLOSED, self.owner)
        with self.assertRaises(InvalidTransitionError) as ctx:
            self.service.change_status(ticket, TicketStatus.OPEN, self.owner)
        self.assertEqual(ctx.exception.details['allowed'], [])

    def test_reopen_resolved_ticket(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident, status=TicketStatus.RESOLVED)
        ticket, _ = self.service.change_status(ticket, TicketStatus.IN_PROGRESS, self.owner)
        self.assertIsNone(ticket.resolved_at)

    def test_resident_cannot_change_status(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident)
        with self.assertRaises(PermissionDeniedError):
            self.service.change_status(ticket, TicketStatus.RESOLVED, self.resident)

    def test_assign_requires_staff_with_access(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident)
        with self.assertRaises(ValidationError):
            self.service.assign(ticket, self.resident)
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.owner.agency)
        with self.assertRaises(ValidationError):
            self.service.assign(ticket, manager)
        TestDataFactory.grant_access(manager, self.residence)
        self.assertEqual(self.service.assign(ticket, manager).assignee, manager)

    def test_visibility(self):
        own = TestDataFactory.create_ticket(self.residence, self.resident)
        neighbour = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(neighbour, TestDataFactory.create_lot(self.residence))
        private = TestDataFactory.create_ticket(self.residence, neighbour)
        common = TestDataFactory.create_ticket(self.residence, neighbour, scope=TicketScope.COMMON)

        self.assertEqual(set(get_visible_tickets(self.resident)), {own, common})
        self.assertEqual(set(get_visible_tickets(self.owner)), {own, private, common})

    def test_empty_comment_rejected(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident)
        with self.assertRaises(ValidationError):
            self.service.add_comment(ticket, self.resident, '   ')


class TicketAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.resident = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.resident, self.lot)
        self.resident_client = AuthenticatedAPIClient().authenticate_user(self.resident)
        self.staff_client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_create_and_progress(self):
        response = self.resident_client.post('/api/tickets/', {
            'residence': self.residence.id,
            'lot': self.lot.id,
            'title': 'Broken door',
            'description': 'Front door does not lock',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        ticket_id = response.data['id']

        response = self.resident_client.post(
            f'/api/tickets/{ticket_id}/change-status/', {'status': 'RESOLVED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.staff_client.post(
            f'/api/tickets/{ticket_id}/change-status/', {'status': 'RESOLVED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], TicketStatus.RESOLVED)

    def test_invalid_transition_returns_422(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident, status=TicketStatus.CLOSED)
        response = self.staff_client.post(
            f'/api/tickets/{ticket.id}/change-status/', {'status': 'OPEN'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'INVALID_TRANSITION')

    def test_comments(self):
        ticket = TestDataFactory.create_ticket(self.residence, self.resident)
        response = self.resident_client.post(
            f'/api/tickets/{ticket.id}/comments/', {'content': 'Still broken'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.staff_client.get(f'/api/tickets/{ticket.id}/comments/')
        self.assertEqual(len(response.data), 1)

    def test_open_filter(self):
        TestDataFactory.create_ticket(self.residence, self.resident)
        TestDataFactory.create_ticket(self.residence, self.resident, status=TicketStatus.CLOSED)
        response = self.staff_client.get('/api/tickets/open/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(Ticket.objects.count(), 2)
