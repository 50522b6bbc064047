"""
Tests for work orders and service providers
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from core.constants import WorkOrderStatus, TicketStatus, UserRole
from core.exceptions import InvalidTransitionError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from maintenance.models import ServiceProvider, WorkOrder
from maintenance.services import WorkOrderService


class WorkOrderServiceTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.provider = ServiceProvider.objects.create(agency=self.owner.agency, name='Plombier SA', trade='Plumbing')
        self.ticket = TestDataFactory.create_ticket(self.residence, self.owner)
        self.work_order = WorkOrder.objects.create(
            residence=self.residence,
            ticket=self.ticket,
            title='Fix leak',
            estimated_cost=Decimal('200.00'),
        )
        self.service = WorkOrderService()

    def test_lifecycle_resolves_ticket(self):
        order = self.service.schedule(self.work_order, date(2024, 5, 2), self.provider)
        self.assertEqual(order.status, WorkOrderStatus.SCHEDULED)
        order = self.service.start(order)
        order = self.service.complete(order, actual_cost='230.00', notes='Pipe replaced')
        self.assertEqual(order.status, WorkOrderStatus.COMPLETED)
        self.assertEqual(order.actual_cost, Decimal('230.00'))
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, TicketStatus.RESOLVED)

    def test_completed_cannot_be_cancelled(self):
        order = self.service.complete(self.work_order)
        with self.assertRaises(InvalidTransitionError):
            self.service.cancel(order)

    def test_calendar_groups_by_day(self):
        self.service.schedule(self.work_order, date(2024, 5, 2))
        WorkOrder.objects.create(residence=self.residence, title='Other', scheduled_date=date(2024, 6, 1))
        grouped = self.service.calendar(WorkOrder.objects.all(), date(2024, 5, 1), date(2024, 5, 31))
        self.assertEqual(list(grouped), ['2024-05-02'])

    def test_cost_summary_excludes_cancelled(self):
        cancelled = WorkOrder.objects.create(
            residence=self.residence, title='Cancelled', estimated_cost=Decimal('999.00')
        )
        self.service.cancel(cancelled)
        self.service.complete(self.work_order, actual_cost='150.00')
        rows = self.service.cost_summary(WorkOrder.objects.all())
        self.assertEqual(rows[0]['work_orders'], 1)
        self.assertEqual(rows[0]['variance'], Decimal('-50.00'))

    def test_provider_from_other_agency_rejected(self):
        from django.core.exceptions import ValidationError as DjangoValidationError
        foreign = ServiceProvider.objects.create(agency=TestDataFactory.create_agency(), name='Elsewhere')
        self.work_order.provider = foreign
        with self.assertRaises(DjangoValidationError):
            self.work_order.save()


class WorkOrderAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_create_schedule_complete(self):
        response = self.client.post('/api/service-providers/', {'name': 'Ascenseurs Co'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        provider_id = response.data['id']

        response = self.client.post('/api/work-orders/', {
            'residence': self.residence.id, 'title': 'Elevator check', 'estimated_cost': '300.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order_id = response.data['id']

        response = self.client.post(
            f'/api/work-orders/{order_id}/schedule/',
            {'scheduled_date': '2024-09-10', 'provider': provider_id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], WorkOrderStatus.SCHEDULED)

        response = self.client.post(f'/api/work-orders/{order_id}/complete/', {'actual_cost': '280.00'}, format='json')
        self.assertEqual(response.data['status'], WorkOrderStatus.COMPLETED)

        response = self.client.post(f'/api/work-orders/{order_id}/start/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_calendar_requires_dates(self):
        response = self.client.get('/api/work-orders/calendar/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_residents_have_no_access(self):
        resident = TestDataFactory.create_user(role=UserRole.RESIDENT)
        client = AuthenticatedAPIClient().authenticate_user(resident)
        self.assertEqual(client.get('/api/work-orders/').status_code, status.HTTP_403_FORBIDDEN)
