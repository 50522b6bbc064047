"""
Tests for dashboard metrics
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from core.constants import AgencyStatus, LotType, OccupancyType, TicketPriority, TicketStatus, UserRole
from core.dto import PaymentDTO
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from common.utils import add_months, first_day_of_month
from dashboard.services import DashboardService, platform_overview
from payments.services import PaymentService
from tickets.models import Ticket


class DashboardServiceTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency, name='Les Tilleuls')
        TestDataFactory.create_building(self.residence)
        self.lot_a = TestDataFactory.create_lot(self.residence, 'A1')
        self.lot_b = TestDataFactory.create_lot(self.residence, 'B1')
        self.parking = TestDataFactory.create_lot(self.residence, 'P1', lot_type=LotType.PARKING)
        self.tenant, self.occupancy = TestDataFactory.create_tenant(self.lot_a)
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot_a)

        today = timezone.localdate()
        paid = TestDataFactory.create_payment(self.tenant, self.residence, lot=self.lot_a, due_date=today)
        PaymentService().pay(paid.id, PaymentDTO(amount=Decimal('500')))
        TestDataFactory.create_payment(self.tenant, self.residence, lot=self.lot_a, amount=Decimal('300'),
                                       due_date=today)

        TestDataFactory.create_ticket(self.residence, self.tenant, priority=TicketPriority.URGENT)
        TestDataFactory.create_ticket(self.residence, self.tenant)
        TestDataFactory.create_ticket(self.residence, self.tenant, status=TicketStatus.CLOSED)

        # Other agency data never leaks in
        foreign = TestDataFactory.create_residence(TestDataFactory.create_agency())
        TestDataFactory.create_lot(foreign)
        TestDataFactory.create_ticket(foreign, self.tenant)

        self.service = DashboardService([self.residence.id])

    def test_summary(self):
        summary = self.service.summary()
        self.assertEqual(summary['residences'], 1)
        self.assertEqual(summary['buildings'], 1)
        self.assertEqual(summary['lots'], {
            'total': 3, 'occupied': 1, 'vacant': 2, 'occupancy_rate': 33.3
        })
        self.assertEqual(summary['tickets'], {'open_tickets': 2, 'urgent_tickets': 1})
        self.assertEqual(summary['payments']['expected'], Decimal('800.00'))
        self.assertEqual(summary['payments']['collected'], Decimal('500.00'))
        self.assertEqual(summary['payments']['collection_rate'], 62.5)

    def test_occupancy(self):
        result = self.service.occupancy()
        self.assertEqual(result['by_residence'][0]['residence_name'], 'Les Tilleuls')
        self.assertEqual(result['by_residence'][0]['occupied'], 1)
        by_type = {row['lot_type']: row for row in result['by_lot_type']}
        self.assertEqual(by_type[LotType.APARTMENT]['total'], 2)
        self.assertEqual(by_type[LotType.PARKING]['occupancy_rate'], 0.0)

    def test_financial_series_is_zero_filled(self):
        series = self.service.financial(months=3)
        current = first_day_of_month(timezone.localdate())
        self.assertEqual(
            [row['month'] for row in series],
            [add_months(current, offset).strftime('%Y-%m') for offset in (-2, -1, 0)]
        )
        self.assertEqual(series[0]['due'], Decimal('0.00'))
        self.assertEqual(series[0]['collection_rate'], 0.0)
        self.assertEqual(series[-1]['due'], Decimal('800.00'))
        self.assertEqual(series[-1]['outstanding'], Decimal('300.00'))

    def test_tickets(self):
        ticket = Ticket.objects.filter(residence=self.residence, status=TicketStatus.OPEN).first()
        ticket.status = TicketStatus.RESOLVED
        ticket.save()

        result = self.service.tickets(months=2)
        self.assertEqual(result['total'], 3)
        self.assertEqual(result['by_status'][TicketStatus.RESOLVED], 1)
        self.assertIsNotNone(result['average_resolution_hours'])
        self.assertEqual(len(result['opened_per_month']), 2)
        self.assertEqual(result['opened_per_month'][-1]['count'], 3)

    def test_tickets_without_resolution(self):
        self.assertIsNone(DashboardService([]).tickets()['average_resolution_hours'])

    def test_residents(self):
        result = self.service.residents()
        self.assertEqual(result['active_occupancies'], 2)
        self.assertEqual(result['distinct_occupants'], 2)
        self.assertEqual(result['by_type'], {OccupancyType.RESIDENT: 1, OccupancyType.TENANT: 1})

    def test_recent_activity(self):
        result = self.service.recent_activity()
        self.assertEqual(len(result['recent_tickets']), 3)
        self.assertEqual(len(result['recent_payments']), 2)
        self.assertEqual(len(result['recent_occupancies']), 2)

    def test_empty_scope(self):
        summary = DashboardService([]).summary()
        self.assertEqual(summary['lots']['total'], 0)
        self.assertEqual(summary['lots']['occupancy_rate'], 0.0)


class PlatformOverviewTests(TestCase):

    def test_counts_trials(self):
        TestDataFactory.create_agency(status=AgencyStatus.TRIAL,
                                      trial_ends_at=timezone.now() + timedelta(days=3))
        TestDataFactory.create_agency(status=AgencyStatus.ACTIVE)
        overview = platform_overview()
        self.assertEqual(overview['agencies']['total'], 2)
        self.assertEqual(overview['agencies']['trials'], 1)
        self.assertEqual(len(overview['trials_expiring']), 1)


class DashboardAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        TestDataFactory.create_lot(self.residence)
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_summary(self):
        response = self.client.get('/api/dashboard/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['lots']['total'], 1)

    def test_inaccessible_residence_gives_empty_scope(self):
        foreign = TestDataFactory.create_residence(TestDataFactory.create_agency())
        TestDataFactory.create_lot(foreign)
        response = self.client.get(f'/api/dashboard/summary/?residence={foreign.id}')
        self.assertEqual(response.data['residences'], 0)
        self.assertEqual(response.data['lots']['total'], 0)

    def test_financial_months_are_clamped(self):
        response = self.client.get('/api/dashboard/financial/?months=120')
        self.assertEqual(response.data['months'], 36)
        self.assertEqual(len(response.data['series']), 36)

        response = self.client.get('/api/dashboard/financial/?months=abc')
        self.assertEqual(response.data['months'], 12)

    def test_other_endpoints(self):
        for url in ('occupancy', 'tickets', 'residents', 'recent-activity'):
            response = self.client.get(f'/api/dashboard/{url}/')
            self.assertEqual(response.status_code, status.HTTP_200_OK, url)

    def test_platform_is_admin_only(self):
        self.assertEqual(self.client.get('/api/dashboard/platform/').status_code, status.HTTP_403_FORBIDDEN)
        admin = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin())
        self.assertEqual(admin.get('/api/dashboard/platform/').status_code, status.HTTP_200_OK)

    def test_resident_sees_own_residence(self):
        resident = TestDataFactory.create_user(role=UserRole.RESIDENT)
        TestDataFactory.create_occupancy(resident, self.residence.lots.first())
        client = AuthenticatedAPIClient().authenticate_user(resident)
        response = client.get('/api/dashboard/summary/')
        self.assertEqual(response.data['residences'], 1)
        self.assertEqual(response.data['lots']['occupied'], 1)
