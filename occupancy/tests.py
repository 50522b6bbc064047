"""
Tests for occupancy assignment rules
"""
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase
from rest_framework import status

from core.constants import OccupancyType, UserRole
from core.exceptions import ConflictError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from occupancy.models import Occupancy
from occupancy.services import OccupancyService


class OccupancyServiceTests(TestCase):

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.service = OccupancyService()

    def _assign(self, user=None, occupancy_type=OccupancyType.TENANT, **extra):
        return self.service.assign(
            user=user or TestDataFactory.create_user(),
            lot=self.lot,
            occupancy_type=occupancy_type,
            start_date=date(2024, 1, 1),
            **extra
        )

    def test_owner_tenant_and_residents_coexist(self):
        self._assign(occupancy_type=OccupancyType.OWNER)
        self._assign(occupancy_type=OccupancyType.TENANT, rent_amount=Decimal('700'))
        self._assign(occupancy_type=OccupancyType.RESIDENT)
        self.assertEqual(self.lot.current_occupancies.count(), 3)

    def test_second_active_tenant_conflicts(self):
        self._assign()
        with self.assertRaises(ConflictError) as ctx:
            self._assign()
        self.assertEqual(ctx.exception.code, 'LOT_ALREADY_RENTED')

    def test_same_user_twice_conflicts(self):
        user = TestDataFactory.create_user()
        self._assign(user=user, occupancy_type=OccupancyType.RESIDENT)
        with self.assertRaises(ConflictError):
            self._assign(user=user, occupancy_type=OccupancyType.OWNER)

    def test_end_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            self._assign(end_date=date(2023, 12, 1))

    def test_rent_only_for_tenants(self):
        with self.assertRaises(DjangoValidationError):
            self._assign(occupancy_type=OccupancyType.RESIDENT, rent_amount=Decimal('100'))

    def test_vacate_frees_the_lot(self):
        first = self._assign()
        self.service.vacate(first, date(2024, 6, 30))
        first.refresh_from_db()
        self.assertFalse(first.is_active)
        self.assertEqual(first.end_date, date(2024, 6, 30))
        self._assign()

    def test_vacate_twice_rejected(self):
        occupancy = self._assign()
        self.service.vacate(occupancy)
        with self.assertRaises(ValidationError):
            self.service.vacate(occupancy)

    def test_vacate_clears_primary_resident(self):
        user = TestDataFactory.create_user()
        occupancy = self._assign(user=user)
        self.lot.primary_resident = user
        self.lot.save()
        self.service.vacate(occupancy)
        self.lot.refresh_from_db()
        self.assertIsNone(self.lot.primary_resident)


class OccupancyAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def _post(self, user):
        return self.client.post('/api/occupancies/', {
            'user_id': user.id,
            'lot_id': self.lot.id,
            'occupancy_type': OccupancyType.TENANT,
            'start_date': '2024-01-01',
            'rent_amount': '650.00',
            'charges_amount': '50.00',
        }, format='json')

    def test_assign_and_conflict(self):
        response = self._post(TestDataFactory.create_user())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['monthly_total'], Decimal('700.00'))

        response = self._post(TestDataFactory.create_user())
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_lot_of_inaccessible_residence_rejected(self):
        foreign_lot = TestDataFactory.create_lot(TestDataFactory.create_residence(TestDataFactory.create_agency()))
        response = self.client.post('/api/occupancies/', {
            'user_id': TestDataFactory.create_user().id,
            'lot_id': foreign_lot.id,
            'start_date': '2024-01-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_vacate_endpoint(self):
        occupancy = TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot)
        response = self.client.post(
            f'/api/occupancies/{occupancy.id}/vacate/', {'end_date': '2024-03-31'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_resident_sees_only_own_occupancies(self):
        resident = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(resident, self.lot)
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot)
        client = AuthenticatedAPIClient().authenticate_user(resident)
        response = client.get('/api/occupancies/')
        self.assertEqual(response.data['count'], 1)

    def test_manager_without_grant_sees_nothing(self):
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), self.lot)
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.owner.agency)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.get('/api/occupancies/active/')
        self.assertEqual(response.data, [])
        self.assertEqual(Occupancy.objects.count(), 1)
