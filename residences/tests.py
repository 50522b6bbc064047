"""
Tests for residences: access rules, hierarchy, bulk lots and join codes
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase
from rest_framework import status

from core.constants import UserRole, OccupancyType, LotStatus
from core.dto import BulkLotsDTO
from core.exceptions import ValidationError, ConflictError, NotFoundError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from residences.access import get_accessible_residences, can_access_residence, can_manage_residence
from residences.models import Lot, ResidenceAccess
from residences.services import ResidenceService, JoinService
from occupancy.models import Occupancy


class ResidenceAccessRulesTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.residence = TestDataFactory.create_residence(self.agency)
        self.other_residence = TestDataFactory.create_residence(self.agency)

    def test_owner_sees_all_agency_residences(self):
        TestDataFactory.create_residence(TestDataFactory.create_agency())
        self.assertEqual(
            set(get_accessible_residences(self.owner)), {self.residence, self.other_residence}
        )

    def test_manager_needs_grant(self):
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        self.assertFalse(can_access_residence(manager, self.residence))
        TestDataFactory.grant_access(manager, self.residence, self.owner)
        self.assertEqual(list(get_accessible_residences(manager)), [self.residence])
        self.assertTrue(can_manage_residence(manager, self.residence))

    def test_cs_reads_but_does_not_manage(self):
        cs = TestDataFactory.create_user(role=UserRole.CS)
        TestDataFactory.grant_access(cs, self.residence)
        self.assertTrue(can_access_residence(cs, self.residence))
        self.assertFalse(can_manage_residence(cs, self.residence))

    def test_resident_sees_residence_of_active_occupancy(self):
        resident = TestDataFactory.create_user()
        lot = TestDataFactory.create_lot(self.residence)
        occupancy = TestDataFactory.create_occupancy(resident, lot)
        self.assertEqual(list(get_accessible_residences(resident)), [self.residence])

        occupancy.is_active = False
        occupancy.save()
        self.assertFalse(get_accessible_residences(resident).exists())

    def test_grant_to_owner_rejected(self):
        other_owner = TestDataFactory.create_owner(self.agency)
        with self.assertRaises(DjangoValidationError):
            ResidenceAccess.objects.create(user=other_owner, residence=self.residence)


class LotModelTests(TestCase):

    def setUp(self):
        self.agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(self.agency)

    def test_join_code_generated(self):
        lot = TestDataFactory.create_lot(self.residence)
        self.assertEqual(len(lot.join_code), 6)

    def test_building_must_match_residence(self):
        other = TestDataFactory.create_residence(self.agency)
        building = TestDataFactory.create_building(other)
        with self.assertRaises(DjangoValidationError):
            TestDataFactory.create_lot(self.residence, building=building)

    def test_status_follows_active_occupancy(self):
        lot = TestDataFactory.create_lot(self.residence)
        self.assertEqual(lot.status, LotStatus.VACANT)
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), lot)
        self.assertEqual(lot.status, LotStatus.OCCUPIED)


class ResidenceServiceTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        self.building = TestDataFactory.create_building(self.residence, name='A')
        self.service = ResidenceService()

    def test_bulk_create_skips_existing(self):
        TestDataFactory.create_lot(self.residence, lot_number='A2')
        result = self.service.bulk_create_lots(self.residence, BulkLotsDTO(
            residence_id=self.residence.id, building_id=self.building.id,
            prefix='A', start=1, end=3, tantiemes=50,
        ))
        self.assertEqual(result['created'], ['A1', 'A3'])
        self.assertEqual(result['skipped'], ['A2'])
        self.assertEqual(Lot.objects.filter(building=self.building).count(), 2)
        codes = set(Lot.objects.values_list('join_code', flat=True))
        self.assertEqual(len(codes), 3)

    def test_bulk_create_invalid_range(self):
        with self.assertRaises(ValidationError):
            self.service.bulk_create_lots(self.residence, BulkLotsDTO(prefix='A', start=5, end=1))

    def test_hierarchy(self):
        lot_a = TestDataFactory.create_lot(self.residence, lot_number='A1', building=self.building)
        TestDataFactory.create_lot(self.residence, lot_number='P1')
        TestDataFactory.create_occupancy(TestDataFactory.create_user(), lot_a)

        tree = self.service.hierarchy(self.residence)
        self.assertEqual(tree['lots_count'], 2)
        self.assertEqual(tree['buildings'][0]['lots'][0]['status'], 'OCCUPIED')
        self.assertEqual([lot['lot_number'] for lot in tree['lots_without_building']], ['P1'])


class JoinServiceTests(TestCase):

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.lot = TestDataFactory.create_lot(self.residence)
        self.user = TestDataFactory.create_user()

    def test_join_lot_creates_resident_occupancy(self):
        result = JoinService().join(self.user, self.lot.join_code.lower())
        self.assertEqual(result['type'], 'lot')
        occupancy = Occupancy.objects.get(user=self.user, lot=self.lot)
        self.assertEqual(occupancy.occupancy_type, OccupancyType.RESIDENT)
        self.assertTrue(occupancy.is_active)

    def test_join_twice_conflicts(self):
        JoinService().join(self.user, self.lot.join_code)
        with self.assertRaises(ConflictError):
            JoinService().join(self.user, self.lot.join_code)

    def test_residence_code_returns_lots(self):
        result = JoinService().join(self.user, self.residence.join_code)
        self.assertEqual(result['type'], 'residence')
        self.assertEqual(result['lots'], [self.lot])
        self.assertFalse(Occupancy.objects.exists())

    def test_unknown_code(self):
        with self.assertRaises(NotFoundError):
            JoinService().join(self.user, 'NOPE42')


class ResidenceAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_owner_creates_residence(self):
        response = self.client.post('/api/residences/', {'name': 'Les Tilleuls', 'city': 'Lyon'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['agency'], self.agency.id)
        self.assertTrue(response.data['join_code'])

    def test_residence_limit_returns_422(self):
        self.agency.max_residences = 1
        self.agency.save()
        TestDataFactory.create_residence(self.agency)
        response = self.client.post('/api/residences/', {'name': 'Second'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'RESIDENCE_LIMIT_EXCEEDED')

    def test_manager_cannot_create_residence(self):
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.post('/api/residences/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_grant_and_revoke_access(self):
        residence = TestDataFactory.create_residence(self.agency)
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)

        response = self.client.post(
            f'/api/residences/{residence.id}/grant-access/', {'user_id': manager.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(
            f'/api/residences/{residence.id}/grant-access/', {'user_id': manager.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(f'/api/residences/{residence.id}/access-list/')
        self.assertEqual(len(response.data['accesses']), 1)

        response = self.client.post(
            f'/api/residences/{residence.id}/revoke-access/', {'user_id': manager.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(ResidenceAccess.objects.exists())

    def test_bulk_lots_endpoint(self):
        residence = TestDataFactory.create_residence(self.agency)
        response = self.client.post(
            f'/api/residences/{residence.id}/bulk-lots/',
            {'prefix': 'B', 'start': 1, 'end': 4, 'tantiemes': 25},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['created']), 4)

    def test_resident_cannot_create_lot(self):
        residence = TestDataFactory.create_residence(self.agency)
        lot = TestDataFactory.create_lot(residence)
        resident = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(resident, lot)
        client = AuthenticatedAPIClient().authenticate_user(resident)

        self.assertEqual(client.get(f'/api/residences/{residence.id}/').status_code, status.HTTP_200_OK)
        response = client.post('/api/lots/', {'residence': residence.id, 'lot_number': 'X1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_join_endpoint(self):
        residence = TestDataFactory.create_residence(self.agency)
        lot = TestDataFactory.create_lot(residence)
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        response = client.post('/api/residences/join/', {'code': lot.join_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], 'lot')
