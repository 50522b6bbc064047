"""
Tests for agencies: limits, trials and the agency API
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from core.constants import AgencyStatus, AgencyPlan, UserRole
from core.exceptions import LimitExceededError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from agencies.services import AgencyLimitService, TrialService


class AgencyLimitServiceTests(TestCase):

    def setUp(self):
        self.agency = TestDataFactory.create_agency(max_residences=1, max_managers=1)
        self.service = AgencyLimitService()

    def test_agency_override_wins_over_site_default(self):
        self.assertEqual(self.service.get_residence_limit(self.agency), 1)

    def test_residence_limit_reached(self):
        TestDataFactory.create_residence(self.agency)
        can_add, message = self.service.can_add_residence(self.agency)
        self.assertFalse(can_add)
        self.assertIn('1 residences', message)
        with self.assertRaises(LimitExceededError):
            self.service.validate_residence_limit(self.agency)

    def test_zero_means_unlimited(self):
        self.agency.max_managers = 0
        self.agency.save()
        for _ in range(3):
            TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        self.assertEqual(self.service.can_add_manager(self.agency), (True, None))

    def test_limit_info(self):
        TestDataFactory.create_residence(self.agency)
        info = self.service.get_limit_info(self.agency)
        self.assertEqual(info['residences']['current'], 1)
        self.assertFalse(info['residences']['can_add'])


class TrialServiceTests(TestCase):

    def test_start_and_expire(self):
        agency = TestDataFactory.create_agency()
        TrialService().start_trial(agency, days=3)
        self.assertEqual(agency.status, AgencyStatus.TRIAL)
        self.assertFalse(agency.is_trial_expired)
        self.assertIn(agency, TrialService().expiring_trials(within_days=7))

        agency.trial_ends_at = timezone.now() - timedelta(days=1)
        agency.save()
        self.assertTrue(agency.is_trial_expired)
        self.assertFalse(agency.is_active)

    def test_convert(self):
        agency = TestDataFactory.create_agency()
        TrialService().start_trial(agency, days=3)
        TrialService().convert(agency, AgencyPlan.PRO)
        agency.refresh_from_db()
        self.assertEqual(agency.status, AgencyStatus.ACTIVE)
        self.assertEqual(agency.plan, AgencyPlan.PRO)
        self.assertIsNone(agency.trial_ends_at)


class AgencyAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_current(self):
        response = self.client.get('/api/agencies/current/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.agency.id)

    def test_owner_cannot_change_plan(self):
        response = self.client.patch(
            f'/api/agencies/{self.agency.id}/', {'name': 'Renamed', 'plan': AgencyPlan.ENTERPRISE}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.agency.refresh_from_db()
        self.assertEqual(self.agency.name, 'Renamed')
        self.assertEqual(self.agency.plan, AgencyPlan.FREE)

    def test_manager_cannot_update_agency(self):
        manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.patch(f'/api/agencies/{self.agency.id}/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_agency_not_visible(self):
        other = TestDataFactory.create_agency()
        response = self.client.get(f'/api/agencies/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_converts_trial(self):
        TrialService().start_trial(self.agency, days=2)
        admin = TestDataFactory.create_admin()
        client = AuthenticatedAPIClient().authenticate_user(admin)

        response = client.get('/api/agencies/expiring-trials/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [self.agency.id])

        response = client.post(f'/api/agencies/{self.agency.id}/convert/', {'plan': 'PRO'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], AgencyStatus.ACTIVE)

    def test_owner_cannot_list_expiring_trials(self):
        response = self.client.get('/api/agencies/expiring-trials/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
