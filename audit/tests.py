"""
Tests for the immutable audit log and its visibility rules
"""
from django.core.exceptions import PermissionDenied
from django.test import TestCase
from rest_framework import status

from core.constants import AuditAction, UserRole
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from audit.helpers import log_action
from audit.models import AuditLog
from audit.views import get_visible_logs


class AuditLogTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)

    def _log(self, user=None, residence=None, action=AuditAction.UPDATE, entity_id=1):
        return log_action(
            user=user or self.owner,
            action=action,
            entity_type='Residence',
            entity_id=entity_id,
            description='Updated residence',
            residence=residence,
        )

    def test_agency_taken_from_residence(self):
        log = self._log(residence=self.residence)
        self.assertEqual(log.agency_id, self.owner.agency_id)
        self.assertEqual(log.residence, self.residence)

    def test_logs_are_immutable(self):
        log = self._log()
        log.description = 'Tampered'
        with self.assertRaises(PermissionDenied):
            log.save()
        with self.assertRaises(PermissionDenied):
            log.delete()

    def test_user_without_agency_is_not_logged(self):
        self.assertIsNone(self._log(user=TestDataFactory.create_user()))
        self.assertFalse(AuditLog.objects.exists())

    def test_session_login_is_logged(self):
        self.client.login(username=self.owner.username, password='testpass123')
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.LOGIN, user=self.owner).exists())

    def test_failed_login_is_logged(self):
        self.assertFalse(self.client.login(username=self.owner.username, password='wrong'))
        log = AuditLog.objects.get(action=AuditAction.LOGIN, user=self.owner)
        self.assertEqual(log.metadata, {'success': False})

    def test_critical_actions(self):
        self._log(residence=self.residence)
        self._log(residence=self.residence, action=AuditAction.DELETE)
        self.assertEqual(AuditLog.objects.critical().count(), 1)


class AuditVisibilityTests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.granted = TestDataFactory.create_residence(self.agency)
        self.other = TestDataFactory.create_residence(self.agency)
        self.manager = TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        TestDataFactory.grant_access(self.manager, self.granted, self.owner)

        for residence in (self.granted, self.other):
            log_action(self.owner, AuditAction.UPDATE, 'Residence', residence.id, 'Edit', residence=residence)
        log_action(self.manager, AuditAction.CREATE, 'Ticket', 5, 'Own action')

        foreign_owner = TestDataFactory.create_owner()
        log_action(foreign_owner, AuditAction.CREATE, 'Residence', 99, 'Elsewhere')

    def test_owner_sees_the_whole_agency(self):
        self.assertEqual(get_visible_logs(self.owner).count(), 3)

    def test_manager_sees_granted_residences_and_own_actions(self):
        logs = get_visible_logs(self.manager)
        self.assertEqual(logs.count(), 2)
        self.assertFalse(logs.filter(residence=self.other).exists())

    def test_platform_admin_sees_everything(self):
        self.assertEqual(get_visible_logs(TestDataFactory.create_admin()).count(), 4)

    def test_residents_see_nothing(self):
        resident = TestDataFactory.create_user(agency=self.agency)
        self.assertEqual(get_visible_logs(resident).count(), 0)


class AuditAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.residence = TestDataFactory.create_residence(self.owner.agency)
        log_action(self.owner, AuditAction.UPDATE, 'Residence', self.residence.id, 'Renamed',
                   residence=self.residence)
        log_action(self.owner, AuditAction.GRANT_ACCESS, 'ResidenceAccess', 7, 'Granted',
                   residence=self.residence)
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def test_list_and_filter(self):
        response = self.client.get('/api/audit/logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(f'/api/audit/logs/?action={AuditAction.GRANT_ACCESS}')
        self.assertEqual(response.data['count'], 1)

    def test_logs_are_read_only(self):
        response = self.client.post('/api/audit/logs/', {'description': 'Forged'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_entity_trail(self):
        response = self.client.get('/api/audit/logs/entity-trail/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(
            f'/api/audit/logs/entity-trail/?entity_type=Residence&entity_id={self.residence.id}'
        )
        self.assertEqual(response.data['count'], 1)

    def test_stats(self):
        response = self.client.get('/api/audit/logs/stats/?days=7')
        self.assertEqual(response.data['total_logs'], 2)
        self.assertEqual(response.data['by_action'][AuditAction.UPDATE], 1)

    def test_summary(self):
        response = self.client.get('/api/audit/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['logs_today'], 2)
        self.assertEqual(len(response.data['recent_critical_actions']), 1)
