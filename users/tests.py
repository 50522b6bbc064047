"""
Tests for user roles and staff management
"""
from django.test import TestCase
from rest_framework import status

from core.constants import UserRole
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from users.models import User


class UserModelTests(TestCase):

    def test_role_flags(self):
        admin = TestDataFactory.create_admin()
        owner = TestDataFactory.create_owner()
        cs = TestDataFactory.create_user(role=UserRole.CS)
        resident = TestDataFactory.create_user()

        self.assertTrue(admin.is_platform_admin)
        self.assertTrue(owner.is_staff_role)
        self.assertFalse(cs.is_staff_role)
        self.assertTrue(resident.is_resident)

    def test_display_name_falls_back_to_username(self):
        user = TestDataFactory.create_user(username='jdoe')
        self.assertEqual(user.display_name, 'jdoe')
        user.first_name, user.last_name = 'Jane', 'Doe'
        self.assertEqual(user.display_name, 'Jane Doe')


class UserAPITests(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_owner()
        self.agency = self.owner.agency
        self.client = AuthenticatedAPIClient().authenticate_user(self.owner)

    def _create_staff(self, role=UserRole.MANAGER, username='manager1'):
        return self.client.post('/api/users/', {
            'username': username,
            'email': f'{username}@test.com',
            'password': 's3cret-pass',
            'role': role,
        }, format='json')

    def test_owner_creates_manager(self):
        response = self._create_staff()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(username='manager1')
        self.assertEqual(user.agency, self.agency)
        self.assertTrue(user.check_password('s3cret-pass'))

    def test_resident_role_rejected(self):
        response = self._create_staff(role=UserRole.RESIDENT)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_limit(self):
        self.agency.max_managers = 1
        self.agency.save()
        self.assertEqual(self._create_staff().status_code, status.HTTP_201_CREATED)
        response = self._create_staff(username='manager2')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'MANAGER_LIMIT_EXCEEDED')

    def test_list_only_own_agency(self):
        TestDataFactory.create_user(role=UserRole.MANAGER, agency=self.agency)
        TestDataFactory.create_owner()
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        agencies = {row['agency'] for row in response.data['results']}
        self.assertEqual(agencies, {self.agency.id})

    def test_owner_cannot_be_deleted(self):
        response = self.client.delete(f'/api/users/{self.owner.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me(self):
        resident = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(resident)
        response = client.patch('/api/users/me/', {'phone': '0601020304'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '0601020304')

    def test_resident_cannot_list_users(self):
        resident = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(resident)
        self.assertEqual(client.get('/api/users/').status_code, status.HTTP_403_FORBIDDEN)


class AuthTests(TestCase):

    def test_jwt_login(self):
        TestDataFactory.create_user(username='alice', password='pass-12345')
        client = AuthenticatedAPIClient()
        response = client.post('/api/auth/login/', {'username': 'alice', 'password': 'pass-12345'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_anonymous_rejected(self):
        response = AuthenticatedAPIClient().get('/api/residences/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
