"""
Test utilities and factories for creating test data
"""
import random
import string
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.constants import UserRole, AgencyType, OccupancyType, PaymentType, LotType
from agencies.models import Agency
from residences.models import Residence, Building, Lot, ResidenceAccess
from occupancy.models import Occupancy
from tickets.models import Ticket, TicketCategory
from payments.models import Payment

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_agency(name=None, agency_type=AgencyType.AGENCY, **extra):
        """Create a test agency"""
        if not name:
            name = f'Agency_{TestDataFactory.random_string(6)}'
        return Agency.objects.create(name=name, agency_type=agency_type, **extra)

    @staticmethod
    def create_user(username=None, role=UserRole.RESIDENT, agency=None, password='testpass123', **extra):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        return User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password=password,
            role=role,
            agency=agency,
            **extra
        )

    @staticmethod
    def create_owner(agency=None):
        """Agency owner (creates the agency when none is given)"""
        agency = agency or TestDataFactory.create_agency()
        return TestDataFactory.create_user(role=UserRole.OWNER, agency=agency)

    @staticmethod
    def create_admin():
        return TestDataFactory.create_user(role=UserRole.ADMIN)

    @staticmethod
    def create_residence(agency, name=None, **extra):
        """Create a test residence"""
        if not name:
            name = f'Residence_{TestDataFactory.random_string(6)}'
        return Residence.objects.create(agency=agency, name=name, city='Paris', **extra)

    @staticmethod
    def create_building(residence, name=None):
        if not name:
            name = f'Bat_{TestDataFactory.random_string(4)}'
        return Building.objects.create(residence=residence, name=name)

    @staticmethod
    def create_lot(residence, lot_number=None, building=None, tantiemes=100, lot_type=LotType.APARTMENT, **extra):
        """Create a test lot"""
        if not lot_number:
            lot_number = f'L{TestDataFactory.random_string(5).upper()}'
        return Lot.objects.create(
            residence=residence,
            building=building,
            lot_number=lot_number,
            lot_type=lot_type,
            tantiemes=tantiemes,
            **extra
        )

    @staticmethod
    def grant_access(user, residence, granted_by=None):
        return ResidenceAccess.objects.create(user=user, residence=residence, granted_by=granted_by)

    @staticmethod
    def create_occupancy(user, lot, occupancy_type=OccupancyType.RESIDENT, start_date=None,
                         rent_amount=Decimal('0'), charges_amount=Decimal('0'), **extra):
        """Create an active occupancy"""
        return Occupancy.objects.create(
            user=user,
            lot=lot,
            occupancy_type=occupancy_type,
            start_date=start_date or date(2024, 1, 1),
            rent_amount=rent_amount,
            charges_amount=charges_amount,
            is_active=True,
            **extra
        )

    @staticmethod
    def create_tenant(lot, rent_amount=Decimal('800.00'), charges_amount=Decimal('100.00'), start_date=None):
        """Resident user with an active TENANT occupancy on the lot"""
        user = TestDataFactory.create_user(role=UserRole.RESIDENT)
        occupancy = TestDataFactory.create_occupancy(
            user, lot,
            occupancy_type=OccupancyType.TENANT,
            start_date=start_date,
            rent_amount=rent_amount,
            charges_amount=charges_amount,
        )
        return user, occupancy

    @staticmethod
    def create_ticket_category(name=None):
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return TicketCategory.objects.create(name=name)

    @staticmethod
    def create_ticket(residence, created_by, title=None, **extra):
        """Create a test ticket"""
        return Ticket.objects.create(
            residence=residence,
            created_by=created_by,
            title=title or f'Ticket {TestDataFactory.random_string(6)}',
            description='Something is broken',
            **extra
        )

    @staticmethod
    def create_payment(user, residence, amount=Decimal('500.00'), due_date=None, lot=None,
                       payment_type=PaymentType.RENT, **extra):
        """Create a test payment"""
        return Payment.objects.create(
            user=user,
            residence=residence,
            lot=lot,
            payment_type=payment_type,
            amount=amount,
            due_date=due_date or timezone.localdate(),
            **extra
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
