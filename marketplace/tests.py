"""
Tests for the residents' marketplace
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from core.constants import ListingStatus
from core.exceptions import InvalidTransitionError, PermissionDeniedError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from marketplace.models import Listing
from marketplace.services import ListingService


class MarketplaceTestMixin:

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.seller = TestDataFactory.create_user()
        self.buyer = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.seller, TestDataFactory.create_lot(self.residence))
        TestDataFactory.create_occupancy(self.buyer, TestDataFactory.create_lot(self.residence))

        other_residence = TestDataFactory.create_residence(agency)
        self.outsider = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.outsider, TestDataFactory.create_lot(other_residence))

    def _listing(self, title='Bike', price=Decimal('50.00'), **extra):
        return Listing.objects.create(
            residence=self.residence, seller=self.seller, title=title, price=price, **extra
        )


class ListingServiceTests(MarketplaceTestMixin, TestCase):

    def test_reserve_then_sell_then_archive(self):
        service = ListingService()
        listing = self._listing()
        listing = service.change_status(listing, ListingStatus.RESERVED, self.seller)
        listing = service.change_status(listing, ListingStatus.SOLD, self.seller)
        listing = service.change_status(listing, ListingStatus.ARCHIVED, self.seller)
        self.assertEqual(listing.status, ListingStatus.ARCHIVED)

        with self.assertRaises(InvalidTransitionError):
            service.change_status(listing, ListingStatus.ACTIVE, self.seller)

    def test_sold_listing_cannot_be_reserved(self):
        listing = self._listing(status=ListingStatus.SOLD)
        with self.assertRaises(InvalidTransitionError):
            ListingService().change_status(listing, ListingStatus.RESERVED, self.seller)

    def test_only_seller_changes_status(self):
        with self.assertRaises(PermissionDeniedError):
            ListingService().change_status(self._listing(), ListingStatus.SOLD, self.buyer)

    def test_toggle_favorite(self):
        listing = self._listing()
        self.assertTrue(ListingService().toggle_favorite(listing, self.buyer))
        self.assertFalse(ListingService().toggle_favorite(listing, self.buyer))
        self.assertFalse(listing.favorited_by.exists())


class ListingAPITests(MarketplaceTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient().authenticate_user(self.seller)

    def test_create_listing(self):
        response = self.client.post('/api/listings/', {
            'residence': self.residence.id,
            'title': 'Sofa',
            'category': 'Furniture',
            'price': '120.00',
            'images': ['https://example.com/sofa.jpg'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['seller'], self.seller.id)
        self.assertEqual(response.data['status'], ListingStatus.ACTIVE)

    def test_create_in_foreign_residence_rejected(self):
        client = AuthenticatedAPIClient().authenticate_user(self.outsider)
        response = client.post('/api/listings/', {'residence': self.residence.id, 'title': 'Lamp'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_images_rejected(self):
        response = self.client.post('/api/listings/', {
            'residence': self.residence.id, 'title': 'Lamp', 'images': 'not-a-list'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_shows_active_listings_of_own_residences(self):
        self._listing(title='Bike', category='Sport')
        self._listing(title='Old TV', price=Decimal('10.00'), status=ListingStatus.SOLD)

        client = AuthenticatedAPIClient().authenticate_user(self.buyer)
        response = client.get('/api/listings/')
        self.assertEqual(response.data['count'], 1)

        outsider = AuthenticatedAPIClient().authenticate_user(self.outsider)
        self.assertEqual(outsider.get('/api/listings/').data['count'], 0)

    def test_list_filters(self):
        self._listing(title='Road bike', category='Sport', price=Decimal('200.00'))
        self._listing(title='Kettle', category='Kitchen', price=Decimal('15.00'))
        self._listing(title='Free books', category='Books', price=None, description='Old bike magazines')

        self.assertEqual(self.client.get('/api/listings/?category=sport').data['count'], 1)
        self.assertEqual(self.client.get('/api/listings/?search=bike').data['count'], 2)
        self.assertEqual(self.client.get('/api/listings/?min_price=20').data['count'], 1)
        self.assertEqual(self.client.get('/api/listings/?max_price=20').data['count'], 1)

    def test_only_seller_can_edit(self):
        listing = self._listing()
        client = AuthenticatedAPIClient().authenticate_user(self.buyer)
        response = client.patch(f'/api/listings/{listing.id}/', {'title': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.delete(f'/api/listings/{listing.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.patch(f'/api/listings/{listing.id}/', {'title': 'City bike'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_mark_sold_and_invalid_transition(self):
        listing = self._listing()
        response = self.client.post(f'/api/listings/{listing.id}/mark-sold/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ListingStatus.SOLD)

        response = self.client.post(f'/api/listings/{listing.id}/reserve/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_favorites(self):
        listing = self._listing()
        client = AuthenticatedAPIClient().authenticate_user(self.buyer)

        response = client.post(f'/api/listings/{listing.id}/favorite/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_favorite'])

        response = client.get('/api/listings/favorites/')
        self.assertEqual([item['id'] for item in response.data], [listing.id])
        self.assertTrue(response.data[0]['is_favorite'])

        response = client.post(f'/api/listings/{listing.id}/favorite/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_favorite'])

    def test_mine_includes_every_status(self):
        self._listing()
        self._listing(title='Desk', status=ListingStatus.ARCHIVED)
        response = self.client.get('/api/listings/mine/')
        self.assertEqual(len(response.data), 2)
