"""
Tests for common-area reservations
"""
from datetime import datetime, time, timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from core.constants import ReservationStatus
from core.exceptions import (
    ConflictError, InvalidTransitionError, PermissionDeniedError, ValidationError
)
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from reservations.models import CommonArea, Reservation
from reservations.services import ReservationService


def _slot(days_ahead, hour, hours=2):
    day = timezone.localdate() + timedelta(days=days_ahead)
    start = timezone.make_aware(datetime.combine(day, time(hour)))
    return start, start + timedelta(hours=hours)


class ReservationTestMixin:

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.owner = TestDataFactory.create_owner(agency)
        self.alice = TestDataFactory.create_user()
        self.bob = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.alice, TestDataFactory.create_lot(self.residence))
        TestDataFactory.create_occupancy(self.bob, TestDataFactory.create_lot(self.residence))
        self.outsider = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(
            self.outsider, TestDataFactory.create_lot(TestDataFactory.create_residence(agency))
        )
        self.room = CommonArea.objects.create(residence=self.residence, name='Party room')
        self.barbecue = CommonArea.objects.create(
            residence=self.residence, name='Barbecue', requires_approval=False
        )


class ReservationServiceTests(ReservationTestMixin, TestCase):

    def test_booking_waits_for_approval(self):
        start, end = _slot(2, 18)
        reservation = ReservationService().book(self.alice, self.room, 'Birthday', start, end)
        self.assertEqual(reservation.status, ReservationStatus.PENDING)

        reservation = ReservationService().confirm(reservation, self.owner, 'Enjoy')
        self.assertEqual(reservation.status, ReservationStatus.CONFIRMED)
        self.assertEqual(reservation.decided_by, self.owner)
        self.assertEqual(reservation.decision_note, 'Enjoy')

    def test_area_without_approval_confirms_directly(self):
        start, end = _slot(2, 12)
        reservation = ReservationService().book(self.alice, self.barbecue, 'Lunch', start, end)
        self.assertEqual(reservation.status, ReservationStatus.CONFIRMED)

    def test_overlapping_slot_rejected(self):
        start, end = _slot(3, 18)
        ReservationService().book(self.alice, self.room, 'Birthday', start, end)

        with self.assertRaises(ConflictError) as ctx:
            ReservationService().book(self.bob, self.room, 'Drinks', start + timedelta(hours=1),
                                      end + timedelta(hours=1))
        self.assertEqual(ctx.exception.code, 'SLOT_TAKEN')

        # Back-to-back slots and other areas are free
        ReservationService().book(self.bob, self.room, 'Drinks', end, end + timedelta(hours=1))
        ReservationService().book(self.bob, self.barbecue, 'Grill', start, end)

    def test_released_slot_can_be_booked_again(self):
        start, end = _slot(3, 10)
        first = ReservationService().book(self.alice, self.room, 'Meeting', start, end)
        ReservationService().reject(first, self.owner, 'Cleaning day')

        second = ReservationService().book(self.bob, self.room, 'Meeting', start, end)
        ReservationService().cancel(second, self.bob)

        third = ReservationService().book(self.alice, self.room, 'Meeting', start, end)
        self.assertEqual(third.status, ReservationStatus.PENDING)

    def test_invalid_bookings(self):
        start, end = _slot(2, 10)
        with self.assertRaises(ValidationError) as ctx:
            ReservationService().book(self.alice, self.room, 'Backwards', end, start)
        self.assertEqual(ctx.exception.code, 'INVALID_RANGE')

        past_start = timezone.now() - timedelta(days=1)
        with self.assertRaises(ValidationError) as ctx:
            ReservationService().book(self.alice, self.room, 'Late', past_start, past_start + timedelta(hours=1))
        self.assertEqual(ctx.exception.code, 'RESERVATION_IN_PAST')

        self.room.is_active = False
        self.room.save()
        with self.assertRaises(ValidationError) as ctx:
            ReservationService().book(self.alice, self.room, 'Closed', start, end)
        self.assertEqual(ctx.exception.code, 'AREA_INACTIVE')

        with self.assertRaises(PermissionDeniedError):
            ReservationService().book(self.outsider, self.barbecue, 'Intruder', start, end)

    def test_only_staff_decide(self):
        start, end = _slot(2, 10)
        reservation = ReservationService().book(self.alice, self.room, 'Meeting', start, end)
        with self.assertRaises(PermissionDeniedError):
            ReservationService().confirm(reservation, self.alice)

        ReservationService().reject(reservation, self.owner)
        with self.assertRaises(InvalidTransitionError):
            ReservationService().confirm(reservation, self.owner)

    def test_cancel_rules(self):
        start, end = _slot(2, 10)
        reservation = ReservationService().book(self.alice, self.barbecue, 'Lunch', start, end)
        with self.assertRaises(PermissionDeniedError):
            ReservationService().cancel(reservation, self.bob)

        reservation = ReservationService().cancel(reservation, self.owner)
        self.assertEqual(reservation.status, ReservationStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            ReservationService().cancel(reservation, self.alice)

    def test_ended_reservation_cannot_be_cancelled(self):
        start = timezone.now() - timedelta(hours=3)
        reservation = Reservation.objects.create(
            area=self.barbecue, user=self.alice, title='Lunch', start_at=start,
            end_at=start + timedelta(hours=1), status=ReservationStatus.CONFIRMED
        )
        with self.assertRaises(InvalidTransitionError) as ctx:
            ReservationService().cancel(reservation, self.alice)
        self.assertEqual(ctx.exception.code, 'RESERVATION_ENDED')

    def test_calendar_groups_slots_by_day(self):
        start, end = _slot(1, 18)
        ReservationService().book(self.alice, self.room, 'Birthday', start, end)
        cancelled = ReservationService().book(self.bob, self.barbecue, 'Grill', start, end)
        ReservationService().cancel(cancelled, self.bob)
        later_start, later_end = _slot(10, 18)
        ReservationService().book(self.bob, self.room, 'Later', later_start, later_end)

        calendar = ReservationService().calendar(
            CommonArea.objects.filter(residence=self.residence), timezone.localdate(), days=3
        )
        self.assertEqual(len(calendar), 3)
        tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()
        self.assertEqual([r.title for r in calendar[tomorrow]], ['Birthday'])
        self.assertEqual(sum(len(day) for day in calendar.values()), 1)


class ReservationAPITests(ReservationTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient().authenticate_user(self.alice)

    def _book(self, client, area, start, end, title='Party'):
        return client.post('/api/reservations/', {
            'area': area.id, 'title': title,
            'start_at': start.isoformat(), 'end_at': end.isoformat(),
        }, format='json')

    def test_book_and_conflict(self):
        start, end = _slot(2, 18)
        response = self._book(self.client, self.room, start, end)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ReservationStatus.PENDING)
        self.assertEqual(response.data['user'], self.alice.id)

        bob = AuthenticatedAPIClient().authenticate_user(self.bob)
        response = self._book(bob, self.room, start, end)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error_code'], 'SLOT_TAKEN')

    def test_area_of_other_residence_rejected(self):
        start, end = _slot(2, 18)
        outsider = AuthenticatedAPIClient().authenticate_user(self.outsider)
        response = self._book(outsider, self.room, start, end)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_residents_see_own_and_confirmed(self):
        start, end = _slot(2, 10)
        ReservationService().book(self.alice, self.room, 'Pending one', start, end)
        ReservationService().book(self.alice, self.barbecue, 'Confirmed one', start, end)

        bob = AuthenticatedAPIClient().authenticate_user(self.bob)
        response = bob.get('/api/reservations/')
        self.assertEqual([r['title'] for r in response.data['results']], ['Confirmed one'])
        self.assertEqual(self.client.get('/api/reservations/').data['count'], 2)
        self.assertEqual(len(self.client.get('/api/reservations/mine/').data), 2)

        staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        response = staff.get(f'/api/reservations/?status={ReservationStatus.PENDING}')
        self.assertEqual(response.data['count'], 1)

    def test_staff_confirm_and_resident_cannot(self):
        start, end = _slot(2, 10)
        reservation = ReservationService().book(self.alice, self.room, 'Meeting', start, end)

        response = self.client.post(f'/api/reservations/{reservation.id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        response = staff.post(f'/api/reservations/{reservation.id}/confirm/', {'note': 'OK'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ReservationStatus.CONFIRMED)

        response = self.client.post(f'/api/reservations/{reservation.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ReservationStatus.CANCELLED)

    def test_calendar(self):
        start, end = _slot(1, 18)
        ReservationService().book(self.alice, self.barbecue, 'Grill', start, end)

        response = self.client.get(f'/api/reservations/calendar/?residence={self.residence.id}&days=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()
        self.assertEqual(response.data[tomorrow][0]['title'], 'Grill')

        response = self.client.get('/api/reservations/calendar/?start=tomorrow')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_staff_manage_areas(self):
        response = self.client.post('/api/common-areas/', {
            'residence': self.residence.id, 'name': 'Gym'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        response = staff.post('/api/common-areas/', {
            'residence': self.residence.id, 'name': 'Gym'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.room.is_active = False
        self.room.save()
        self.assertEqual(self.client.get('/api/common-areas/').data['count'], 2)
        self.assertEqual(staff.get('/api/common-areas/').data['count'], 3)
