"""
Reservation service - booking common areas without double booking.
"""
from datetime import datetime, time, timedelta
from django.db import transaction
from django.utils import timezone
from core.constants import ReservationStatus
from core.exceptions import (
    ValidationError, PermissionDeniedError, ConflictError, InvalidTransitionError
)
from core.services import BaseService
from residences.access import can_access_residence, can_manage_residence
from .models import CommonArea, Reservation


def overlapping(area, start_at, end_at):
    """Reservations still holding a slot that intersects [start_at, end_at)"""
    return Reservation.objects.filter(
        area=area,
        status__in=ReservationStatus.BLOCKING,
        start_at__lt=end_at,
        end_at__gt=start_at,
    )


class ReservationService(BaseService):

    @transaction.atomic
    def book(self, user, area: CommonArea, title: str, start_at, end_at) -> Reservation:
        """
        Book a slot. The area row is locked so two concurrent bookings of the
        same slot cannot both pass the overlap check.

        Raises:
            PermissionDeniedError: residence not accessible
            ValidationError: inactive area, bad or past time range
            ConflictError: slot already taken
        """
        if not can_access_residence(user, area.residence_id):
            raise PermissionDeniedError("You don't have access to this residence")
        area = CommonArea.objects.select_for_update().get(pk=area.pk)
        if not area.is_active:
            raise ValidationError("This area cannot be booked", code="AREA_INACTIVE")
        if end_at <= start_at:
            raise ValidationError("End must be after start", code="INVALID_RANGE")
        if start_at < timezone.now():
            raise ValidationError("Reservations cannot start in the past", code="RESERVATION_IN_PAST")

        clash = overlapping(area, start_at, end_at).first()
        if clash is not None:
            raise ConflictError(
                "This slot is already booked",
                code="SLOT_TAKEN",
                details={'reservation_id': clash.id, 'start_at': clash.start_at.isoformat(),
                         'end_at': clash.end_at.isoformat()}
            )

        reservation = Reservation.objects.create(
            area=area,
            user=user,
            title=title,
            start_at=start_at,
            end_at=end_at,
            status=ReservationStatus.PENDING if area.requires_approval else ReservationStatus.CONFIRMED,
        )
        self.log_info("Reservation created", reservation_id=reservation.id, area_id=area.id,
                      status=reservation.status)
        return reservation

    def _decide(self, reservation: Reservation, user, new_status: str, note: str) -> Reservation:
        reservation = Reservation.objects.select_for_update().select_related('area').get(pk=reservation.pk)
        if not can_manage_residence(user, reservation.area.residence_id):
            raise PermissionDeniedError("Only staff of the residence can decide on reservations")
        if reservation.status != ReservationStatus.PENDING:
            raise InvalidTransitionError(
                f"Only pending reservations can be {new_status.lower()}",
                details={'from': reservation.status, 'to': new_status}
            )
        reservation.status = new_status
        reservation.decided_by = user
        reservation.decided_at = timezone.now()
        reservation.decision_note = note
        reservation.save()
        self.log_info("Reservation decided", reservation_id=reservation.id, status=new_status)
        return reservation

    @transaction.atomic
    def confirm(self, reservation: Reservation, user, note: str = '') -> Reservation:
        return self._decide(reservation, user, ReservationStatus.CONFIRMED, note)

    @transaction.atomic
    def reject(self, reservation: Reservation, user, note: str = '') -> Reservation:
        return self._decide(reservation, user, ReservationStatus.REJECTED, note)

    @transaction.atomic
    def cancel(self, reservation: Reservation, user) -> Reservation:
        """The booker or residence staff may cancel a slot that has not ended"""
        reservation = Reservation.objects.select_for_update().select_related('area').get(pk=reservation.pk)
        if reservation.user_id != user.id and not can_manage_residence(user, reservation.area.residence_id):
            raise PermissionDeniedError("You can only cancel your own reservations")
        if reservation.status not in ReservationStatus.BLOCKING:
            raise InvalidTransitionError(
                f"Cannot cancel a reservation in status {reservation.status}",
                details={'from': reservation.status, 'to': ReservationStatus.CANCELLED}
            )
        if reservation.end_at <= timezone.now():
            raise InvalidTransitionError("Past reservations cannot be cancelled", code="RESERVATION_ENDED")
        reservation.status = ReservationStatus.CANCELLED
        reservation.save()
        self.log_info("Reservation cancelled", reservation_id=reservation.id, by_user=user.id)
        return reservation

    def calendar(self, areas, start, days: int = 7) -> dict:
        """
        Slots holding the given areas between start (a date) and start + days,
        grouped by local start date (slots begun earlier are listed on the
        first day).
        """
        tz = timezone.get_current_timezone()
        range_start = timezone.make_aware(datetime.combine(start, time.min), tz)
        range_end = range_start + timedelta(days=days)
        reservations = (
            Reservation.objects.filter(
                area__in=areas,
                status__in=ReservationStatus.BLOCKING,
                start_at__lt=range_end,
                end_at__gt=range_start,
            )
            .select_related('area', 'user')
            .order_by('start_at')
        )
        calendar = {(start + timedelta(days=offset)).isoformat(): [] for offset in range(days)}
        for reservation in reservations:
            day = max(timezone.localtime(reservation.start_at, tz).date(), start)
            calendar[day.isoformat()].append(reservation)
        return calendar
