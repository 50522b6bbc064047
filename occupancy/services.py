"""
Occupancy service - assignment and vacating of lots.
Double assignments are prevented with row-level locks on the lot.
"""
from datetime import date
from typing import Optional
from django.db import transaction
from django.utils import timezone
from core.constants import OccupancyType
from core.exceptions import ConflictError, ValidationError
from core.services import BaseService
from core.validators import DateRangeValidator
from residences.models import Lot
from .models import Occupancy


class OccupancyService(BaseService):
    """Service for occupancy business rules"""

    def _check_conflicts(self, lot: Lot, user, occupancy_type: str, exclude_id: Optional[int] = None):
        """Must run inside a transaction holding the lot lock"""
        active = Occupancy.objects.select_for_update().filter(lot=lot, is_active=True)
        if exclude_id:
            active = active.exclude(id=exclude_id)

        if active.filter(user=user).exists():
            raise ConflictError(
                f"{user.username} already has an active occupancy on lot {lot.lot_number}",
                code="OCCUPANCY_EXISTS"
            )
        if occupancy_type == OccupancyType.TENANT and active.filter(occupancy_type=OccupancyType.TENANT).exists():
            raise ConflictError(
                f"Lot {lot.lot_number} already has an active tenant",
                code="LOT_ALREADY_RENTED"
            )

    @transaction.atomic
    def assign(self, user, lot: Lot, occupancy_type: str, start_date: date,
               end_date: Optional[date] = None, rent_amount=0, charges_amount=0, notes: str = '') -> Occupancy:
        """
        Create an active occupancy.

        Raises:
            ValidationError: invalid dates
            ConflictError: user already on the lot, or a second active tenant
        """
        DateRangeValidator.validate_range(start_date, end_date)
        locked_lot = Lot.objects.select_for_update().get(pk=lot.pk)
        self._check_conflicts(locked_lot, user, occupancy_type)

        occupancy = Occupancy.objects.create(
            user=user,
            lot=locked_lot,
            occupancy_type=occupancy_type,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
            rent_amount=rent_amount or 0,
            charges_amount=charges_amount or 0,
            notes=notes,
        )
        self.log_info("Occupancy assigned", occupancy_id=occupancy.id, lot_id=lot.id, user_id=user.id)
        return occupancy

    @transaction.atomic
    def update(self, occupancy: Occupancy, **changes) -> Occupancy:
        """Update an occupancy, re-checking conflicts when lot, user or type change"""
        occupancy = Occupancy.objects.select_for_update().get(pk=occupancy.pk)
        for field, value in changes.items():
            setattr(occupancy, field, value)

        DateRangeValidator.validate_range(occupancy.start_date, occupancy.end_date)
        if occupancy.is_active:
            locked_lot = Lot.objects.select_for_update().get(pk=occupancy.lot_id)
            self._check_conflicts(locked_lot, occupancy.user, occupancy.occupancy_type, exclude_id=occupancy.id)

        occupancy.save()
        self.log_info("Occupancy updated", occupancy_id=occupancy.id, fields=list(changes))
        return occupancy

    @transaction.atomic
    def vacate(self, occupancy: Occupancy, end_date: Optional[date] = None) -> Occupancy:
        """End an active occupancy (today unless a date is given)"""
        occupancy = Occupancy.objects.select_for_update().get(pk=occupancy.pk)
        if not occupancy.is_active:
            raise ValidationError("Occupancy is already inactive", code="ALREADY_INACTIVE")

        end_date = end_date or timezone.localdate()
        DateRangeValidator.validate_range(occupancy.start_date, end_date)
        occupancy.end_date = end_date
        occupancy.is_active = False
        occupancy.save()

        lot = occupancy.lot
        if lot.primary_resident_id == occupancy.user_id:
            lot.primary_resident = None
            lot.save(update_fields=['primary_resident', 'updated_at'])

        self.log_info("Occupancy vacated", occupancy_id=occupancy.id, end_date=str(end_date))
        return occupancy
