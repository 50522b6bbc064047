"""
Residence service - Business logic layer for the Residence domain.
Services orchestrate repositories and contain business rules.
"""
from django.db import transaction, IntegrityError
from django.utils import timezone
from core.constants import UserRole, OccupancyType, DefaultLimits
from core.dto import ResidenceDTO, BulkLotsDTO
from core.exceptions import (
    NotFoundError, PermissionDeniedError, ValidationError, ConflictError
)
from core.services import BaseService
from core.validators import ShareValidator
from agencies.services import AgencyLimitService
from .models import Residence, Building, Lot, ResidenceAccess, generate_code, generate_residence_code
from .repositories import (
    ResidenceRepository, BuildingRepository, LotRepository, ResidenceAccessRepository
)


class ResidenceService(BaseService):
    """Residences, their hierarchy and aggregated statistics"""

    def __init__(self):
        super().__init__()
        self.residence_repo = ResidenceRepository()
        self.building_repo = BuildingRepository()
        self.lot_repo = LotRepository()
        self.limit_service = AgencyLimitService()

    def create_residence(self, agency, data: ResidenceDTO, user) -> Residence:
        """
        Create a residence for the agency.

        Raises:
            PermissionDeniedError: If user is not the agency owner
            LimitExceededError: If the agency reached its residence limit
        """
        if user.role != UserRole.OWNER and not user.is_platform_admin:
            raise PermissionDeniedError("Only agency owners can create residences")

        self.limit_service.validate_residence_limit(agency)

        with transaction.atomic():
            residence = self.residence_repo.create(
                agency=agency,
                name=data.name,
                address=data.address,
                city=data.city,
                postal_code=data.postal_code,
                country=data.country,
                allow_landlord_join=data.allow_landlord_join,
                requires_syndic_approval=data.requires_syndic_approval,
            )
            self.log_info(f"Residence created: {residence.name}", residence_id=residence.id, agency_id=agency.id)
            return residence

    def hierarchy(self, residence: Residence) -> dict:
        """Residence with its buildings, each building's lots, and lots without building"""
        lots = list(
            self.lot_repo.get_by_residence(residence.id)
            .prefetch_related('occupancies')
            .order_by('lot_number')
        )
        lots_by_building = {}
        orphan_lots = []
        for lot in lots:
            if lot.building_id:
                lots_by_building.setdefault(lot.building_id, []).append(lot)
            else:
                orphan_lots.append(lot)

        buildings = []
        for building in residence.buildings.order_by('name'):
            building_lots = lots_by_building.get(building.id, [])
            buildings.append({
                'id': building.id,
                'name': building.name,
                'address': building.address,
                'lots_count': len(building_lots),
                'lots': [self._lot_node(lot) for lot in building_lots],
            })

        return {
            'id': residence.id,
            'name': residence.name,
            'address': residence.address,
            'city': residence.city,
            'buildings_count': len(buildings),
            'lots_count': len(lots),
            'buildings': buildings,
            'lots_without_building': [self._lot_node(lot) for lot in orphan_lots],
        }

    def _lot_node(self, lot: Lot) -> dict:
        # Uses the prefetched occupancies
        occupied = any(o.is_active for o in lot.occupancies.all())
        return {
            'id': lot.id,
            'lot_number': lot.lot_number,
            'lot_type': lot.lot_type,
            'floor': lot.floor,
            'tantiemes': lot.tantiemes,
            'status': 'OCCUPIED' if occupied else 'VACANT',
        }

    def agency_residences_summary(self, agency) -> list:
        """Every residence of the agency with lot/building/occupancy counts and tantiemes"""
        from django.db.models import Sum
        tantiemes = dict(
            Lot.objects.filter(residence__agency=agency)
            .order_by()
            .values_list('residence_id')
            .annotate(total=Sum('tantiemes'))
        )
        return [
            {
                'id': residence.id,
                'name': residence.name,
                'city': residence.city,
                'lots_count': residence.lots_count,
                'buildings_count': residence.buildings_count,
                'occupied_lots': residence.occupied_lots_count,
                'total_tantiemes': tantiemes.get(residence.id) or 0,
            }
            for residence in self.residence_repo.get_with_stats(agency.id)
        ]

    def bulk_create_lots(self, residence: Residence, data: BulkLotsDTO) -> dict:
        """
        Create lots prefix+n for n in [start, end]. Existing numbers are skipped.

        Returns:
            {'created': [lot numbers], 'skipped': [lot numbers]}
        """
        if data.end < data.start:
            raise ValidationError("end must be greater than or equal to start", code="INVALID_RANGE")
        if data.start < 0:
            raise ValidationError("start must be zero or positive", code="INVALID_RANGE")
        count = data.end - data.start + 1
        if count > DefaultLimits.MAX_BULK_LOTS:
            raise ValidationError(
                f"At most {DefaultLimits.MAX_BULK_LOTS} lots can be created at once",
                code="TOO_MANY_LOTS",
                details={'requested': count}
            )
        ShareValidator.validate_shares(data.tantiemes)

        building = None
        if data.building_id:
            building = self.building_repo.get_or_raise(data.building_id, residence=residence)

        numbers = [f"{data.prefix}{n}" for n in range(data.start, data.end + 1)]
        with transaction.atomic():
            existing = self.lot_repo.existing_numbers(residence.id, numbers)
            to_create = [
                Lot(
                    residence=residence,
                    building=building,
                    lot_number=number,
                    lot_type=data.lot_type,
                    floor=data.floor,
                    tantiemes=data.tantiemes,
                    join_code=generate_code(),
                )
                for number in numbers if number not in existing
            ]
            self.lot_repo.bulk_create(to_create)

        created = [lot.lot_number for lot in to_create]
        skipped = [number for number in numbers if number in existing]
        self.log_info(
            "Bulk lots created",
            residence_id=residence.id, created=len(created), skipped=len(skipped)
        )
        return {'created': created, 'skipped': skipped}

    def regenerate_join_code(self, obj):
        """New invitation code for a residence or a lot"""
        obj.join_code = generate_residence_code() if isinstance(obj, Residence) else generate_code()
        obj.save(update_fields=['join_code', 'updated_at'])
        self.log_info("Join code regenerated", model=obj.__class__.__name__, id=obj.id)
        return obj.join_code


class ResidenceAccessService(BaseService):
    """Grants of residence access to staff and conseil syndical members"""

    def __init__(self):
        super().__init__()
        self.access_repo = ResidenceAccessRepository()

    def grant_access(self, residence: Residence, user, granted_by) -> tuple:
        """
        Returns:
            (ResidenceAccess, created)
        """
        if user.role not in UserRole.GRANTED:
            raise ValidationError(
                "Access can only be granted to MANAGER, SYNDIC or CS users",
                code="INVALID_GRANTEE"
            )
        existing = self.access_repo.first(user=user, residence=residence)
        if existing:
            return existing, False
        access = ResidenceAccess(user=user, residence=residence, granted_by=granted_by)
        try:
            access.save()
        except IntegrityError:
            raise ConflictError("Access already granted")
        self.log_info("Residence access granted", residence_id=residence.id, user_id=user.id)
        return access, True

    def revoke_access(self, residence: Residence, user) -> bool:
        revoked = self.access_repo.revoke_access(user.id, residence.id)
        if revoked:
            self.log_info("Residence access revoked", residence_id=residence.id, user_id=user.id)
        return revoked

    def access_list(self, residence: Residence):
        return self.access_repo.get_by_residence(residence.id)


class JoinService(BaseService):
    """Residents joining a lot (or looking up a residence) with an invitation code"""

    def __init__(self):
        super().__init__()
        self.residence_repo = ResidenceRepository()
        self.lot_repo = LotRepository()

    def join(self, user, code: str) -> dict:
        """
        A lot code creates an active RESIDENT occupancy starting today.
        A residence code only returns the residence with its lots.

        Raises:
            NotFoundError: unknown code
            ConflictError: user already occupies the lot
        """
        from occupancy.models import Occupancy

        code = (code or '').strip().upper()
        if not code:
            raise ValidationError("code is required", code="CODE_REQUIRED")

        lot = self.lot_repo.get_by_join_code(code)
        if lot:
            with transaction.atomic():
                Lot.objects.select_for_update().get(pk=lot.pk)
                if Occupancy.objects.filter(user=user, lot=lot, is_active=True).exists():
                    raise ConflictError("You already occupy this lot", code="ALREADY_JOINED")
                occupancy = Occupancy.objects.create(
                    user=user,
                    lot=lot,
                    occupancy_type=OccupancyType.RESIDENT,
                    start_date=timezone.localdate(),
                    is_active=True,
                )
            self.log_info("Resident joined lot", lot_id=lot.id, user_id=user.id)
            return {'type': 'lot', 'residence': lot.residence, 'lot': lot, 'occupancy': occupancy}

        residence = self.residence_repo.get_by_join_code(code)
        if residence:
            return {'type': 'residence', 'residence': residence, 'lots': list(residence.lots.all())}

        raise NotFoundError(message="Invalid join code", code="INVALID_JOIN_CODE")
