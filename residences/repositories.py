"""
Residence repository - Data access layer for the Residence domain.
"""
from typing import List
from django.db.models import QuerySet, Count, Q
from core.repositories import BaseRepository
from .models import Residence, Building, Lot, ResidenceAccess


class ResidenceRepository(BaseRepository[Residence]):
    """Repository for Residence model"""
    model = Residence

    def get_by_agency(self, agency_id: int) -> QuerySet[Residence]:
        return self.filter(agency_id=agency_id)

    def get_with_stats(self, agency_id: int) -> QuerySet[Residence]:
        """Residences with aggregated lot/building statistics"""
        return self.get_by_agency(agency_id).annotate(
            lots_count=Count('lots', distinct=True),
            buildings_count=Count('buildings', distinct=True),
            occupied_lots_count=Count(
                'lots',
                filter=Q(lots__occupancies__is_active=True),
                distinct=True
            ),
        ).order_by('name')

    def get_by_join_code(self, code: str):
        return self.first(join_code=code.strip().upper())


class BuildingRepository(BaseRepository[Building]):
    """Repository for Building model"""
    model = Building


class LotRepository(BaseRepository[Lot]):
    """Repository for Lot model"""
    model = Lot

    def get_by_residence(self, residence_id: int) -> QuerySet[Lot]:
        return self.filter(residence_id=residence_id).select_related('building')

    def existing_numbers(self, residence_id: int, numbers: List[str]) -> set:
        return set(
            self.filter(residence_id=residence_id, lot_number__in=numbers)
            .values_list('lot_number', flat=True)
        )

    def get_by_join_code(self, code: str):
        return self.filter(join_code=code.strip().upper()).select_related('residence').first()


class ResidenceAccessRepository(BaseRepository[ResidenceAccess]):
    """Repository for ResidenceAccess model"""
    model = ResidenceAccess

    def get_by_residence(self, residence_id: int) -> QuerySet[ResidenceAccess]:
        return self.filter(residence_id=residence_id).select_related('user', 'granted_by')

    def revoke_access(self, user_id: int, residence_id: int) -> bool:
        return self.delete_where(user_id=user_id, residence_id=residence_id) > 0
