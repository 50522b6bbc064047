"""
Residence Access Control Helper Functions

Access Rules:
- ADMIN: all residences
- OWNER: all residences of their agency
- MANAGER / SYNDIC: residences of their agency granted via ResidenceAccess
- CS: residences granted via ResidenceAccess (no agency membership needed)
- RESIDENT: residences where they hold an active occupancy
- Anything else: no access
"""
from core.constants import UserRole
from residences.models import Residence, ResidenceAccess


def get_accessible_residences(user):
    """
    Get all residences accessible to the user.

    Usage:
        residences = get_accessible_residences(request.user)
    """
    if not user or not user.is_authenticated:
        return Residence.objects.none()

    if user.is_platform_admin:
        return Residence.objects.all()

    if user.role == UserRole.OWNER:
        if not user.agency_id:
            return Residence.objects.none()
        return Residence.objects.filter(agency_id=user.agency_id)

    if user.role in (UserRole.MANAGER, UserRole.SYNDIC):
        if not user.agency_id:
            return Residence.objects.none()
        granted_ids = ResidenceAccess.objects.filter(user=user).values_list('residence_id', flat=True)
        return Residence.objects.filter(agency_id=user.agency_id, id__in=granted_ids)

    if user.role == UserRole.CS:
        granted_ids = ResidenceAccess.objects.filter(user=user).values_list('residence_id', flat=True)
        return Residence.objects.filter(id__in=granted_ids)

    if user.role == UserRole.RESIDENT:
        return Residence.objects.filter(
            lots__occupancies__user=user,
            lots__occupancies__is_active=True
        ).distinct()

    # Unknown role - no access
    return Residence.objects.none()


def get_accessible_residence_ids(user):
    """
    Get IDs of all residences accessible to the user.

    Usage:
        residence_ids = get_accessible_residence_ids(request.user)
        lots = Lot.objects.filter(residence_id__in=residence_ids)
    """
    return list(get_accessible_residences(user).values_list('id', flat=True))


def can_access_residence(user, residence):
    """
    Check if user can access a specific residence (instance or ID).
    """
    if not user or not user.is_authenticated or residence is None:
        return False
    residence_id = residence if isinstance(residence, int) else residence.id
    return get_accessible_residences(user).filter(id=residence_id).exists()


def can_manage_residence(user, residence):
    """Staff roles with access may modify residence data"""
    return bool(user and user.is_authenticated and user.is_staff_role
                and can_access_residence(user, residence))


def filter_by_accessible_residences(queryset, user, residence_field='residence'):
    """
    Filter a queryset to only include items from accessible residences.

    Usage:
        # For Lots
        lots = filter_by_accessible_residences(Lot.objects.all(), user)

        # Nested relationship
        occupancies = filter_by_accessible_residences(
            Occupancy.objects.all(), user, residence_field='lot__residence'
        )
    """
    accessible_ids = get_accessible_residence_ids(user)
    return queryset.filter(**{f'{residence_field}_id__in': accessible_ids})
