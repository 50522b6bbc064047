"""
Custom filters for multi-tenant data
"""
from rest_framework import filters


class AgencyFilterBackend(filters.BaseFilterBackend):
    """
    Filter queryset to only show objects belonging to the user's agency
    """
    agency_field = 'agency'

    def filter_queryset(self, request, queryset, view):
        """Filter by agency"""
        user = request.user
        if not (user and user.is_authenticated):
            return queryset.none()
        if user.is_platform_admin:
            return queryset
        if not user.agency_id:
            return queryset.none()
        field = getattr(view, 'agency_field', self.agency_field)
        return queryset.filter(**{f'{field}_id': user.agency_id})


class ResidenceQueryFilterBackend(filters.BaseFilterBackend):
    """
    Narrow a queryset to one residence with ?residence=<id>
    """

    def filter_queryset(self, request, queryset, view):
        residence_id = request.query_params.get('residence')
        if not residence_id:
            return queryset
        try:
            residence_id = int(residence_id)
        except (TypeError, ValueError):
            return queryset.none()
        field = getattr(view, 'residence_field', 'residence')
        return queryset.filter(**{f'{field}_id': residence_id})
