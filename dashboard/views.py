"""
Role-Aware Dashboard API

Returns dashboard metrics filtered by user access:
- OWNER: all residences of the agency
- MANAGER / SYNDIC / CS: residences granted to them
- RESIDENT: residences where they live
- ADMIN: everything, plus the platform overview

SECURITY: All filtering happens in backend queries (no frontend filtering)
"""
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from api.permissions import IsPlatformAdmin
from residences.access import get_accessible_residence_ids
from .services import DashboardService, platform_overview

MAX_MONTHS = 36


class DashboardViewSet(viewsets.ViewSet):
    """
    Dashboard ViewSet

    Endpoints:
    - /api/dashboard/summary/
    - /api/dashboard/occupancy/
    - /api/dashboard/financial/?months=12
    - /api/dashboard/tickets/
    - /api/dashboard/residents/
    - /api/dashboard/recent-activity/
    - /api/dashboard/platform/  (platform admins)

    Every endpoint accepts ?residence=<id> to narrow to one accessible residence.
    """
    permission_classes = [IsAuthenticated]

    def _service(self, request):
        residence_ids = list(get_accessible_residence_ids(request.user))
        residence_id = request.query_params.get('residence')
        if residence_id:
            try:
                residence_id = int(residence_id)
            except (TypeError, ValueError):
                residence_id = None
            # Unknown or inaccessible residence yields an empty scope
            residence_ids = [residence_id] if residence_id in residence_ids else []
        return DashboardService(residence_ids)

    def _months(self, request):
        try:
            months = int(request.query_params.get('months', 12))
        except (TypeError, ValueError):
            months = 12
        return max(1, min(months, MAX_MONTHS))

    @action(detail=False, methods=['get'])
    def summary(self, request):
        return Response(self._service(request).summary())

    @action(detail=False, methods=['get'])
    def occupancy(self, request):
        return Response(self._service(request).occupancy())

    @action(detail=False, methods=['get'])
    def financial(self, request):
        months = self._months(request)
        return Response({
            'months': months,
            'series': self._service(request).financial(months),
        })

    @action(detail=False, methods=['get'])
    def tickets(self, request):
        return Response(self._service(request).tickets(self._months(request)))

    @action(detail=False, methods=['get'])
    def residents(self, request):
        return Response(self._service(request).residents())

    @action(detail=False, methods=['get'], url_path='recent-activity')
    def recent_activity(self, request):
        return Response(self._service(request).recent_activity())

    @action(detail=False, methods=['get'], permission_classes=[IsPlatformAdmin])
    def platform(self, request):
        return Response(platform_overview())
