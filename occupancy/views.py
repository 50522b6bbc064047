from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from core.constants import OccupancyType
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_occupancy_assign, log_vacate
from residences.access import filter_by_accessible_residences
from .models import Occupancy
from .serializers import OccupancySerializer, OccupancyListSerializer, VacateSerializer
from .services import OccupancyService


class OccupancyViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Occupancy management - assignment of users to lots

    - Staff: occupancies of accessible residences
    - Residents: their own occupancies only (read only)

    Filters: ?residence=, ?lot=, ?occupancy_type=, ?is_active=
    """
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]
    residence_field = 'lot__residence'

    def get_serializer_class(self):
        if self.action == 'list':
            return OccupancyListSerializer
        return OccupancySerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Occupancy.objects.select_related('user', 'lot', 'lot__residence')
        if user.is_staff_role:
            queryset = filter_by_accessible_residences(queryset, user, residence_field='lot__residence')
        else:
            queryset = queryset.filter(user=user)

        params = self.request.query_params
        if params.get('lot'):
            queryset = queryset.filter(lot_id=params['lot'])
        if params.get('occupancy_type'):
            queryset = queryset.filter(occupancy_type=params['occupancy_type'])
        is_active = params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset

    def create(self, request, *args, **kwargs):
        """Assign a user to a lot (409 on conflicting active occupancy)"""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        occupancy = OccupancyService().assign(
            user=data['user'],
            lot=data['lot'],
            occupancy_type=data.get('occupancy_type', OccupancyType.RESIDENT),
            start_date=data['start_date'],
            end_date=data.get('end_date'),
            rent_amount=data.get('rent_amount', 0),
            charges_amount=data.get('charges_amount', 0),
            notes=data.get('notes', ''),
        )
        log_occupancy_assign(request.user, occupancy, request)
        return Response(OccupancySerializer(occupancy).data, status=status.HTTP_201_CREATED)

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        occupancy = self.get_object()
        serializer = self.get_serializer(occupancy, data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        occupancy = OccupancyService().update(occupancy, **serializer.validated_data)
        return Response(OccupancySerializer(occupancy).data)

    @action(detail=True, methods=['post'])
    def vacate(self, request, pk=None):
        """
        End the occupancy.

        Body: { "end_date": "YYYY-MM-DD" } (optional, defaults to today)
        """
        occupancy = self.get_object()
        serializer = VacateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        occupancy = OccupancyService().vacate(occupancy, serializer.validated_data.get('end_date'))
        log_vacate(request.user, occupancy, request)
        return Response(OccupancySerializer(occupancy).data)

    @action(detail=False, methods=['get'])
    def active(self, request):
        """Get all active occupancies"""
        occupancies = self.filter_queryset(self.get_queryset()).filter(is_active=True)
        serializer = OccupancyListSerializer(occupancies, many=True)
        return Response(serializer.data)
