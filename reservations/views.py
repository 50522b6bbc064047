from datetime import date
from django.db.models import Q
from django.utils import timezone
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.constants import ReservationStatus
from core.exceptions import PermissionDeniedError, ValidationError
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from residences.access import filter_by_accessible_residences, get_accessible_residence_ids, can_manage_residence
from .models import CommonArea, Reservation
from .serializers import CommonAreaSerializer, ReservationSerializer, DecisionSerializer
from .services import ReservationService

MAX_CALENDAR_DAYS = 31


class CommonAreaViewSet(viewsets.ModelViewSet):
    """Bookable areas; residents only see active ones"""
    serializer_class = CommonAreaSerializer
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(CommonArea.objects.select_related('residence'), self.request.user)
        if not self.request.user.is_staff_role:
            queryset = queryset.filter(is_active=True)
        return queryset

    def perform_create(self, serializer):
        if not can_manage_residence(self.request.user, serializer.validated_data['residence']):
            raise PermissionDeniedError("You don't have access to this residence")
        serializer.save()


class ReservationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                         viewsets.GenericViewSet):
    """
    Common-area bookings.

    - Residents see their own bookings plus confirmed slots of their residences
    - Staff see every booking of accessible residences and confirm / reject

    Filters: ?residence=, ?area=, ?status=
    """
    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [ResidenceQueryFilterBackend]
    residence_field = 'area__residence'

    def get_queryset(self):
        user = self.request.user
        queryset = Reservation.objects.filter(
            area__residence_id__in=get_accessible_residence_ids(user)
        ).select_related('area', 'user')
        if not user.is_staff_role:
            queryset = queryset.filter(Q(user=user) | Q(status=ReservationStatus.CONFIRMED))
        params = self.request.query_params
        if params.get('area'):
            queryset = queryset.filter(area_id=params['area'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        reservation = ReservationService().book(
            request.user, data['area'], data['title'], data['start_at'], data['end_at']
        )
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)

    def _decide(self, request, method):
        serializer = DecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = method(self.get_object(), request.user, serializer.validated_data['note'])
        return Response(ReservationSerializer(reservation).data)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        """Body: { "note": "..." } (optional)"""
        return self._decide(request, ReservationService().confirm)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._decide(request, ReservationService().reject)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        reservation = ReservationService().cancel(self.get_object(), request.user)
        return Response(ReservationSerializer(reservation).data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        reservations = Reservation.objects.filter(user=request.user).select_related('area')
        return Response(ReservationSerializer(reservations, many=True).data)

    @action(detail=False, methods=['get'])
    def calendar(self, request):
        """
        Booked slots per day.

        Query: ?start=YYYY-MM-DD (default today), ?days= (default 7, max 31),
        ?area= or ?residence= to narrow the areas
        """
        params = request.query_params
        try:
            start = date.fromisoformat(params['start']) if params.get('start') else timezone.localdate()
            days = min(max(int(params.get('days', 7)), 1), MAX_CALENDAR_DAYS)
        except ValueError:
            raise ValidationError("start must be YYYY-MM-DD and days a number", code="INVALID_RANGE")

        areas = filter_by_accessible_residences(CommonArea.objects.all(), request.user)
        if params.get('area'):
            areas = areas.filter(id=params['area'])
        if params.get('residence'):
            areas = areas.filter(residence_id=params['residence'])

        calendar = ReservationService().calendar(areas, start, days)
        return Response({
            day: ReservationSerializer(reservations, many=True).data
            for day, reservations in calendar.items()
        })
