from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.utils.dateparse import parse_date
from api.permissions import IsStaffRole
from api.filters import AgencyFilterBackend, ResidenceQueryFilterBackend
from residences.access import filter_by_accessible_residences, can_manage_residence
from .models import ServiceProvider, WorkOrder
from .serializers import (
    ServiceProviderSerializer, WorkOrderSerializer, ScheduleSerializer, CompleteSerializer
)
from .services import WorkOrderService


class ServiceProviderViewSet(viewsets.ModelViewSet):
    """Contractors of the agency"""
    serializer_class = ServiceProviderSerializer
    permission_classes = [IsAuthenticated, IsStaffRole]
    filter_backends = [AgencyFilterBackend]

    def get_queryset(self):
        queryset = ServiceProvider.objects.all()
        trade = self.request.query_params.get('trade')
        if trade:
            queryset = queryset.filter(trade__iexact=trade)
        return queryset

    def perform_create(self, serializer):
        serializer.save(agency=self.request.user.agency)


class WorkOrderViewSet(viewsets.ModelViewSet):
    """
    Work orders of accessible residences (staff only)

    Filters: ?residence=, ?status=, ?provider=
    """
    serializer_class = WorkOrderSerializer
    permission_classes = [IsAuthenticated, IsStaffRole]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            WorkOrder.objects.select_related('residence', 'provider', 'ticket'),
            self.request.user
        )
        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('provider'):
            queryset = queryset.filter(provider_id=params['provider'])
        return queryset

    def perform_create(self, serializer):
        residence = serializer.validated_data['residence']
        if not can_manage_residence(self.request.user, residence):
            from core.exceptions import PermissionDeniedError
            raise PermissionDeniedError("You don't have access to this residence")
        serializer.save(created_by=self.request.user)

    @action(detail=True, methods=['post'])
    def schedule(self, request, pk=None):
        """Body: { "scheduled_date": "YYYY-MM-DD", "provider": <id> }"""
        work_order = self.get_object()
        serializer = ScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provider = None
        provider_id = serializer.validated_data.get('provider')
        if provider_id:
            provider = ServiceProvider.objects.filter(
                id=provider_id, agency_id=work_order.residence.agency_id
            ).first()
            if not provider:
                return Response({'detail': 'Provider not found'}, status=status.HTTP_404_NOT_FOUND)
        work_order = WorkOrderService().schedule(
            work_order, serializer.validated_data['scheduled_date'], provider
        )
        return Response(WorkOrderSerializer(work_order).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        work_order = WorkOrderService().start(self.get_object())
        return Response(WorkOrderSerializer(work_order).data)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        """Body: { "actual_cost": "120.00", "completion_notes": "..." }"""
        work_order = self.get_object()
        serializer = CompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        work_order = WorkOrderService().complete(
            work_order,
            serializer.validated_data.get('actual_cost'),
            serializer.validated_data.get('completion_notes', '')
        )
        return Response(WorkOrderSerializer(work_order).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        work_order = WorkOrderService().cancel(self.get_object())
        return Response(WorkOrderSerializer(work_order).data)

    @action(detail=False, methods=['get'])
    def calendar(self, request):
        """?start=YYYY-MM-DD&end=YYYY-MM-DD"""
        start = parse_date(request.query_params.get('start', '') or '')
        end = parse_date(request.query_params.get('end', '') or '')
        if not start or not end:
            return Response(
                {'detail': 'start and end dates are required (YYYY-MM-DD)'},
                status=status.HTTP_400_BAD_REQUEST
            )
        grouped = WorkOrderService().calendar(self.filter_queryset(self.get_queryset()), start, end)
        return Response({
            day: WorkOrderSerializer(orders, many=True).data
            for day, orders in grouped.items()
        })

    @action(detail=False, methods=['get'], url_path='cost-summary')
    def cost_summary(self, request):
        return Response(WorkOrderService().cost_summary(self.filter_queryset(self.get_queryset())))
