from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from .models import Agency
from .serializers import AgencySerializer, AgencyAdminSerializer
from .services import AgencyLimitService, TrialService
from api.permissions import IsAgencyOwner, IsPlatformAdmin


class AgencyViewSet(mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    mixins.UpdateModelMixin,
                    viewsets.GenericViewSet):
    """
    ViewSet for Agency management

    - Any member reads their own agency (`current`, `limits`)
    - OWNER updates their agency profile
    - Platform ADMIN lists every agency and edits plans/limits
    """
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        if self.request.user.is_platform_admin:
            return AgencyAdminSerializer
        return AgencySerializer

    def get_permissions(self):
        if self.action in ('update', 'partial_update'):
            return [IsAuthenticated(), IsAgencyOwner()]
        if self.action in ('expiring_trials', 'convert'):
            return [IsAuthenticated(), IsPlatformAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        user = self.request.user
        if user.is_platform_admin:
            return Agency.objects.all()
        if not user.agency_id:
            return Agency.objects.none()
        return Agency.objects.filter(id=user.agency_id)

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        """Update agency with row-level locking"""
        agency = Agency.objects.select_for_update().filter(
            id=kwargs.get('pk'),
            id__in=self.get_queryset().values('id')
        ).first()

        if not agency:
            return Response(
                {'detail': 'Agency not found or access denied'},
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = self.get_serializer(agency, data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def current(self, request):
        """Get current user's agency"""
        agency = request.user.agency
        if not agency:
            return Response(
                {'detail': 'You are not attached to an agency.'},
                status=status.HTTP_404_NOT_FOUND
            )
        serializer = self.get_serializer(agency)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def limits(self, request):
        """Current usage vs residence/manager limits"""
        agency = request.user.agency
        if not agency:
            return Response(
                {'detail': 'You are not attached to an agency.'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(AgencyLimitService().get_limit_info(agency))

    @action(detail=False, methods=['get'], url_path='expiring-trials')
    def expiring_trials(self, request):
        """Trial agencies ending within ?days= (default 7)"""
        try:
            days = int(request.query_params.get('days', 7))
        except ValueError:
            days = 7
        agencies = TrialService().expiring_trials(within_days=days)
        return Response(AgencyAdminSerializer(agencies, many=True).data)

    @action(detail=True, methods=['post'])
    def convert(self, request, pk=None):
        """Convert a trial agency to a paid plan. Body: { "plan": "PRO" }"""
        from core.constants import AgencyPlan
        agency = self.get_object()
        plan = request.data.get('plan')
        if plan not in dict(AgencyPlan.CHOICES):
            return Response({'detail': 'Invalid plan'}, status=status.HTTP_400_BAD_REQUEST)
        TrialService().convert(agency, plan)
        return Response(AgencyAdminSerializer(agency).data)
