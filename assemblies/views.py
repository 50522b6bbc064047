from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.constants import AssemblyStatus
from core.exceptions import NotFoundError, InvalidTransitionError, PermissionDeniedError
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_assembly_closed
from residences.access import filter_by_accessible_residences, can_manage_residence
from residences.models import Lot
from .models import GeneralAssembly, AssemblyVote
from .serializers import (
    GeneralAssemblySerializer, GeneralAssemblyListSerializer, CastVoteSerializer, AssemblyVoteSerializer
)
from .services import AssemblyService


class GeneralAssemblyViewSet(viewsets.ModelViewSet):
    """
    General assemblies of accessible residences.

    Staff schedule assemblies, open and close the vote; co-owners vote
    for the lots they own. Filters: ?residence=, ?status=, ?upcoming=true
    """
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_permissions(self):
        if self.action in ('vote', 'my_votes'):
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'list':
            return GeneralAssemblyListSerializer
        return GeneralAssemblySerializer

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            GeneralAssembly.objects.select_related('residence'), self.request.user
        )
        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('upcoming') == 'true':
            queryset = queryset.exclude(status=AssemblyStatus.CLOSED).order_by('scheduled_at')
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        agenda = data.pop('agenda', [])
        residence = data.pop('residence')
        assembly = AssemblyService().create_assembly(request.user, residence, agenda=agenda, **data)
        return Response(
            GeneralAssemblySerializer(assembly, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )

    def perform_update(self, serializer):
        assembly = serializer.instance
        if not can_manage_residence(self.request.user, assembly.residence):
            raise PermissionDeniedError("You don't have access to this residence")
        if assembly.status != AssemblyStatus.SCHEDULED:
            raise InvalidTransitionError("Only scheduled assemblies can be edited", code="ASSEMBLY_LOCKED")
        serializer.validated_data.pop('agenda', None)
        serializer.save()

    def perform_destroy(self, instance):
        if instance.status != AssemblyStatus.SCHEDULED:
            raise InvalidTransitionError("Only scheduled assemblies can be deleted", code="ASSEMBLY_LOCKED")
        instance.delete()

    @action(detail=True, methods=['post'], url_path='open-voting')
    def open_voting(self, request, pk=None):
        assembly = AssemblyService().open_voting(self.get_object())
        return Response(GeneralAssemblySerializer(assembly, context={'request': request}).data)

    @action(detail=True, methods=['post'])
    def close(self, request, pk=None):
        assembly = AssemblyService().close(self.get_object())
        log_assembly_closed(request.user, assembly, request)
        return Response(GeneralAssemblySerializer(assembly, context={'request': request}).data)

    @action(detail=True, methods=['post'])
    def vote(self, request, pk=None):
        """
        Body: { "resolution": <id>, "lot": <id>, "choice": "FOR" | "AGAINST" | "ABSTAIN" }
        """
        assembly = self.get_object()
        serializer = CastVoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        resolution = assembly.resolutions.filter(pk=data['resolution']).first()
        if resolution is None:
            raise NotFoundError('Resolution', data['resolution'])
        lot = Lot.objects.filter(pk=data['lot']).first()
        if lot is None:
            raise NotFoundError('Lot', data['lot'])

        vote = AssemblyService().cast_vote(request.user, resolution, lot, data['choice'])
        return Response(AssemblyVoteSerializer(vote).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='my-votes')
    def my_votes(self, request, pk=None):
        votes = AssemblyVote.objects.filter(
            resolution__assembly=self.get_object(), voter=request.user
        ).select_related('lot')
        return Response(AssemblyVoteSerializer(votes, many=True).data)

    @action(detail=True, methods=['get'])
    def results(self, request, pk=None):
        return Response(AssemblyService().results(self.get_object()))
