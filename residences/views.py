from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from core.constants import AuditAction, UserRole
from core.dto import ResidenceDTO, BulkLotsDTO
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_action, log_access_grant, log_access_revoke
from .access import get_accessible_residences, filter_by_accessible_residences, can_manage_residence
from .models import Residence, Building, Lot
from .serializers import (
    ResidenceSerializer, ResidenceListSerializer, BuildingSerializer,
    LotSerializer, LotListSerializer, BulkLotsSerializer, ResidenceAccessSerializer
)
from .services import ResidenceService, ResidenceAccessService, JoinService


class ResidenceViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Residence management

    - OWNER: all residences of the agency, creates/deletes residences
    - MANAGER / SYNDIC / CS: residences granted via ResidenceAccess
    - RESIDENT: residences where they live (read only)
    """
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]

    def get_permissions(self):
        if self.action == 'join':
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'list':
            return ResidenceListSerializer
        return ResidenceSerializer

    def get_queryset(self):
        return get_accessible_residences(self.request.user).select_related('agency')

    def _require_owner(self, request):
        if request.user.role != UserRole.OWNER and not request.user.is_platform_admin:
            return Response(
                {'detail': 'Only the agency owner can perform this action.'},
                status=status.HTTP_403_FORBIDDEN
            )
        return None

    def create(self, request, *args, **kwargs):
        """Create residence (OWNER only, residence limit enforced)"""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not request.user.agency:
            return Response(
                {'detail': 'You are not attached to an agency.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        data = ResidenceDTO(**{
            key: value for key, value in serializer.validated_data.items()
            if key in ResidenceDTO.__dataclass_fields__
        })
        residence = ResidenceService().create_residence(request.user.agency, data, request.user)
        extra = serializer.validated_data.get('settings')
        if extra:
            residence.settings = extra
            residence.save(update_fields=['settings'])
        log_action(
            user=request.user,
            action=AuditAction.CREATE,
            entity_type='Residence',
            entity_id=residence.id,
            description=f"Created residence: {residence.name}",
            request=request,
            residence=residence
        )
        return Response(ResidenceSerializer(residence).data, status=status.HTTP_201_CREATED)

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        """Update residence with row-level locking"""
        residence = Residence.objects.select_for_update().filter(
            id=kwargs.get('pk'),
            id__in=self.get_queryset().values('id')
        ).first()
        if not residence:
            return Response(
                {'detail': 'Residence not found or access denied'},
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = self.get_serializer(residence, data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        serializer.save()
        log_action(
            user=request.user,
            action=AuditAction.UPDATE,
            entity_type='Residence',
            entity_id=residence.id,
            description=f"Updated residence: {residence.name}",
            request=request,
            residence=residence,
            new_data={key: str(value) for key, value in serializer.validated_data.items()}
        )
        return Response(serializer.data)

    def destroy(self, request, *args, **kwargs):
        denied = self._require_owner(request)
        if denied:
            return denied
        residence = self.get_object()
        log_action(
            user=request.user,
            action=AuditAction.DELETE,
            entity_type='Residence',
            entity_id=residence.id,
            description=f"Deleted residence: {residence.name}",
            request=request
        )
        residence.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def hierarchy(self, request, pk=None):
        """Residence → buildings → lots tree with counts"""
        residence = self.get_object()
        return Response(ResidenceService().hierarchy(residence))

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Every residence of the agency with aggregated counts"""
        if not request.user.agency:
            return Response([])
        rows = ResidenceService().agency_residences_summary(request.user.agency)
        if request.user.role != UserRole.OWNER:
            accessible = set(self.get_queryset().values_list('id', flat=True))
            rows = [row for row in rows if row['id'] in accessible]
        return Response(rows)

    @action(detail=True, methods=['post'], url_path='bulk-lots')
    def bulk_lots(self, request, pk=None):
        """
        Create a numbered series of lots.

        Body: { "prefix": "A", "start": 1, "end": 20, "building": <id>, "lot_type": "APARTMENT", "tantiemes": 100 }
        """
        residence = self.get_object()
        serializer = BulkLotsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = ResidenceService().bulk_create_lots(residence, BulkLotsDTO(
            residence_id=residence.id,
            building_id=data.get('building'),
            prefix=data['prefix'],
            start=data['start'],
            end=data['end'],
            lot_type=data['lot_type'],
            tantiemes=data['tantiemes'],
            floor=data.get('floor'),
        ))
        return Response(result, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='grant-access')
    def grant_access(self, request, pk=None):
        """
        Grant residence access (OWNER only).

        Body: { "user_id": <user_id> }
        """
        denied = self._require_owner(request)
        if denied:
            return denied
        residence = self.get_object()
        user_id = request.data.get('user_id')
        if not user_id:
            return Response({'detail': 'user_id is required'}, status=status.HTTP_400_BAD_REQUEST)

        from users.models import User
        grantee = User.objects.filter(id=user_id, role__in=UserRole.GRANTED).first()
        if not grantee or (grantee.role != UserRole.CS and grantee.agency_id != residence.agency_id):
            return Response({'detail': 'User not found in your agency'}, status=status.HTTP_404_NOT_FOUND)

        access, created = ResidenceAccessService().grant_access(residence, grantee, request.user)
        if created:
            log_access_grant(request.user, access, request)
            return Response({
                'detail': f'Access granted to {grantee.username} for {residence.name}',
                'access_id': access.id
            }, status=status.HTTP_201_CREATED)
        return Response({
            'detail': f'{grantee.username} already has access to {residence.name}',
            'access_id': access.id
        }, status=status.HTTP_200_OK)

    @action(detail=True, methods=['post'], url_path='revoke-access')
    def revoke_access(self, request, pk=None):
        """
        Revoke residence access (OWNER only).

        Body: { "user_id": <user_id> }
        """
        denied = self._require_owner(request)
        if denied:
            return denied
        residence = self.get_object()
        user_id = request.data.get('user_id')
        if not user_id:
            return Response({'detail': 'user_id is required'}, status=status.HTTP_400_BAD_REQUEST)

        from users.models import User
        revoked_user = User.objects.filter(id=user_id).first()
        if revoked_user and ResidenceAccessService().revoke_access(residence, revoked_user):
            log_access_revoke(request.user, residence, revoked_user, request)
            return Response({'detail': 'Access revoked successfully'}, status=status.HTTP_200_OK)
        return Response({'detail': 'No access found to revoke'}, status=status.HTTP_404_NOT_FOUND)

    @action(detail=True, methods=['get'], url_path='access-list')
    def access_list(self, request, pk=None):
        """Users granted access to this residence (OWNER only)"""
        denied = self._require_owner(request)
        if denied:
            return denied
        residence = self.get_object()
        accesses = ResidenceAccessService().access_list(residence)
        return Response({
            'residence_id': residence.id,
            'residence_name': residence.name,
            'accesses': ResidenceAccessSerializer(accesses, many=True).data,
        })

    @action(detail=True, methods=['post'], url_path='regenerate-code')
    def regenerate_code(self, request, pk=None):
        residence = self.get_object()
        return Response({'join_code': ResidenceService().regenerate_join_code(residence)})

    @action(detail=False, methods=['post'])
    def join(self, request):
        """
        Join with an invitation code.

        Body: { "code": "AB12CD" }
        A lot code creates an occupancy, a residence code returns the residence and its lots.
        """
        result = JoinService().join(request.user, request.data.get('code'))
        payload = {
            'type': result['type'],
            'residence': ResidenceListSerializer(result['residence']).data,
        }
        if result['type'] == 'lot':
            from audit.helpers import log_occupancy_assign
            log_occupancy_assign(request.user, result['occupancy'], request)
            payload['lot'] = LotListSerializer(result['lot']).data
            payload['occupancy_id'] = result['occupancy'].id
            return Response(payload, status=status.HTTP_201_CREATED)
        payload['lots'] = LotListSerializer(result['lots'], many=True).data
        return Response(payload)


class ResidenceScopedViewSet(viewsets.ModelViewSet):
    """Base for models hanging off a residence: reads need access, writes need staff access"""
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]
    residence_field = 'residence'

    def perform_create(self, serializer):
        residence = serializer.validated_data.get('residence')
        if not can_manage_residence(self.request.user, residence):
            from core.exceptions import PermissionDeniedError
            raise PermissionDeniedError("You don't have access to this residence")
        serializer.save()


class BuildingViewSet(ResidenceScopedViewSet):
    serializer_class = BuildingSerializer

    def get_queryset(self):
        return filter_by_accessible_residences(
            Building.objects.select_related('residence'), self.request.user
        )


class LotViewSet(ResidenceScopedViewSet):
    """
    Lots of accessible residences.
    Filters: ?residence=, ?building=, ?lot_type=
    """

    def get_serializer_class(self):
        if self.action == 'list':
            return LotListSerializer
        return LotSerializer

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            Lot.objects.select_related('residence', 'building'), self.request.user
        )
        building = self.request.query_params.get('building')
        if building:
            queryset = queryset.filter(building_id=building)
        lot_type = self.request.query_params.get('lot_type')
        if lot_type:
            queryset = queryset.filter(lot_type=lot_type)
        return queryset

    @action(detail=True, methods=['post'], url_path='regenerate-code')
    def regenerate_code(self, request, pk=None):
        lot = self.get_object()
        return Response({'join_code': ResidenceService().regenerate_join_code(lot)})
