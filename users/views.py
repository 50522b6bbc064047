from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from core.constants import UserRole
from agencies.services import AgencyLimitService
from api.permissions import IsAgencyOwner
from api.filters import AgencyFilterBackend
from .models import User
from .serializers import UserSerializer, StaffCreateSerializer


class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.CreateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    Agency staff management (OWNER only) plus `me` for everyone.
    """
    permission_classes = [IsAuthenticated, IsAgencyOwner]
    filter_backends = [AgencyFilterBackend]

    def get_permissions(self):
        if self.action == 'me':
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'create':
            return StaffCreateSerializer
        return UserSerializer

    def get_queryset(self):
        queryset = User.objects.select_related('agency').order_by('username')
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    @transaction.atomic
    def create(self, request, *args, **kwargs):
        """Create a staff member, enforcing the manager limit"""
        agency = request.user.agency
        if not agency:
            return Response(
                {'detail': 'You are not attached to an agency.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if serializer.validated_data['role'] == UserRole.MANAGER:
            AgencyLimitService().validate_manager_limit(agency)

        user = serializer.save(agency=agency)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.role == UserRole.OWNER:
            return Response(
                {'detail': 'The agency owner cannot be deleted.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """Get or update the current user's profile"""
        if request.method == 'PATCH':
            serializer = UserSerializer(request.user, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data)
        return Response(UserSerializer(request.user).data)
