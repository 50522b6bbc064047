from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from core.constants import TicketStatus
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_ticket_status_change
from .models import Ticket, TicketCategory
from .serializers import (
    TicketSerializer, TicketListSerializer, TicketCategorySerializer,
    TicketCommentSerializer, TicketStatusSerializer
)
from .services import TicketService, get_visible_tickets


class TicketCategoryViewSet(viewsets.ModelViewSet):
    """Categories are shared; only staff may edit them"""
    serializer_class = TicketCategorySerializer
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]

    def get_queryset(self):
        queryset = TicketCategory.objects.all()
        if not self.request.user.is_staff_role:
            queryset = queryset.filter(is_active=True)
        return queryset


class TicketViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Ticket management

    - Residents create tickets in their residences, see their own and COMMON ones
    - Staff see every ticket of accessible residences and drive the status machine

    Filters: ?status=, ?priority=, ?residence=, ?category=
    """
    permission_classes = [IsAuthenticated]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_serializer_class(self):
        if self.action == 'list':
            return TicketListSerializer
        return TicketSerializer

    def get_queryset(self):
        queryset = get_visible_tickets(self.request.user)
        params = self.request.query_params
        for param in ('status', 'priority', 'ticket_type', 'scope'):
            if params.get(param):
                queryset = queryset.filter(**{param: params[param]})
        if params.get('category'):
            queryset = queryset.filter(category_id=params['category'])
        return queryset.select_related('residence', 'category', 'lot', 'created_by', 'assignee')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = TicketService().create_ticket(request.user, **serializer.validated_data)
        return Response(TicketSerializer(ticket).data, status=status.HTTP_201_CREATED)

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        """Authors and staff may edit ticket details (not the status)"""
        ticket = self.get_object()
        if not (request.user.is_staff_role or ticket.created_by_id == request.user.id):
            return Response(
                {'detail': 'You can only edit your own tickets.'},
                status=status.HTTP_403_FORBIDDEN
            )
        ticket = Ticket.objects.select_for_update().get(pk=ticket.pk)
        serializer = self.get_serializer(ticket, data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    def destroy(self, request, *args, **kwargs):
        ticket = self.get_object()
        if not request.user.is_staff_role:
            return Response(
                {'detail': 'Only staff can delete tickets.'},
                status=status.HTTP_403_FORBIDDEN
            )
        ticket.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='change-status')
    def change_status(self, request, pk=None):
        """
        Body: { "status": "IN_PROGRESS" }
        """
        ticket = self.get_object()
        serializer = TicketStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data['status']
        ticket, old_status = TicketService().change_status(ticket, new_status, request.user)
        log_ticket_status_change(request.user, ticket, old_status, new_status, request)
        return Response(TicketSerializer(ticket).data)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        """
        Body: { "assignee_id": <user_id> } (null to unassign)
        """
        if not request.user.is_staff_role:
            return Response({'detail': 'Only staff can assign tickets.'}, status=status.HTTP_403_FORBIDDEN)
        ticket = self.get_object()
        assignee = None
        assignee_id = request.data.get('assignee_id')
        if assignee_id:
            from users.models import User
            assignee = User.objects.filter(id=assignee_id).first()
            if not assignee:
                return Response({'detail': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
        ticket = TicketService().assign(ticket, assignee)
        return Response(TicketSerializer(ticket).data)

    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, pk=None):
        """List comments, or add one with { "content": "..." }"""
        ticket = self.get_object()
        if request.method == 'POST':
            comment = TicketService().add_comment(ticket, request.user, request.data.get('content', ''))
            return Response(TicketCommentSerializer(comment).data, status=status.HTTP_201_CREATED)
        comments = ticket.comments.select_related('user')
        return Response(TicketCommentSerializer(comments, many=True).data)

    @action(detail=False, methods=['get'])
    def open(self, request):
        """Get all open tickets"""
        tickets = self.filter_queryset(self.get_queryset()).filter(status__in=TicketStatus.ACTIVE)
        return Response(TicketListSerializer(tickets, many=True).data)
