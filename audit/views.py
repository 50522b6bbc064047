"""
Audit Log API Views

Provides read-only access to audit logs with role-based filtering.
"""

from django.db.models import Count, Q
from django.utils.dateparse import parse_date
from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from core.constants import UserRole
from audit.models import AuditLog
from audit.serializers import AuditLogSerializer
from residences.access import get_accessible_residence_ids


def get_visible_logs(user):
    """
    - ADMIN: every log
    - OWNER: all logs of the agency
    - MANAGER / SYNDIC: logs of accessible residences plus their own actions
    """
    if user.is_platform_admin:
        return AuditLog.objects.all()

    if not user.agency_id:
        return AuditLog.objects.none()

    queryset = AuditLog.objects.for_agency(user.agency)
    if user.role == UserRole.OWNER:
        return queryset
    if user.role in (UserRole.MANAGER, UserRole.SYNDIC):
        return queryset.filter(
            Q(residence_id__in=get_accessible_residence_ids(user)) | Q(user=user)
        )
    return AuditLog.objects.none()


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only ViewSet for audit logs.

    Query params: action, entity_type, entity_id, user, residence,
    date_from, date_to (YYYY-MM-DD)
    """
    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = get_visible_logs(self.request.user).select_related('user', 'residence')
        params = self.request.query_params

        for param, field in (('action', 'action'), ('entity_type', 'entity_type'),
                             ('entity_id', 'entity_id'), ('user', 'user_id'),
                             ('residence', 'residence_id')):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{field: value})

        date_from = parse_date(params.get('date_from', '') or '')
        if date_from:
            queryset = queryset.filter(timestamp__date__gte=date_from)
        date_to = parse_date(params.get('date_to', '') or '')
        if date_to:
            queryset = queryset.filter(timestamp__date__lte=date_to)

        return queryset.order_by('-timestamp')

    @action(detail=False, methods=['get'], url_path='entity-trail')
    def entity_trail(self, request):
        """
        Audit trail for a specific entity.

        Example: GET /api/audit/logs/entity-trail/?entity_type=Payment&entity_id=12
        """
        entity_type = request.query_params.get('entity_type')
        entity_id = request.query_params.get('entity_id')
        if not entity_type or not entity_id:
            return Response(
                {'detail': 'Both entity_type and entity_id are required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        queryset = self.get_queryset().for_entity(entity_type, entity_id)
        serializer = self.get_serializer(queryset, many=True)
        return Response({
            'entity_type': entity_type,
            'entity_id': entity_id,
            'audit_trail': serializer.data,
            'count': len(serializer.data)
        })

    @action(detail=False, methods=['get'])
    def stats(self, request):
        """Counts per action over the last ?days= days (default 30)"""
        try:
            days = int(request.query_params.get('days', 30))
        except ValueError:
            days = 30
        queryset = self.get_queryset().since(days)

        by_action = dict(
            queryset.order_by().values_list('action')
            .annotate(count=Count('id'))
        )
        top_users = list(
            queryset.order_by().values('user__id', 'user__username')
            .annotate(count=Count('id'))
            .order_by('-count')[:10]
        )
        return Response({
            'days': days,
            'total_logs': queryset.count(),
            'by_action': by_action,
            'top_users': top_users,
        })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_summary(request):
    """Quick audit summary: totals, today's logs, recent critical actions"""
    logs = get_visible_logs(request.user)
    critical = logs.critical().select_related('user', 'residence').order_by('-timestamp')[:10]

    return Response({
        'total_logs': logs.count(),
        'logs_today': logs.today().count(),
        'recent_critical_actions': AuditLogSerializer(critical, many=True).data,
    })
