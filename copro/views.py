from django.http import FileResponse
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.dto import CoproCallDTO
from core.exceptions import NotFoundError, PermissionDeniedError
from api.permissions import IsStaffOrCouncilReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_call_sent
from common.pdf_utils import generate_call_notice_pdf
from residences.access import filter_by_accessible_residences, can_manage_residence
from residences.models import Lot
from .models import DistributionKey, LotShare, CoproCall, CoproCallItem, WorksFund
from .serializers import (
    DistributionKeySerializer, LotShareSerializer, SetSharesSerializer,
    CoproCallSerializer, CoproCallListSerializer, CoproCallItemSerializer,
    FromBudgetSerializer, RecordPaymentSerializer, WorksFundSerializer,
    WorksFundContributionSerializer
)
from .services import (
    DistributionKeyService, CoproCallService, WorksFundService, resolve_shares
)


def _require_manage(user, residence):
    if not can_manage_residence(user, residence):
        raise PermissionDeniedError("You don't have access to this residence")


class CoproViewSet(viewsets.ModelViewSet):
    """Base for co-ownership data: staff write, conseil syndical reads"""
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def perform_create(self, serializer):
        _require_manage(self.request.user, serializer.validated_data['residence'])
        serializer.save()


class DistributionKeyViewSet(CoproViewSet):
    serializer_class = DistributionKeySerializer

    def get_queryset(self):
        return filter_by_accessible_residences(DistributionKey.objects.all(), self.request.user)

    @action(detail=True, methods=['get', 'post'])
    def shares(self, request, pk=None):
        """
        GET: lot -> shares map used by this key.
        POST: { "shares": [{ "lot": <id>, "shares": 120 }] } upserts the key's shares.
        """
        key = self.get_object()
        if request.method == 'GET':
            shares_map = resolve_shares(key.residence, key)
            lots = Lot.objects.in_bulk(list(shares_map))
            return Response({
                'key': key.code,
                'total_shares': sum(shares_map.values()),
                'shares': [
                    {'lot': lot_id, 'lot_number': lots[lot_id].lot_number, 'shares': shares}
                    for lot_id, shares in sorted(shares_map.items())
                ],
            })

        _require_manage(request.user, key.residence)
        serializer = SetSharesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rows = serializer.validated_data['shares']
        lots = Lot.objects.filter(residence=key.residence).in_bulk([row['lot'] for row in rows])
        missing = [row['lot'] for row in rows if row['lot'] not in lots]
        if missing:
            raise NotFoundError('Lot', missing[0], message=f"Lots not in this residence: {missing}")
        result = DistributionKeyService().set_shares(
            key, [{'lot': lots[row['lot']], 'shares': row['shares']} for row in rows]
        )
        return Response(LotShareSerializer(result, many=True).data)


class LotShareViewSet(viewsets.ModelViewSet):
    serializer_class = LotShareSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            LotShare.objects.select_related('key', 'lot'), self.request.user, residence_field='key__residence'
        )
        key = self.request.query_params.get('key')
        if key:
            queryset = queryset.filter(key_id=key)
        return queryset

    def perform_create(self, serializer):
        _require_manage(self.request.user, serializer.validated_data['key'].residence)
        serializer.save()


class CoproCallViewSet(CoproViewSet):
    """
    Fund calls. Filters: ?residence=, ?status=, ?call_type=

    Lifecycle: create (DRAFT) -> distribute -> send -> payments -> PAID
    """

    def get_serializer_class(self):
        if self.action == 'list':
            return CoproCallListSerializer
        return CoproCallSerializer

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            CoproCall.objects.select_related('residence', 'distribution_key'), self.request.user
        )
        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('call_type'):
            queryset = queryset.filter(call_type=params['call_type'])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        _require_manage(request.user, data['residence'])
        call = CoproCallService().create_call(data['residence'], CoproCallDTO(
            residence_id=data['residence'].id,
            label=data['label'],
            call_type=data['call_type'],
            quarter=data.get('quarter'),
            due_date=data['due_date'],
            total_amount=data['total_amount'],
            distribution_key_id=data['distribution_key'].id if data.get('distribution_key') else None,
            budget_id=data['budget'].id if data.get('budget') else None,
        ), request.user)
        return Response(CoproCallSerializer(call, context={'request': request}).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='from-budget')
    def from_budget(self, request):
        """Body: { "budget": <id>, "quarter": 1-4, "due_date": "YYYY-MM-DD" }"""
        from accounting.models import CoproBudget
        serializer = FromBudgetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        budget = filter_by_accessible_residences(CoproBudget.objects.all(), request.user).filter(
            id=data['budget']
        ).first()
        if budget is None:
            raise NotFoundError('Budget', data['budget'])
        _require_manage(request.user, budget.residence)
        call = CoproCallService().from_budget(budget, data['quarter'], data['due_date'], request.user)
        return Response(CoproCallSerializer(call, context={'request': request}).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def distribute(self, request, pk=None):
        call = CoproCallService().distribute_call(self.get_object())
        return Response(CoproCallSerializer(call, context={'request': request}).data)

    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        call = CoproCallService().send(self.get_object())
        log_call_sent(request.user, call, request)
        return Response(CoproCallSerializer(call, context={'request': request}).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        call = CoproCallService().cancel(self.get_object())
        return Response(CoproCallSerializer(call, context={'request': request}).data)

    @action(detail=True, methods=['get'], url_path='collection-status')
    def collection_status(self, request, pk=None):
        return Response(CoproCallService().collection_status(self.get_object()))

    @action(detail=True, methods=['get'])
    def notice(self, request, pk=None):
        """Download the call notice PDF"""
        call = self.get_object()
        pdf_buffer = generate_call_notice_pdf(call)
        return FileResponse(
            pdf_buffer, as_attachment=True, filename=f"{call.call_number}.pdf", content_type='application/pdf'
        )


class CoproCallItemViewSet(viewsets.ReadOnlyModelViewSet):
    """Call items. Filters: ?call=, ?status="""
    serializer_class = CoproCallItemSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            CoproCallItem.objects.select_related('call', 'lot', 'owner'),
            self.request.user,
            residence_field='call__residence'
        )
        params = self.request.query_params
        if params.get('call'):
            queryset = queryset.filter(call_id=params['call'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    @action(detail=True, methods=['post'], url_path='record-payment')
    def record_payment(self, request, pk=None):
        """Body: { "amount": 250.00 } - also updates the linked payment"""
        item = self.get_object()
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        applied = CoproCallService().record_payment(item, serializer.validated_data['amount'], sync_payment=True)
        item.refresh_from_db()
        return Response({'applied': applied, 'item': CoproCallItemSerializer(item).data})


class WorksFundViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                       mixins.UpdateModelMixin, viewsets.GenericViewSet):
    serializer_class = WorksFundSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        return filter_by_accessible_residences(WorksFund.objects.select_related('residence'), self.request.user)

    def perform_create(self, serializer):
        _require_manage(self.request.user, serializer.validated_data['residence'])
        serializer.save()

    @action(detail=True, methods=['get'])
    def compliance(self, request, pk=None):
        """
        Query: ?budget=<id> (default: the residence's voted budget)
        """
        from accounting.models import CoproBudget
        from core.constants import BudgetStatus
        fund = self.get_object()
        budgets = CoproBudget.objects.filter(residence_id=fund.residence_id)
        budget_id = request.query_params.get('budget')
        if budget_id:
            budget = budgets.filter(id=budget_id).first()
        else:
            budget = budgets.filter(status=BudgetStatus.VOTED).first()
        if budget is None:
            raise NotFoundError('Budget', budget_id)
        return Response(WorksFundService().compliance(fund, budget))

    @action(detail=True, methods=['get'])
    def contributions(self, request, pk=None):
        fund = self.get_object()
        return Response(WorksFundContributionSerializer(fund.contributions.all(), many=True).data)
