from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from api.permissions import IsStaffOrCouncilReadOnly
from api.filters import AgencyFilterBackend, ResidenceQueryFilterBackend
from audit.helpers import log_entry_posted, log_reconciliation
from residences.access import (
    get_accessible_residences, filter_by_accessible_residences, can_manage_residence
)
from .models import (
    AccountingAccount, AccountingJournal, AccountingEntry, CoproBudget, BudgetLine,
    ChargesRegularization, BankAccount, BankTransaction
)
from .serializers import (
    AccountingAccountSerializer, AccountingJournalSerializer, AccountingEntrySerializer,
    AccountingEntryListSerializer, CoproBudgetSerializer, BudgetLineSerializer,
    ChargesRegularizationSerializer, BankAccountSerializer, BankTransactionSerializer,
    BankTransactionImportSerializer, ReconcileSerializer
)
from .services import EntryService, BudgetService, RegularizationService
from .reconciliation import ReconciliationService
from . import reports


def _date_param(request, name):
    value = request.query_params.get(name)
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"{name} must use the YYYY-MM-DD format", code="INVALID_DATE")
    return parsed


def _require_residence_access(user, residence):
    if not can_manage_residence(user, residence):
        raise PermissionDeniedError("You don't have access to this residence")


class AccountingAccountViewSet(viewsets.ModelViewSet):
    """
    Chart of accounts: shared system accounts plus the agency's own accounts.
    System accounts are read only.
    """
    serializer_class = AccountingAccountSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]

    def get_queryset(self):
        user = self.request.user
        queryset = AccountingAccount.objects.all()
        if not user.is_platform_admin:
            queryset = queryset.filter(Q(agency_id=user.agency_id) | Q(agency__isnull=True))
        account_type = self.request.query_params.get('account_type')
        if account_type:
            queryset = queryset.filter(account_type=account_type)
        return queryset

    def perform_create(self, serializer):
        serializer.save(agency=self.request.user.agency)

    def perform_update(self, serializer):
        if serializer.instance.is_system:
            raise PermissionDeniedError("System accounts cannot be modified")
        serializer.save()

    def perform_destroy(self, instance):
        if instance.is_system:
            raise PermissionDeniedError("System accounts cannot be deleted")
        instance.delete()


class AccountingJournalViewSet(viewsets.ModelViewSet):
    serializer_class = AccountingJournalSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [AgencyFilterBackend]
    queryset = AccountingJournal.objects.all()

    def perform_create(self, serializer):
        serializer.save(agency=self.request.user.agency)


class AccountingEntryViewSet(viewsets.ModelViewSet):
    """
    Journal entries of accessible residences.
    Filters: ?residence=, ?status=, ?journal=, ?date_from=, ?date_to=
    """
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_serializer_class(self):
        if self.action == 'list':
            return AccountingEntryListSerializer
        return AccountingEntrySerializer

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            AccountingEntry.objects.select_related('journal', 'residence'), self.request.user
        ).prefetch_related('lines', 'lines__account')
        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('journal'):
            queryset = queryset.filter(journal_id=params['journal'])
        date_from = _date_param(self.request, 'date_from')
        if date_from:
            queryset = queryset.filter(date__gte=date_from)
        date_to = _date_param(self.request, 'date_to')
        if date_to:
            queryset = queryset.filter(date__lte=date_to)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        _require_residence_access(request.user, data['residence'])
        entry = EntryService().create_entry(
            residence=data['residence'],
            journal=data['journal'],
            entry_date=data['date'],
            label=data['label'],
            reference=data.get('reference', ''),
            lines=data['lines'],
            user=request.user,
        )
        return Response(AccountingEntrySerializer(entry, context={'request': request}).data,
                        status=status.HTTP_201_CREATED)

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        """Update a DRAFT entry; lines, when given, replace the existing ones"""
        entry = self.get_object()
        serializer = self.get_serializer(entry, data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        lines = data.pop('lines', None)
        if 'residence' in data:
            _require_residence_access(request.user, data['residence'])
        for field, value in data.items():
            setattr(entry, field, value)
        entry.save()
        if lines is not None:
            entry = EntryService().replace_lines(entry, lines)
        return Response(AccountingEntrySerializer(entry, context={'request': request}).data)

    @action(detail=True, methods=['post'], url_path='post')
    def post_entry(self, request, pk=None):
        """Post a balanced entry (at least two lines); posted entries are immutable"""
        entry = EntryService().post_entry(self.get_object())
        log_entry_posted(request.user, entry, request)
        return Response(AccountingEntrySerializer(entry, context={'request': request}).data)


class AccountingReportViewSet(viewsets.ViewSet):
    """
    Reports over posted entries of one residence.

    Query: ?residence=<id> (required), ?date_from=, ?date_to=
    """
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]

    def _residence(self, request):
        residence_id = request.query_params.get('residence')
        if not residence_id or not residence_id.isdigit():
            raise ValidationError("residence query parameter is required", code="RESIDENCE_REQUIRED")
        residence = get_accessible_residences(request.user).filter(id=int(residence_id)).first()
        if residence is None:
            raise NotFoundError('Residence', residence_id)
        return residence

    @action(detail=False, methods=['get'], url_path='trial-balance')
    def trial_balance(self, request):
        residence = self._residence(request)
        return Response(reports.trial_balance(
            residence, _date_param(request, 'date_from'), _date_param(request, 'date_to')
        ))

    @action(detail=False, methods=['get'], url_path='general-ledger')
    def general_ledger(self, request):
        """Query: ?account=<id> (required)"""
        residence = self._residence(request)
        account_id = request.query_params.get('account')
        account = AccountingAccount.objects.filter(
            Q(agency_id=residence.agency_id) | Q(agency__isnull=True), id=account_id
        ).first() if account_id and account_id.isdigit() else None
        if account is None:
            raise NotFoundError('Account', account_id)
        return Response(reports.general_ledger(
            residence, account, _date_param(request, 'date_from'), _date_param(request, 'date_to')
        ))

    @action(detail=False, methods=['get'], url_path='cash-flow')
    def cash_flow(self, request):
        """Query: ?year=YYYY (default: current year)"""
        residence = self._residence(request)
        year = request.query_params.get('year')
        year = int(year) if year and year.isdigit() else timezone.localdate().year
        return Response({'year': year, 'months': reports.cash_flow(residence, year)})

    @action(detail=False, methods=['get'], url_path='expense-breakdown')
    def expense_breakdown(self, request):
        residence = self._residence(request)
        return Response(reports.expense_breakdown(
            residence, _date_param(request, 'date_from'), _date_param(request, 'date_to')
        ))


class CoproBudgetViewSet(viewsets.ModelViewSet):
    """Yearly budgets. Filters: ?residence=, ?fiscal_year="""
    serializer_class = CoproBudgetSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            CoproBudget.objects.select_related('residence').prefetch_related('lines'), self.request.user
        )
        fiscal_year = self.request.query_params.get('fiscal_year')
        if fiscal_year:
            queryset = queryset.filter(fiscal_year=fiscal_year)
        return queryset

    def perform_create(self, serializer):
        _require_residence_access(self.request.user, serializer.validated_data['residence'])
        serializer.save()

    @action(detail=True, methods=['post'])
    def vote(self, request, pk=None):
        budget = BudgetService().vote(self.get_object())
        return Response(CoproBudgetSerializer(budget, context={'request': request}).data)

    @action(detail=True, methods=['post'])
    def close(self, request, pk=None):
        budget = BudgetService().close(self.get_object())
        return Response(CoproBudgetSerializer(budget, context={'request': request}).data)

    @action(detail=True, methods=['get'])
    def usage(self, request, pk=None):
        return Response(BudgetService().usage(self.get_object()))


class BudgetLineViewSet(viewsets.ModelViewSet):
    serializer_class = BudgetLineSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            BudgetLine.objects.select_related('budget'), self.request.user, residence_field='budget__residence'
        )
        budget = self.request.query_params.get('budget')
        if budget:
            queryset = queryset.filter(budget_id=budget)
        return queryset

    def perform_create(self, serializer):
        _require_residence_access(self.request.user, serializer.validated_data['budget'].residence)
        serializer.save()


class ChargesRegularizationViewSet(viewsets.ModelViewSet):
    """
    Charges regularization of tenant occupancies.
    provisions_total defaults to the CHARGES payments collected over the period.
    """
    serializer_class = ChargesRegularizationSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]
    residence_field = 'occupancy__lot__residence'

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            ChargesRegularization.objects.select_related('occupancy', 'occupancy__user', 'occupancy__lot'),
            self.request.user,
            residence_field='occupancy__lot__residence'
        )
        if self.request.query_params.get('status'):
            queryset = queryset.filter(status=self.request.query_params['status'])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        _require_residence_access(request.user, data['occupancy'].lot.residence)
        regularization = RegularizationService().compute(
            occupancy=data['occupancy'],
            period_start=data['period_start'],
            period_end=data['period_end'],
            actual_charges=data['actual_charges'],
            provisions_total=data.get('provisions_total'),
        )
        return Response(ChargesRegularizationSerializer(regularization).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        return Response(RegularizationService().summary(self.filter_queryset(self.get_queryset())))

    @action(detail=True, methods=['post'], url_path='mark-sent')
    def mark_sent(self, request, pk=None):
        regularization = RegularizationService().mark_sent(self.get_object())
        return Response(ChargesRegularizationSerializer(regularization).data)

    @action(detail=True, methods=['post'], url_path='mark-paid')
    def mark_paid(self, request, pk=None):
        regularization = RegularizationService().mark_paid(self.get_object())
        return Response(ChargesRegularizationSerializer(regularization).data)


class BankAccountViewSet(viewsets.ModelViewSet):
    serializer_class = BankAccountSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [AgencyFilterBackend, ResidenceQueryFilterBackend]
    queryset = BankAccount.objects.select_related('residence')

    def perform_create(self, serializer):
        serializer.save(agency=self.request.user.agency)

    @action(detail=True, methods=['post'], url_path='import')
    def import_transactions(self, request, pk=None):
        """
        Import statement rows.

        Body: { "transactions": [{ "transaction_date": "...", "amount": "-120.00", "label": "...", "external_id": "..." }] }
        Rows with an already imported external_id are skipped.
        """
        bank_account = self.get_object()
        serializer = BankTransactionImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = ReconciliationService().import_transactions(bank_account, serializer.validated_data['transactions'])
        return Response({
            'created': result['created'],
            'skipped': result['skipped'],
            'transactions': BankTransactionSerializer(result['transactions'], many=True).data,
        }, status=status.HTTP_201_CREATED)


class BankTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Bank transactions of the agency's accounts.
    Filters: ?bank_account=, ?is_reconciled=
    """
    serializer_class = BankTransactionSerializer
    permission_classes = [IsAuthenticated, IsStaffOrCouncilReadOnly]
    filter_backends = [AgencyFilterBackend]
    agency_field = 'bank_account__agency'

    def get_queryset(self):
        queryset = BankTransaction.objects.select_related('bank_account', 'reconciled_with')
        params = self.request.query_params
        if params.get('bank_account'):
            queryset = queryset.filter(bank_account_id=params['bank_account'])
        is_reconciled = params.get('is_reconciled')
        if is_reconciled is not None:
            queryset = queryset.filter(is_reconciled=is_reconciled.lower() == 'true')
        return queryset

    @action(detail=False, methods=['get'])
    def pending(self, request):
        """Unreconciled transactions, oldest first"""
        transactions = self.filter_queryset(self.get_queryset()).filter(
            is_reconciled=False
        ).order_by('transaction_date', 'id')
        return Response(BankTransactionSerializer(transactions, many=True).data)

    @action(detail=True, methods=['get'])
    def suggestions(self, request, pk=None):
        """Posted entries matching the amount within the reconciliation window"""
        entries = ReconciliationService().suggest_matches(self.get_object())
        return Response(AccountingEntryListSerializer(entries, many=True).data)

    @action(detail=True, methods=['post'])
    def reconcile(self, request, pk=None):
        """Body: { "entry_id": <id> }"""
        bank_transaction = self.get_object()
        serializer = ReconcileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = filter_by_accessible_residences(
            AccountingEntry.objects.all(), request.user
        ).filter(id=serializer.validated_data['entry_id']).first()
        if entry is None:
            raise NotFoundError('AccountingEntry', serializer.validated_data['entry_id'])
        bank_transaction = ReconciliationService().reconcile(bank_transaction, entry)
        log_reconciliation(request.user, bank_transaction, request)
        return Response(BankTransactionSerializer(bank_transaction).data)

    @action(detail=True, methods=['post'])
    def unreconcile(self, request, pk=None):
        bank_transaction = ReconciliationService().unreconcile(self.get_object())
        return Response(BankTransactionSerializer(bank_transaction).data)
