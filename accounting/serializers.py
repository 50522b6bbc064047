from django.db.models import Q
from rest_framework import serializers
from .models import (
    AccountingAccount, AccountingJournal, AccountingEntry, AccountingLine,
    CoproBudget, BudgetLine, ChargesRegularization, BankAccount, BankTransaction
)


def _user_agency_id(serializer):
    request = serializer.context.get('request')
    if request and request.user.is_authenticated:
        return request.user.agency_id
    return None


class AccountingAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccountingAccount
        fields = ['id', 'agency', 'code', 'name', 'account_type', 'parent', 'is_system', 'is_active', 'created_at']
        read_only_fields = ['id', 'agency', 'is_system', 'created_at']


class AccountingJournalSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccountingJournal
        fields = ['id', 'code', 'name', 'journal_type', 'created_at']
        read_only_fields = ['id', 'created_at']


class AccountingLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source='account.code', read_only=True)
    account_name = serializers.CharField(source='account.name', read_only=True)

    class Meta:
        model = AccountingLine
        fields = ['id', 'account', 'account_code', 'account_name', 'lot', 'label', 'debit', 'credit']
        read_only_fields = ['id']

    def validate(self, data):
        debit = data.get('debit') or 0
        credit = data.get('credit') or 0
        if (debit > 0) == (credit > 0):
            raise serializers.ValidationError("Exactly one of debit or credit must be greater than zero.")
        return data


class AccountingEntrySerializer(serializers.ModelSerializer):
    """Entry with nested lines (lines are replaced on update while DRAFT)"""
    lines = AccountingLineSerializer(many=True)
    journal_code = serializers.CharField(source='journal.code', read_only=True)
    total_debit = serializers.SerializerMethodField()
    total_credit = serializers.SerializerMethodField()

    class Meta:
        model = AccountingEntry
        fields = [
            'id', 'residence', 'journal', 'journal_code', 'date', 'label', 'reference',
            'status', 'posted_at', 'created_by', 'lines', 'total_debit', 'total_credit',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'status', 'posted_at', 'created_by', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        agency_id = _user_agency_id(self)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)
            if not request.user.is_platform_admin:
                self.fields['journal'].queryset = AccountingJournal.objects.filter(agency_id=agency_id)
                self.fields['lines'].child.fields['account'].queryset = AccountingAccount.objects.filter(
                    Q(agency_id=agency_id) | Q(agency__isnull=True), is_active=True
                )

    def get_total_debit(self, obj):
        return obj.totals()[0]

    def get_total_credit(self, obj):
        return obj.totals()[1]

    def validate(self, data):
        residence = data.get('residence', getattr(self.instance, 'residence', None))
        journal = data.get('journal', getattr(self.instance, 'journal', None))
        if residence and journal and journal.agency_id != residence.agency_id:
            raise serializers.ValidationError({'journal': "Journal belongs to another agency."})
        for line in data.get('lines', []):
            lot = line.get('lot')
            if lot and residence and lot.residence_id != residence.id:
                raise serializers.ValidationError({'lines': "Every lot must belong to the entry's residence."})
        return data


class AccountingEntryListSerializer(serializers.ModelSerializer):
    journal_code = serializers.CharField(source='journal.code', read_only=True)

    class Meta:
        model = AccountingEntry
        fields = ['id', 'residence', 'journal_code', 'date', 'label', 'reference', 'status']


class BudgetLineSerializer(serializers.ModelSerializer):
    percent_used = serializers.ReadOnlyField()
    is_over = serializers.ReadOnlyField()

    class Meta:
        model = BudgetLine
        fields = [
            'id', 'budget', 'category', 'label', 'budgeted_amount', 'actual_amount',
            'distribution_key', 'percent_used', 'is_over'
        ]
        read_only_fields = ['id']

    def validate(self, data):
        budget = data.get('budget', getattr(self.instance, 'budget', None))
        key = data.get('distribution_key')
        if key and budget and key.residence_id != budget.residence_id:
            raise serializers.ValidationError({'distribution_key': "Distribution key belongs to another residence."})
        return data


class CoproBudgetSerializer(serializers.ModelSerializer):
    lines = BudgetLineSerializer(many=True, read_only=True)
    total_budget = serializers.ReadOnlyField()
    total_actual = serializers.ReadOnlyField()

    class Meta:
        model = CoproBudget
        fields = [
            'id', 'residence', 'fiscal_year', 'status', 'voted_at', 'notes',
            'total_budget', 'total_actual', 'lines', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'status', 'voted_at', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)


class ChargesRegularizationSerializer(serializers.ModelSerializer):
    tenant = serializers.CharField(source='occupancy.user.username', read_only=True)
    lot_number = serializers.CharField(source='occupancy.lot.lot_number', read_only=True)

    class Meta:
        model = ChargesRegularization
        fields = [
            'id', 'occupancy', 'tenant', 'lot_number', 'period_start', 'period_end',
            'provisions_total', 'actual_charges', 'balance', 'status', 'sent_at',
            'paid_at', 'created_at'
        ]
        read_only_fields = ['id', 'balance', 'status', 'sent_at', 'paid_at', 'created_at']
        extra_kwargs = {'provisions_total': {'required': False}}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import filter_by_accessible_residences
            from occupancy.models import Occupancy
            self.fields['occupancy'].queryset = filter_by_accessible_residences(
                Occupancy.objects.all(), request.user, residence_field='lot__residence'
            )


class BankAccountSerializer(serializers.ModelSerializer):
    unreconciled_count = serializers.SerializerMethodField()

    class Meta:
        model = BankAccount
        fields = [
            'id', 'residence', 'bank_name', 'account_name', 'iban', 'bic', 'balance',
            'is_main', 'last_sync_at', 'unreconciled_count', 'created_at'
        ]
        read_only_fields = ['id', 'last_sync_at', 'created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def get_unreconciled_count(self, obj):
        return obj.transactions.filter(is_reconciled=False).count()


class BankTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = BankTransaction
        fields = [
            'id', 'bank_account', 'transaction_date', 'value_date', 'amount', 'label',
            'counterparty', 'category', 'external_id', 'is_reconciled', 'reconciled_at',
            'reconciled_with', 'created_at'
        ]
        read_only_fields = ['id', 'is_reconciled', 'reconciled_at', 'reconciled_with', 'created_at']


class BankTransactionImportRowSerializer(serializers.Serializer):
    transaction_date = serializers.DateField()
    value_date = serializers.DateField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    label = serializers.CharField(max_length=255)
    counterparty = serializers.CharField(max_length=255, required=False, allow_blank=True)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True)
    external_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class BankTransactionImportSerializer(serializers.Serializer):
    transactions = BankTransactionImportRowSerializer(many=True, allow_empty=False)


class ReconcileSerializer(serializers.Serializer):
    entry_id = serializers.IntegerField()
