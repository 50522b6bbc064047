from django.contrib import admin
from .models import (
    AccountingAccount, AccountingJournal, AccountingEntry, AccountingLine,
    CoproBudget, BudgetLine, ChargesRegularization, BankAccount, BankTransaction
)


@admin.register(AccountingAccount)
class AccountingAccountAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'account_type', 'agency', 'is_system', 'is_active']
    list_filter = ['account_type', 'is_system', 'agency']
    search_fields = ['code', 'name']


@admin.register(AccountingJournal)
class AccountingJournalAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'journal_type', 'agency']
    list_filter = ['journal_type', 'agency']


class AccountingLineInline(admin.TabularInline):
    model = AccountingLine
    extra = 0


@admin.register(AccountingEntry)
class AccountingEntryAdmin(admin.ModelAdmin):
    list_display = ['id', 'date', 'journal', 'label', 'residence', 'status', 'posted_at']
    list_filter = ['status', 'journal', 'residence']
    search_fields = ['label', 'reference']
    readonly_fields = ['status', 'posted_at', 'created_at', 'updated_at']
    inlines = [AccountingLineInline]


class BudgetLineInline(admin.TabularInline):
    model = BudgetLine
    extra = 0


@admin.register(CoproBudget)
class CoproBudgetAdmin(admin.ModelAdmin):
    list_display = ['residence', 'fiscal_year', 'status', 'voted_at']
    list_filter = ['status', 'fiscal_year']
    readonly_fields = ['voted_at']
    inlines = [BudgetLineInline]


@admin.register(ChargesRegularization)
class ChargesRegularizationAdmin(admin.ModelAdmin):
    list_display = ['occupancy', 'period_start', 'period_end', 'provisions_total', 'actual_charges', 'balance', 'status']
    list_filter = ['status']
    readonly_fields = ['balance', 'sent_at', 'paid_at']


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ['bank_name', 'account_name', 'agency', 'residence', 'balance', 'is_main']
    list_filter = ['agency', 'is_main']


@admin.register(BankTransaction)
class BankTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_date', 'bank_account', 'label', 'amount', 'is_reconciled']
    list_filter = ['is_reconciled', 'bank_account']
    search_fields = ['label', 'counterparty', 'external_id']
