"""
Bank reconciliation - matching bank transactions with posted accounting entries.
"""
from datetime import timedelta
from typing import Iterable, List
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from core.constants import EntryStatus, DefaultLimits
from core.exceptions import ValidationError, ConflictError, BusinessLogicError
from core.services import BaseService
from .models import AccountingEntry, BankAccount, BankTransaction


class ReconciliationService(BaseService):
    """Reconcile, unreconcile, suggest and import bank transactions"""

    def _entries_for(self, bank_account: BankAccount):
        entries = AccountingEntry.objects.filter(
            status=EntryStatus.POSTED,
            residence__agency_id=bank_account.agency_id,
        )
        if bank_account.residence_id:
            entries = entries.filter(residence_id=bank_account.residence_id)
        return entries

    @transaction.atomic
    def reconcile(self, bank_transaction: BankTransaction, entry: AccountingEntry) -> BankTransaction:
        """
        Mark a transaction as matched with a posted entry.

        Raises:
            ConflictError: transaction or entry already reconciled
            BusinessLogicError: entry not posted
            ValidationError: residence or amount mismatch
        """
        bank_transaction = BankTransaction.objects.select_for_update().select_related(
            'bank_account'
        ).get(pk=bank_transaction.pk)
        if bank_transaction.is_reconciled:
            raise ConflictError("Transaction is already reconciled", code="ALREADY_RECONCILED")
        if not entry.is_posted:
            raise BusinessLogicError("Only posted entries can be reconciled", code="ENTRY_NOT_POSTED")
        if entry.bank_transactions.filter(is_reconciled=True).exists():
            raise ConflictError("Entry is already matched with another transaction", code="ENTRY_ALREADY_RECONCILED")

        bank_account = bank_transaction.bank_account
        if not self._entries_for(bank_account).filter(pk=entry.pk).exists():
            raise ValidationError(
                "Entry does not belong to the bank account's residence",
                code="RESIDENCE_MISMATCH"
            )

        total_debit = entry.total_debit
        if total_debit != abs(bank_transaction.amount):
            raise ValidationError(
                "Entry amount does not match the transaction amount",
                code="AMOUNT_MISMATCH",
                details={'entry_amount': str(total_debit), 'transaction_amount': str(bank_transaction.amount)}
            )

        bank_transaction.is_reconciled = True
        bank_transaction.reconciled_at = timezone.now()
        bank_transaction.reconciled_with = entry
        bank_transaction.save()
        self.log_info("Bank transaction reconciled", transaction_id=bank_transaction.id, entry_id=entry.id)
        return bank_transaction

    @transaction.atomic
    def unreconcile(self, bank_transaction: BankTransaction) -> BankTransaction:
        bank_transaction = BankTransaction.objects.select_for_update().get(pk=bank_transaction.pk)
        if not bank_transaction.is_reconciled:
            raise BusinessLogicError("Transaction is not reconciled", code="NOT_RECONCILED")
        bank_transaction.is_reconciled = False
        bank_transaction.reconciled_at = None
        bank_transaction.reconciled_with = None
        bank_transaction.save()
        self.log_info("Bank transaction unreconciled", transaction_id=bank_transaction.id)
        return bank_transaction

    def suggest_matches(self, bank_transaction: BankTransaction) -> List[AccountingEntry]:
        """Posted, unmatched entries of the same amount within the date window, closest first"""
        window = timedelta(days=DefaultLimits.RECONCILIATION_WINDOW_DAYS)
        day = bank_transaction.transaction_date
        candidates = (
            self._entries_for(bank_transaction.bank_account)
            .filter(date__range=(day - window, day + window))
            .exclude(bank_transactions__is_reconciled=True)
            .annotate(amount=Sum('lines__debit'))
            .filter(amount=abs(bank_transaction.amount))
            .select_related('journal')
        )
        return sorted(candidates, key=lambda entry: (abs((entry.date - day).days), entry.id))

    @transaction.atomic
    def import_transactions(self, bank_account: BankAccount, rows: Iterable[dict]) -> dict:
        """
        Bulk import of bank statement rows. Rows whose external_id already
        exists on the account (or earlier in the batch) are skipped.
        """
        bank_account = BankAccount.objects.select_for_update().get(pk=bank_account.pk)
        seen = set(
            bank_account.transactions.exclude(external_id__isnull=True).values_list('external_id', flat=True)
        )
        created, skipped = [], 0
        for row in rows:
            external_id = row.get('external_id') or None
            if external_id and external_id in seen:
                skipped += 1
                continue
            if external_id:
                seen.add(external_id)
            fields = dict(row, external_id=external_id)
            created.append(BankTransaction.objects.create(bank_account=bank_account, **fields))

        bank_account.balance += sum((t.amount for t in created), 0)
        bank_account.last_sync_at = timezone.now()
        bank_account.save()
        self.log_info(
            "Bank transactions imported",
            bank_account_id=bank_account.id, created=len(created), skipped=skipped
        )
        return {'created': len(created), 'skipped': skipped, 'transactions': created}
