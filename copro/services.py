"""
Co-ownership services - share resolution, fund calls, works fund.

Amounts are split in cents with the largest-remainder method so the
parts always add up to the total.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Optional
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from core.constants import (
    CallType, CallStatus, CallItemStatus, PaymentType, PaymentStatus, BudgetStatus,
    GENERAL_DISTRIBUTION_KEY
)
from core.dto import CoproCallDTO
from core.exceptions import ValidationError, InvalidTransitionError, BusinessLogicError
from core.services import BaseService
from common.utils import quantize_money
from residences.models import Residence, Lot
from .models import DistributionKey, LotShare, CoproCall, CoproCallItem, WorksFund, WorksFundContribution

ZERO = Decimal('0')
CENT = Decimal('0.01')


def distribute(total, shares_map: Dict[int, int]) -> Dict[int, Decimal]:
    """
    Split total proportionally to shares_map {lot_id: shares}.

    Parts are computed in cents; the cents lost by flooring go one by one
    to the largest remainders (ties broken by lot id). Lots with 0 shares
    get nothing.

    Raises:
        ValidationError: negative total, or no shares at all
    """
    total = quantize_money(total)
    if total < 0:
        raise ValidationError("Amount to distribute cannot be negative", code="NEGATIVE_AMOUNT")
    positive = {lot_id: shares for lot_id, shares in shares_map.items() if shares and shares > 0}
    total_shares = sum(positive.values())
    if total_shares <= 0:
        raise ValidationError("No shares to distribute on", code="NO_SHARES")

    total_cents = int(total * 100)
    parts = {}
    remainders = []
    for lot_id in sorted(positive):
        numerator = total_cents * positive[lot_id]
        parts[lot_id] = numerator // total_shares
        remainders.append((numerator % total_shares, lot_id))

    leftover = total_cents - sum(parts.values())
    remainders.sort(key=lambda item: (-item[0], item[1]))
    for _, lot_id in remainders[:leftover]:
        parts[lot_id] += 1

    return {lot_id: Decimal(cents) * CENT for lot_id, cents in parts.items()}


def resolve_shares(residence, key: Optional[DistributionKey] = None) -> Dict[int, int]:
    """
    lot_id -> shares. A key uses its LotShares; no key (or a GENERAL key
    without LotShares) falls back to the lots' tantiemes.
    """
    if key is not None:
        shares = dict(key.lot_shares.values_list('lot_id', 'shares'))
        if shares or key.code != GENERAL_DISTRIBUTION_KEY:
            return shares
    return dict(Lot.objects.filter(residence=residence).values_list('id', 'tantiemes'))


class DistributionKeyService(BaseService):

    @transaction.atomic
    def set_shares(self, key: DistributionKey, rows) -> list:
        """Upsert LotShares from [{'lot': Lot, 'shares': int}]"""
        result = []
        for row in rows:
            share, _ = LotShare.objects.update_or_create(
                key=key, lot=row['lot'], defaults={'shares': row['shares']}
            )
            result.append(share)
        self.log_info("Distribution key shares updated", key_id=key.id, rows=len(result))
        return result


class CoproCallService(BaseService):
    """Fund-call lifecycle: create, distribute, send, collect"""

    def next_call_number(self, residence, year: int, call_type: str, quarter: Optional[int] = None) -> str:
        existing = set(
            CoproCall.objects.filter(residence=residence, call_number__startswith=f"AF-{year}-")
            .values_list('call_number', flat=True)
        )
        if call_type == CallType.QUARTERLY:
            base = f"AF-{year}-{quarter:02d}"
        else:
            n = 1
            while f"AF-{year}-X{n:02d}" in existing:
                n += 1
            base = f"AF-{year}-X{n:02d}"

        number, suffix = base, 2
        while number in existing:
            number = f"{base}-{suffix}"
            suffix += 1
        return number

    @transaction.atomic
    def create_call(self, residence, data: CoproCallDTO, user=None) -> CoproCall:
        # serialize numbering per residence
        Residence.objects.select_for_update().get(pk=residence.pk)
        if data.call_type == CallType.QUARTERLY and not data.quarter:
            raise ValidationError("Quarter is required for quarterly calls", code="QUARTER_REQUIRED")

        call = CoproCall.objects.create(
            residence=residence,
            budget_id=data.budget_id,
            distribution_key_id=data.distribution_key_id,
            call_number=self.next_call_number(residence, data.due_date.year, data.call_type, data.quarter),
            label=data.label,
            call_type=data.call_type,
            quarter=data.quarter,
            due_date=data.due_date,
            total_amount=quantize_money(data.total_amount),
            created_by=user,
        )
        self.log_info("Fund call created", call_id=call.id, call_number=call.call_number)
        return call

    @transaction.atomic
    def from_budget(self, budget, quarter: int, due_date: date, user=None) -> CoproCall:
        """
        Quarterly call for a quarter of the budget. Q1-Q3 get the rounded
        quarter amount, Q4 absorbs the rounding remainder.
        """
        if budget.status != BudgetStatus.VOTED:
            raise BusinessLogicError("Fund calls can only be built from a voted budget", code="BUDGET_NOT_VOTED")
        if quarter not in (1, 2, 3, 4):
            raise ValidationError("Quarter must be between 1 and 4", code="INVALID_QUARTER")

        total = budget.total_budget
        quarter_amount = quantize_money(total / 4)
        amount = total - quarter_amount * 3 if quarter == 4 else quarter_amount

        call = self.create_call(budget.residence, CoproCallDTO(
            residence_id=budget.residence_id,
            label=f"Budget {budget.fiscal_year} - Q{quarter}",
            call_type=CallType.QUARTERLY,
            quarter=quarter,
            due_date=due_date,
            total_amount=amount,
            budget_id=budget.id,
        ), user)
        return self.distribute_call(call)

    @transaction.atomic
    def distribute_call(self, call: CoproCall) -> CoproCall:
        """(Re)create one item per lot with shares > 0. DRAFT calls only."""
        call = CoproCall.objects.select_for_update().get(pk=call.pk)
        if call.status != CallStatus.DRAFT:
            raise InvalidTransitionError("Only draft calls can be distributed", code="CALL_NOT_DRAFT")

        shares_map = resolve_shares(call.residence, call.distribution_key)
        amounts = distribute(call.total_amount, shares_map)
        lots = Lot.objects.in_bulk(list(amounts))

        call.items.all().delete()
        CoproCallItem.objects.bulk_create([
            CoproCallItem(
                call=call,
                lot=lots[lot_id],
                owner_id=lots[lot_id].owner_id,
                shares=shares_map[lot_id],
                amount=amount,
            )
            for lot_id, amount in sorted(amounts.items())
        ])
        self.log_info("Fund call distributed", call_id=call.id, items=len(amounts))
        return call

    @transaction.atomic
    def send(self, call: CoproCall) -> CoproCall:
        """
        DRAFT -> SENT, creating one payment per item with an owner and an
        amount. Other items stay PENDING and do not hold the call back from PAID.
        """
        from payments.models import Payment
        call = CoproCall.objects.select_for_update().get(pk=call.pk)
        if call.status != CallStatus.DRAFT:
            raise InvalidTransitionError("Only draft calls can be sent", code="CALL_NOT_DRAFT")
        items = list(call.items.select_related('lot'))
        if not items:
            raise BusinessLogicError("Distribute the call before sending it", code="CALL_NOT_DISTRIBUTED")

        payment_type = PaymentType.WORKS_FUND if call.call_type == CallType.WORKS_FUND else PaymentType.COPRO_CALL
        created = 0
        for item in items:
            if not item.owner_id or item.amount <= 0:
                continue
            Payment.objects.create(
                residence=call.residence,
                lot=item.lot,
                user_id=item.owner_id,
                copro_call_item=item,
                payment_type=payment_type,
                label=f"{call.call_number} - {call.label}",
                amount=item.amount,
                due_date=call.due_date,
            )
            created += 1

        call.status = CallStatus.SENT
        call.sent_at = timezone.now()
        call.save()
        self.log_info("Fund call sent", call_id=call.id, payments=created)
        return call

    @transaction.atomic
    def cancel(self, call: CoproCall) -> CoproCall:
        """Cancel a call nothing has been paid on; its open payments are removed"""
        from payments.models import Payment
        call = CoproCall.objects.select_for_update().get(pk=call.pk)
        if call.status in (CallStatus.PAID, CallStatus.CANCELLED):
            raise InvalidTransitionError(f"Cannot cancel a call in status {call.status}")
        if call.items.filter(paid_amount__gt=0).exists():
            raise BusinessLogicError("Payments were already received on this call", code="CALL_HAS_PAYMENTS")
        Payment.objects.filter(copro_call_item__call=call, status__in=PaymentStatus.UNPAID).delete()
        call.status = CallStatus.CANCELLED
        call.save()
        self.log_info("Fund call cancelled", call_id=call.id)
        return call

    @transaction.atomic
    def record_payment(self, item: CoproCallItem, amount, sync_payment: bool = False) -> Decimal:
        """
        Apply a payment to a call item (clamped at the remaining amount).
        Updates the item, the call status and, for works-fund calls, the fund.
        sync_payment also mirrors the amount on the item's Payment.
        Returns the amount applied.
        """
        item = CoproCallItem.objects.select_for_update().select_related('call').get(pk=item.pk)
        amount = quantize_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", code="INVALID_AMOUNT")
        if item.call.status in (CallStatus.DRAFT, CallStatus.CANCELLED):
            raise BusinessLogicError("Payments can only be recorded on sent calls", code="CALL_NOT_SENT")

        applied = min(amount, item.remaining_amount)
        if applied <= 0:
            return ZERO

        now = timezone.now()
        item.paid_amount += applied
        if item.paid_amount >= item.amount:
            item.status = CallItemStatus.PAID
            item.paid_at = item.paid_at or now
        else:
            item.status = CallItemStatus.PARTIAL
        item.save()

        if sync_payment:
            from payments.models import Payment
            payment = Payment.objects.select_for_update().filter(copro_call_item=item).first()
            if payment is not None:
                payment.paid_amount = min(payment.amount, payment.paid_amount + applied)
                payment.save()

        self._refresh_call_status(item.call)
        if item.call.call_type == CallType.WORKS_FUND:
            WorksFundService().contribute(item.call.residence, applied, now.date(), call_item=item)

        self.log_info("Fund call payment recorded", item_id=item.id, amount=str(applied))
        return applied

    def _refresh_call_status(self, call: CoproCall):
        # Items without an owner or an amount get no payment when the call is sent
        items = call.items.all()
        collectable = items.filter(owner__isnull=False, amount__gt=0)
        if collectable.exists() and not collectable.exclude(status=CallItemStatus.PAID).exists():
            call.status = CallStatus.PAID
        elif items.filter(paid_amount__gt=0).exists():
            call.status = CallStatus.PARTIALLY_PAID
        else:
            call.status = CallStatus.SENT
        call.save()

    def collection_status(self, call: CoproCall) -> dict:
        sums = call.items.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total = sums['total'] or ZERO
        paid = sums['paid'] or ZERO
        unpaid = call.items.exclude(status=CallItemStatus.PAID).select_related('lot', 'owner')
        return {
            'call_id': call.id,
            'call_number': call.call_number,
            'status': call.status,
            'total': total,
            'paid': paid,
            'outstanding': total - paid,
            'paid_ratio': round(float(paid) / float(total), 4) if total else 0.0,
            'unpaid_items': [
                {
                    'item_id': item.id,
                    'lot_number': item.lot.lot_number,
                    'owner': item.owner.username if item.owner else None,
                    'amount': item.amount,
                    'paid_amount': item.paid_amount,
                    'remaining': item.remaining_amount,
                }
                for item in unpaid
            ],
        }


class WorksFundService(BaseService):

    def get_fund(self, residence) -> WorksFund:
        fund, _ = WorksFund.objects.get_or_create(residence=residence)
        return fund

    @transaction.atomic
    def contribute(self, residence, amount: Decimal, on: date, call_item=None) -> WorksFund:
        fund = self.get_fund(residence)
        fund = WorksFund.objects.select_for_update().get(pk=fund.pk)
        fund.balance += amount
        fund.last_contribution_date = on
        fund.save()
        WorksFundContribution.objects.create(fund=fund, call_item=call_item, amount=amount, contributed_on=on)
        self.log_info("Works fund contribution", residence_id=residence.id, amount=str(amount))
        return fund

    def compliance(self, fund: WorksFund, budget) -> dict:
        """Yearly contributions against budget total x minimum percentage"""
        required = quantize_money(budget.total_budget * fund.minimum_percentage / 100)
        contributed = fund.contributions.filter(
            contributed_on__year=budget.fiscal_year
        ).aggregate(total=Sum('amount'))['total'] or ZERO
        return {
            'residence_id': fund.residence_id,
            'fiscal_year': budget.fiscal_year,
            'balance': fund.balance,
            'minimum_percentage': fund.minimum_percentage,
            'budget_total': budget.total_budget,
            'required_contribution': required,
            'contributed': contributed,
            'missing': max(required - contributed, ZERO),
            'is_compliant': contributed >= required,
        }
