"""
Payment service - payments, monthly rent generation and collection figures.
"""
import calendar
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Optional
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Sum, Count, Q, QuerySet
from django.utils import timezone
from core.constants import PaymentType, PaymentStatus, OccupancyType
from core.dto import PaymentDTO
from core.exceptions import BusinessLogicError
from core.services import BaseService
from core.validators import AmountValidator
from common.utils import get_site_settings, first_day_of_month, quantize_money, percentage
from occupancy.models import Occupancy
from .models import Payment, RentReceipt
from .repositories import PaymentRepository, RentReceiptRepository

ZERO = Decimal('0')


class PaymentService(BaseService):
    """Service for payment business rules"""

    def __init__(self):
        super().__init__()
        self.repository = PaymentRepository()
        self.receipt_repository = RentReceiptRepository()

    @transaction.atomic
    def pay(self, payment_id: int, data: PaymentDTO) -> Payment:
        """
        Record a payment against a due amount.

        The row is locked so concurrent payments cannot both pass the
        remaining-amount check. paid_amount is clamped at amount.

        Raises:
            NotFoundError: payment does not exist
            ValidationError: amount <= 0
            BusinessLogicError: payment already fully paid
        """
        payment = self.repository.lock(payment_id)

        amount = quantize_money(AmountValidator.validate_amount(data.amount, allow_zero=False))
        if payment.status == PaymentStatus.PAID:
            self.log_warning("Payment attempt on a settled payment", payment_id=payment.id)
            raise BusinessLogicError("Payment is already fully paid", code="ALREADY_PAID")

        applied = min(amount, payment.remaining_amount)
        payment.paid_amount = payment.paid_amount + applied
        if data.payment_method:
            payment.payment_method = data.payment_method
        if data.reference:
            payment.reference = data.reference
        payment.save()

        if payment.copro_call_item_id:
            from copro.services import CoproCallService
            CoproCallService().record_payment(payment.copro_call_item, applied)

        self.log_info(
            "Payment recorded",
            payment_id=payment.id, amount=str(applied), status=payment.status
        )
        return payment

    def summary(self, queryset: QuerySet[Payment], month: Optional[date] = None) -> dict:
        """Expected / collected / pending totals for payments due in a month"""
        month = first_day_of_month(month or timezone.localdate())
        stats = self.repository.for_month(queryset, month).aggregate(
            total_expected=Sum('amount'),
            total_collected=Sum('paid_amount'),
            total_count=Count('id'),
            paid_count=Count('id', filter=Q(status=PaymentStatus.PAID)),
            partial_count=Count('id', filter=Q(status=PaymentStatus.PARTIAL)),
            pending_count=Count('id', filter=Q(status=PaymentStatus.PENDING)),
            overdue_count=Count('id', filter=Q(status=PaymentStatus.OVERDUE)),
        )
        expected = stats['total_expected'] or ZERO
        collected = stats['total_collected'] or ZERO
        return {
            'month': month.strftime('%Y-%m'),
            'total_expected': expected,
            'total_collected': collected,
            'total_pending': expected - collected,
            'collection_rate': percentage(collected, expected),
            'total_count': stats['total_count'],
            'paid_count': stats['paid_count'],
            'partial_count': stats['partial_count'],
            'pending_count': stats['pending_count'],
            'overdue_count': stats['overdue_count'],
        }

    def arrears(self, queryset: QuerySet[Payment], today: Optional[date] = None) -> list:
        """
        Unpaid payments past due grouped by (payer, lot), largest debt first.
        """
        today = today or timezone.localdate()
        rows = (
            queryset.filter(status__in=PaymentStatus.UNPAID, due_date__lt=today)
            .select_related('user', 'lot')
            .order_by('due_date')
        )
        groups = OrderedDict()
        for payment in rows:
            key = (payment.user_id, payment.lot_id)
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    'user_id': payment.user_id,
                    'user_name': payment.user.get_full_name() or payment.user.username,
                    'lot_id': payment.lot_id,
                    'lot_number': payment.lot.lot_number if payment.lot else None,
                    'total_outstanding': ZERO,
                    'payments_count': 0,
                    'oldest_due_date': payment.due_date,
                    '_months': set(),
                }
            group['total_outstanding'] += payment.remaining_amount
            group['payments_count'] += 1
            group['_months'].add((payment.due_date.year, payment.due_date.month))

        result = []
        for group in groups.values():
            group['overdue_months'] = len(group.pop('_months'))
            result.append(group)
        result.sort(key=lambda g: (-g['total_outstanding'], g['user_id'], g['lot_id'] or 0))
        return result

    @transaction.atomic
    def get_or_create_receipt(self, payment: Payment) -> RentReceipt:
        """
        Receipt for a fully paid RENT or CHARGES payment, created on first request.
        A RENT receipt includes the paid CHARGES of the same occupancy and month.
        """
        if payment.payment_type not in (PaymentType.RENT, PaymentType.CHARGES):
            raise BusinessLogicError("Receipts are only issued for rent and charges", code="NO_RECEIPT")
        if payment.status != PaymentStatus.PAID:
            raise BusinessLogicError("Receipt is only available once the payment is fully paid", code="NOT_PAID")

        existing = self.receipt_repository.first(payment=payment)
        if existing:
            return existing

        period_start = first_day_of_month(payment.due_date)
        last_day = calendar.monthrange(period_start.year, period_start.month)[1]
        period_end = period_start.replace(day=last_day)

        rent_amount, charges_amount = ZERO, payment.amount
        if payment.payment_type == PaymentType.RENT:
            rent_amount = payment.amount
            charges_amount = ZERO
            if payment.occupancy_id:
                charges_amount = Payment.objects.filter(
                    occupancy_id=payment.occupancy_id,
                    payment_type=PaymentType.CHARGES,
                    status=PaymentStatus.PAID,
                    due_date__range=(period_start, period_end),
                ).aggregate(total=Sum('amount'))['total'] or ZERO

        receipt = self.receipt_repository.create(
            payment=payment,
            tenant=payment.user,
            lot=payment.lot,
            residence=payment.residence,
            period_start=period_start,
            period_end=period_end,
            rent_amount=rent_amount,
            charges_amount=charges_amount,
        )
        self.log_info("Rent receipt issued", receipt_id=receipt.id, payment_id=payment.id)
        return receipt


class RentGenerationService(BaseService):
    """Monthly rent generation and overdue marking (run by management commands)"""

    def __init__(self):
        super().__init__()
        self.repository = PaymentRepository()

    def due_date_for(self, month: date) -> date:
        return first_day_of_month(month).replace(day=get_site_settings().rent_due_day)

    def rent_candidates(self) -> QuerySet[Occupancy]:
        return Occupancy.objects.filter(
            is_active=True,
            occupancy_type=OccupancyType.TENANT,
            rent_amount__gt=0,
        ).select_related('user', 'lot', 'lot__residence')

    def generate_monthly_rent(self, month: Optional[date] = None, dry_run: bool = False) -> dict:
        """
        Create one RENT payment (and one CHARGES payment when charges are set)
        per active tenant occupancy. Occupancies that already have a RENT
        payment for the month are skipped.
        """
        month = first_day_of_month(month or timezone.localdate())
        due_date = self.due_date_for(month)
        month_end = month.replace(day=calendar.monthrange(month.year, month.month)[1])
        label_month = month.strftime('%B %Y')
        created, skipped, failed = [], [], []

        for occupancy in self.rent_candidates():
            if occupancy.start_date > month_end:
                continue
            if self.repository.rent_exists(occupancy.id, month):
                skipped.append(occupancy)
                continue
            if dry_run:
                created.append(occupancy)
                continue
            try:
                self._create_month_payments(occupancy, due_date, label_month)
            except DjangoValidationError:
                self.log_error(
                    "Rent generation failed", exc_info=True,
                    occupancy_id=occupancy.id, month=month.isoformat()
                )
                failed.append(occupancy)
                continue
            created.append(occupancy)

        self.log_info(
            "Monthly rent generation",
            month=month.isoformat(), created=len(created), skipped=len(skipped),
            failed=len(failed), dry_run=dry_run
        )
        return {
            'month': month, 'due_date': due_date,
            'created': created, 'skipped': skipped, 'failed': failed,
        }

    @transaction.atomic
    def _create_month_payments(self, occupancy: Occupancy, due_date: date, label_month: str):
        common = {
            'residence': occupancy.lot.residence,
            'lot': occupancy.lot,
            'user': occupancy.user,
            'occupancy': occupancy,
            'due_date': due_date,
        }
        Payment.objects.create(
            payment_type=PaymentType.RENT,
            label=f"Rent {label_month}",
            amount=occupancy.rent_amount,
            **common
        )
        if occupancy.charges_amount > 0:
            Payment.objects.create(
                payment_type=PaymentType.CHARGES,
                label=f"Charges {label_month}",
                amount=occupancy.charges_amount,
                **common
            )

    def mark_overdue(self, today: Optional[date] = None, dry_run: bool = False) -> int:
        """PENDING payments past their due date become OVERDUE"""
        today = today or timezone.localdate()
        candidates = self.repository.overdue_candidates(today)
        if dry_run:
            return candidates.count()
        updated = candidates.update(status=PaymentStatus.OVERDUE, updated_at=timezone.now())
        self.log_info("Payments marked overdue", count=updated, date=today.isoformat())
        return updated
