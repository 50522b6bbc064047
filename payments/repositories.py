"""
Payment repository - Data access layer for payments.
"""
from datetime import date
from django.db.models import QuerySet
from core.constants import PaymentType, PaymentStatus
from core.repositories import BaseRepository
from .models import Payment, RentReceipt


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment model"""
    model = Payment

    def pending(self, queryset: QuerySet[Payment] = None) -> QuerySet[Payment]:
        queryset = self.get_queryset() if queryset is None else queryset
        return queryset.filter(status__in=PaymentStatus.UNPAID).order_by('due_date')

    def for_month(self, queryset: QuerySet[Payment], month: date) -> QuerySet[Payment]:
        return queryset.filter(due_date__year=month.year, due_date__month=month.month)

    def rent_exists(self, occupancy_id: int, month: date) -> bool:
        return self.exists(
            occupancy_id=occupancy_id,
            payment_type=PaymentType.RENT,
            due_date__year=month.year,
            due_date__month=month.month,
        )

    def overdue_candidates(self, today: date) -> QuerySet[Payment]:
        return self.filter(status=PaymentStatus.PENDING, due_date__lt=today)


class RentReceiptRepository(BaseRepository[RentReceipt]):
    """Repository for RentReceipt model"""
    model = RentReceipt
