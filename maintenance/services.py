"""
Work order service - lifecycle of interventions and cost reporting.
"""
from collections import OrderedDict
from decimal import Decimal
from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone
from core.constants import WorkOrderStatus, TicketStatus
from core.exceptions import InvalidTransitionError, ValidationError
from core.services import BaseService
from core.validators import AmountValidator, DateRangeValidator
from .models import WorkOrder


class WorkOrderService(BaseService):
    """Service for work order state changes"""

    ALLOWED = {
        'schedule': [WorkOrderStatus.PENDING, WorkOrderStatus.SCHEDULED],
        'start': [WorkOrderStatus.PENDING, WorkOrderStatus.SCHEDULED],
        'complete': [WorkOrderStatus.PENDING, WorkOrderStatus.SCHEDULED, WorkOrderStatus.IN_PROGRESS],
        'cancel': [WorkOrderStatus.PENDING, WorkOrderStatus.SCHEDULED, WorkOrderStatus.IN_PROGRESS],
    }

    def _lock(self, work_order: WorkOrder, operation: str) -> WorkOrder:
        work_order = WorkOrder.objects.select_for_update().get(pk=work_order.pk)
        if work_order.status not in self.ALLOWED[operation]:
            raise InvalidTransitionError(
                f"Cannot {operation} a work order with status {work_order.status}",
                details={'status': work_order.status, 'operation': operation}
            )
        return work_order

    @transaction.atomic
    def schedule(self, work_order: WorkOrder, scheduled_date, provider=None) -> WorkOrder:
        if scheduled_date is None:
            raise ValidationError("scheduled_date is required", code="DATE_REQUIRED")
        work_order = self._lock(work_order, 'schedule')
        work_order.scheduled_date = scheduled_date
        if provider is not None:
            work_order.provider = provider
        work_order.status = WorkOrderStatus.SCHEDULED
        work_order.save()
        self.log_info("Work order scheduled", work_order_id=work_order.id, date=str(scheduled_date))
        return work_order

    @transaction.atomic
    def start(self, work_order: WorkOrder) -> WorkOrder:
        work_order = self._lock(work_order, 'start')
        work_order.status = WorkOrderStatus.IN_PROGRESS
        work_order.save()
        return work_order

    @transaction.atomic
    def complete(self, work_order: WorkOrder, actual_cost=None, notes: str = '') -> WorkOrder:
        """Complete the work order and resolve the linked ticket when allowed"""
        work_order = self._lock(work_order, 'complete')
        if actual_cost is not None:
            work_order.actual_cost = AmountValidator.validate_amount(actual_cost, 'actual_cost')
        work_order.completion_notes = notes or work_order.completion_notes
        work_order.completed_date = timezone.localdate()
        work_order.status = WorkOrderStatus.COMPLETED
        work_order.save()

        ticket = work_order.ticket
        if ticket and ticket.can_transition_to(TicketStatus.RESOLVED):
            ticket.status = TicketStatus.RESOLVED
            ticket.save()
            self.log_info("Ticket resolved by work order", ticket_id=ticket.id, work_order_id=work_order.id)

        self.log_info("Work order completed", work_order_id=work_order.id)
        return work_order

    @transaction.atomic
    def cancel(self, work_order: WorkOrder) -> WorkOrder:
        work_order = self._lock(work_order, 'cancel')
        work_order.status = WorkOrderStatus.CANCELLED
        work_order.save()
        return work_order

    def calendar(self, queryset, start, end) -> OrderedDict:
        """Work orders scheduled in [start, end], grouped by date"""
        DateRangeValidator.validate_range(start, end, 'start', 'end')
        grouped = OrderedDict()
        orders = queryset.filter(
            scheduled_date__gte=start, scheduled_date__lte=end
        ).select_related('provider', 'residence').order_by('scheduled_date', 'id')
        for order in orders:
            grouped.setdefault(order.scheduled_date.isoformat(), []).append(order)
        return grouped

    def cost_summary(self, queryset) -> list:
        """Estimated vs actual totals per residence"""
        rows = (
            queryset.exclude(status=WorkOrderStatus.CANCELLED)
            .order_by()
            .values('residence_id', 'residence__name')
            .annotate(
                orders=Count('id'),
                estimated=Sum('estimated_cost'),
                actual=Sum('actual_cost'),
            )
            .order_by('residence__name')
        )
        return [
            {
                'residence_id': row['residence_id'],
                'residence_name': row['residence__name'],
                'work_orders': row['orders'],
                'estimated_total': row['estimated'] or Decimal('0'),
                'actual_total': row['actual'] or Decimal('0'),
                'variance': (row['actual'] or Decimal('0')) - (row['estimated'] or Decimal('0')),
            }
            for row in rows
        ]
