"""
Dashboard metrics computed over a set of residence ids.

Callers resolve the residence scope (access rules, ?residence=) first; every
query here is filtered by that scope.
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone

from core.services import BaseService
from core.constants import TicketStatus, TicketPriority, PaymentStatus, AgencyStatus
from common.utils import percentage, first_day_of_month, add_months
from agencies.models import Agency
from agencies.services import TrialService
from residences.models import Residence, Building, Lot
from occupancy.models import Occupancy
from tickets.models import Ticket
from payments.models import Payment
from payments.services import PaymentService

ZERO = Decimal('0.00')
RECENT_LIMIT = 10


class DashboardService(BaseService):
    """Aggregated figures for the dashboard endpoints"""

    def __init__(self, residence_ids):
        super().__init__()
        self.residence_ids = list(residence_ids)

    def _lots(self):
        return Lot.objects.filter(residence_id__in=self.residence_ids)

    def _occupied_lot_ids(self):
        return Occupancy.objects.filter(
            lot__residence_id__in=self.residence_ids, is_active=True
        ).values('lot_id')

    def _tickets(self):
        return Ticket.objects.filter(residence_id__in=self.residence_ids)

    def _payments(self):
        return Payment.objects.filter(residence_id__in=self.residence_ids)

    def summary(self) -> dict:
        total_lots = self._lots().count()
        occupied_lots = self._lots().filter(id__in=self._occupied_lot_ids()).count()

        ticket_stats = self._tickets().aggregate(
            open_tickets=Count('id', filter=Q(status__in=TicketStatus.ACTIVE)),
            urgent_tickets=Count(
                'id', filter=Q(status__in=TicketStatus.ACTIVE, priority=TicketPriority.URGENT)
            ),
        )
        payments = PaymentService().summary(self._payments())

        return {
            'residences': len(self.residence_ids),
            'buildings': Building.objects.filter(residence_id__in=self.residence_ids).count(),
            'lots': {
                'total': total_lots,
                'occupied': occupied_lots,
                'vacant': total_lots - occupied_lots,
                'occupancy_rate': percentage(occupied_lots, total_lots),
            },
            'tickets': ticket_stats,
            'payments': {
                'month': payments['month'],
                'expected': payments['total_expected'],
                'collected': payments['total_collected'],
                'pending': payments['total_pending'],
                'collection_rate': payments['collection_rate'],
            },
        }

    def occupancy(self) -> dict:
        occupied_ids = self._occupied_lot_ids()
        residences = (
            Residence.objects.filter(id__in=self.residence_ids)
            .annotate(
                lots_total=Count('lots', distinct=True),
                lots_occupied=Count('lots', filter=Q(lots__id__in=occupied_ids), distinct=True),
            )
            .order_by('name')
        )
        by_residence = [
            {
                'residence_id': residence.id,
                'residence_name': residence.name,
                'lots': residence.lots_total,
                'occupied': residence.lots_occupied,
                'vacant': residence.lots_total - residence.lots_occupied,
                'occupancy_rate': percentage(residence.lots_occupied, residence.lots_total),
            }
            for residence in residences
        ]

        by_lot_type = []
        rows = (
            self._lots().values('lot_type')
            .annotate(total=Count('id'), occupied=Count('id', filter=Q(id__in=occupied_ids)))
            .order_by('lot_type')
        )
        for row in rows:
            by_lot_type.append({
                'lot_type': row['lot_type'],
                'total': row['total'],
                'occupied': row['occupied'],
                'vacant': row['total'] - row['occupied'],
                'occupancy_rate': percentage(row['occupied'], row['total']),
            })

        return {'by_residence': by_residence, 'by_lot_type': by_lot_type}

    def financial(self, months: int = 12) -> list:
        """Due vs collected per month over the last N months, oldest first"""
        current = first_day_of_month(timezone.localdate())
        start = add_months(current, -(months - 1))
        end = add_months(current, 1)

        rows = (
            self._payments()
            .filter(due_date__gte=start, due_date__lt=end)
            .annotate(month=TruncMonth('due_date'))
            .values('month')
            .annotate(
                due=Sum('amount'),
                collected=Sum('paid_amount'),
                overdue=Sum('amount', filter=Q(status=PaymentStatus.OVERDUE)),
            )
        )
        by_month = {row['month']: row for row in rows}

        series = []
        for offset in range(months):
            month = add_months(start, offset)
            row = by_month.get(month, {})
            due = row.get('due') or ZERO
            collected = row.get('collected') or ZERO
            series.append({
                'month': month.strftime('%Y-%m'),
                'due': due,
                'collected': collected,
                'outstanding': due - collected,
                'overdue': row.get('overdue') or ZERO,
                'collection_rate': percentage(collected, due),
            })
        return series

    def tickets(self, months: int = 12) -> dict:
        tickets = self._tickets()

        by_status = dict(
            tickets.values_list('status').annotate(count=Count('id')).order_by('status')
        )
        by_priority = dict(
            tickets.values_list('priority').annotate(count=Count('id')).order_by('priority')
        )
        by_category = [
            {'category': row['category__name'] or 'Uncategorized', 'count': row['count']}
            for row in tickets.values('category__name').annotate(count=Count('id')).order_by('-count')
        ]

        durations = [
            (resolved_at - created_at).total_seconds() / 3600
            for created_at, resolved_at in tickets.filter(resolved_at__isnull=False)
            .values_list('created_at', 'resolved_at')
        ]
        average_resolution_hours = round(sum(durations) / len(durations), 1) if durations else None

        current = first_day_of_month(timezone.localdate())
        start = add_months(current, -(months - 1))
        opened = {
            row['month'].date() if hasattr(row['month'], 'date') else row['month']: row['count']
            for row in tickets.filter(created_at__date__gte=start)
            .annotate(month=TruncMonth('created_at'))
            .values('month')
            .annotate(count=Count('id'))
        }
        opened_per_month = [
            {'month': add_months(start, i).strftime('%Y-%m'), 'count': opened.get(add_months(start, i), 0)}
            for i in range(months)
        ]

        return {
            'total': tickets.count(),
            'by_status': by_status,
            'by_priority': by_priority,
            'by_category': by_category,
            'average_resolution_hours': average_resolution_hours,
            'opened_per_month': opened_per_month,
        }

    def residents(self) -> dict:
        active = Occupancy.objects.filter(lot__residence_id__in=self.residence_ids, is_active=True)
        since = timezone.localdate() - timedelta(days=30)
        return {
            'active_occupancies': active.count(),
            'distinct_occupants': active.values('user_id').distinct().count(),
            'by_type': dict(
                active.values_list('occupancy_type').annotate(count=Count('id')).order_by('occupancy_type')
            ),
            'new_last_30_days': Occupancy.objects.filter(
                lot__residence_id__in=self.residence_ids, start_date__gte=since
            ).count(),
        }

    def recent_activity(self) -> dict:
        tickets = (
            self._tickets().select_related('residence', 'created_by')
            .order_by('-created_at')[:RECENT_LIMIT]
        )
        payments = (
            self._payments().select_related('user', 'lot')
            .order_by('-updated_at')[:RECENT_LIMIT]
        )
        occupancies = (
            Occupancy.objects.filter(lot__residence_id__in=self.residence_ids)
            .select_related('user', 'lot', 'lot__residence')
            .order_by('-created_at')[:RECENT_LIMIT]
        )
        return {
            'recent_tickets': [
                {
                    'id': t.id,
                    'title': t.title,
                    'residence': t.residence.name,
                    'status': t.status,
                    'priority': t.priority,
                    'created_by': t.created_by.get_full_name() if t.created_by else None,
                    'created_at': t.created_at,
                }
                for t in tickets
            ],
            'recent_payments': [
                {
                    'id': p.id,
                    'label': p.label,
                    'payer': p.user.get_full_name() or p.user.username,
                    'lot': p.lot.lot_number if p.lot else None,
                    'amount': p.amount,
                    'paid_amount': p.paid_amount,
                    'status': p.status,
                    'due_date': p.due_date,
                    'paid_at': p.paid_at,
                }
                for p in payments
            ],
            'recent_occupancies': [
                {
                    'id': o.id,
                    'user': o.user.get_full_name() or o.user.username,
                    'residence': o.lot.residence.name,
                    'lot': o.lot.lot_number,
                    'occupancy_type': o.occupancy_type,
                    'start_date': o.start_date,
                    'is_active': o.is_active,
                }
                for o in occupancies
            ],
        }


def platform_overview() -> dict:
    """Back-office figures across all agencies"""
    User = get_user_model()
    expiring = TrialService().expiring_trials(within_days=7)
    return {
        'agencies': {
            'total': Agency.objects.count(),
            'by_type': dict(
                Agency.objects.values_list('agency_type').annotate(count=Count('id')).order_by('agency_type')
            ),
            'by_status': dict(
                Agency.objects.values_list('status').annotate(count=Count('id')).order_by('status')
            ),
            'trials': Agency.objects.filter(status=AgencyStatus.TRIAL).count(),
        },
        'trials_expiring': [
            {'id': agency.id, 'name': agency.name, 'trial_ends_at': agency.trial_ends_at}
            for agency in expiring
        ],
        'totals': {
            'users': User.objects.count(),
            'residences': Residence.objects.count(),
            'lots': Lot.objects.count(),
            'active_occupancies': Occupancy.objects.filter(is_active=True).count(),
            'open_tickets': Ticket.objects.filter(status__in=TicketStatus.ACTIVE).count(),
        },
    }
