"""
Accounting reports computed from posted entries of a residence.
"""
from datetime import date
from decimal import Decimal
from typing import Optional
from django.db.models import Sum, QuerySet
from core.constants import AccountType, EntryStatus
from .models import AccountingLine

ZERO = Decimal('0')


def posted_lines(residence, start: Optional[date] = None, end: Optional[date] = None) -> QuerySet:
    lines = AccountingLine.objects.filter(
        entry__residence=residence,
        entry__status=EntryStatus.POSTED,
    )
    if start:
        lines = lines.filter(entry__date__gte=start)
    if end:
        lines = lines.filter(entry__date__lte=end)
    return lines


def trial_balance(residence, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    """Debit, credit and balance per account"""
    rows = (
        posted_lines(residence, start, end)
        .values('account_id', 'account__code', 'account__name', 'account__account_type')
        .annotate(total_debit=Sum('debit'), total_credit=Sum('credit'))
        .order_by('account__code')
    )
    accounts = []
    total_debit = ZERO
    total_credit = ZERO
    for row in rows:
        debit = row['total_debit'] or ZERO
        credit = row['total_credit'] or ZERO
        total_debit += debit
        total_credit += credit
        accounts.append({
            'account_id': row['account_id'],
            'code': row['account__code'],
            'name': row['account__name'],
            'account_type': row['account__account_type'],
            'debit': debit,
            'credit': credit,
            'balance': debit - credit,
        })
    return {
        'accounts': accounts,
        'total_debit': total_debit,
        'total_credit': total_credit,
        'is_balanced': total_debit == total_credit,
    }


def general_ledger(residence, account, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    """Lines of one account in date order with a running balance (debit - credit)"""
    opening = ZERO
    if start:
        before = posted_lines(residence).filter(account=account, entry__date__lt=start)
        sums = before.aggregate(debit=Sum('debit'), credit=Sum('credit'))
        opening = (sums['debit'] or ZERO) - (sums['credit'] or ZERO)

    lines = (
        posted_lines(residence, start, end)
        .filter(account=account)
        .select_related('entry', 'entry__journal')
        .order_by('entry__date', 'entry_id', 'id')
    )
    balance = opening
    movements = []
    for line in lines:
        balance += line.debit - line.credit
        movements.append({
            'date': line.entry.date,
            'entry_id': line.entry_id,
            'journal': line.entry.journal.code,
            'label': line.label or line.entry.label,
            'reference': line.entry.reference,
            'debit': line.debit,
            'credit': line.credit,
            'balance': balance,
        })
    return {
        'account': {'id': account.id, 'code': account.code, 'name': account.name},
        'opening_balance': opening,
        'closing_balance': balance,
        'lines': movements,
    }


def cash_flow(residence, year: int) -> list:
    """Income vs expenses for each month of a year"""
    rows = (
        posted_lines(residence, date(year, 1, 1), date(year, 12, 31))
        .filter(account__account_type__in=[AccountType.INCOME, AccountType.EXPENSE])
        .values('entry__date__month', 'account__account_type')
        .annotate(total_debit=Sum('debit'), total_credit=Sum('credit'))
    )
    months = {month: {'income': ZERO, 'expenses': ZERO} for month in range(1, 13)}
    for row in rows:
        debit = row['total_debit'] or ZERO
        credit = row['total_credit'] or ZERO
        bucket = months[row['entry__date__month']]
        if row['account__account_type'] == AccountType.INCOME:
            bucket['income'] += credit - debit
        else:
            bucket['expenses'] += debit - credit

    return [
        {
            'month': f"{year}-{month:02d}",
            'income': values['income'],
            'expenses': values['expenses'],
            'net': values['income'] - values['expenses'],
        }
        for month, values in months.items()
    ]


def expense_breakdown(residence, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    """Expenses per account with their share of the total"""
    rows = (
        posted_lines(residence, start, end)
        .filter(account__account_type=AccountType.EXPENSE)
        .values('account_id', 'account__code', 'account__name')
        .annotate(total_debit=Sum('debit'), total_credit=Sum('credit'))
        .order_by('account__code')
    )
    items = []
    for row in rows:
        amount = (row['total_debit'] or ZERO) - (row['total_credit'] or ZERO)
        if amount > 0:
            items.append({
                'account_id': row['account_id'],
                'code': row['account__code'],
                'name': row['account__name'],
                'amount': amount,
            })

    total = sum((item['amount'] for item in items), ZERO)
    if total <= 0:
        return {'total': ZERO, 'items': []}
    for item in items:
        item['percentage'] = round(float(item['amount'] / total * 100), 1)
    items.sort(key=lambda item: (-item['amount'], item['code']))
    return {'total': total, 'items': items}
