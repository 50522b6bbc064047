"""
Audit logging helpers called by the views once an action succeeded.

log_action is the generic entry point; the log_* helpers below fill in the
entity, residence and payload for each audited domain action.
"""
import logging

from django.db import DatabaseError

from core.constants import AuditAction, ResolutionOutcome
from audit.models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Client IP, first hop of X-Forwarded-For when behind a proxy"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(user, action, entity_type, entity_id, description, request=None,
               residence=None, old_data=None, new_data=None, metadata=None):
    """
    Record an action. Returns the AuditLog, or None when nothing was stored.

    The agency comes from the residence when given, else from the user.
    Users outside any agency (other than platform admins) are not logged.
    A database failure is logged and swallowed so the audited operation,
    which already succeeded, is not reported as failed.
    """
    agency_id = residence.agency_id if residence is not None else getattr(user, 'agency_id', None)
    if agency_id is None and not (user and user.is_platform_admin):
        logger.warning(f"Audit skipped: no agency for {action} {entity_type}#{entity_id}")
        return None

    ip_address, user_agent = None, ''
    if request is not None:
        ip_address = get_client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')[:500]

    try:
        audit_log = AuditLog.objects.create(
            agency_id=agency_id,
            residence=residence,
            user=user,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            old_data=old_data,
            new_data=new_data,
            metadata=metadata or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except DatabaseError as e:
        logger.error(f"Failed to write audit log {action} {entity_type}#{entity_id}: {e}", exc_info=True)
        return None

    logger.info(f"Audit: {user.username if user else 'system'} {action} {entity_type}#{entity_id}")
    return audit_log


def _log_on(target, user, action, description, request=None, residence=None, **payload):
    """log_action for a model instance; residence defaults to target.residence"""
    if residence is None:
        residence = getattr(target, 'residence', None)
    return log_action(
        user=user,
        action=action,
        entity_type=type(target).__name__,
        entity_id=target.pk,
        description=description,
        request=request,
        residence=residence,
        **payload
    )


def log_login(user, request, success=True):
    description = f"User {user.username} logged in" if success else f"Failed login attempt for {user.username}"
    return _log_on(user, user, AuditAction.LOGIN, description, request=request, metadata={'success': success})


def log_logout(user, request):
    return _log_on(user, user, AuditAction.LOGOUT, f"User {user.username} logged out", request=request)


def log_access_grant(user, access, request=None):
    return _log_on(
        access, user, AuditAction.GRANT_ACCESS,
        f"Granted {access.user.username} access to residence: {access.residence.name}",
        request=request,
        metadata={'granted_to_user_id': access.user_id}
    )


def log_access_revoke(user, residence, revoked_user, request=None):
    # The grant row is gone, only the residence and user remain
    return log_action(
        user=user,
        action=AuditAction.REVOKE_ACCESS,
        entity_type='ResidenceAccess',
        entity_id=None,
        description=f"Revoked {revoked_user.username}'s access to residence: {residence.name}",
        request=request,
        residence=residence,
        metadata={'revoked_from_user_id': revoked_user.id}
    )


def log_occupancy_assign(user, occupancy, request=None):
    lot = occupancy.lot
    return _log_on(
        occupancy, user, AuditAction.ASSIGN_OCCUPANCY,
        f"Assigned {occupancy.user.username} to lot {lot.lot_number} ({occupancy.occupancy_type})",
        request=request,
        residence=lot.residence,
        new_data={
            'user_id': occupancy.user_id,
            'lot_id': lot.id,
            'occupancy_type': occupancy.occupancy_type,
            'start_date': occupancy.start_date.isoformat(),
            'rent_amount': str(occupancy.rent_amount),
        }
    )


def log_vacate(user, occupancy, request=None):
    lot = occupancy.lot
    return _log_on(
        occupancy, user, AuditAction.VACATE,
        f"{occupancy.user.username} vacated lot {lot.lot_number}",
        request=request,
        residence=lot.residence,
        metadata={'end_date': occupancy.end_date.isoformat() if occupancy.end_date else None}
    )


def log_payment(user, payment, amount, request=None):
    return _log_on(
        payment, user, AuditAction.PAYMENT,
        f"Payment of {amount} recorded for {payment.label or payment.get_payment_type_display()}",
        request=request,
        new_data={
            'amount': str(amount),
            'paid_amount': str(payment.paid_amount),
            'status': payment.status,
        }
    )


def log_ticket_status_change(user, ticket, old_status, new_status, request=None):
    return _log_on(
        ticket, user, AuditAction.STATUS_CHANGE,
        f"Changed ticket status from {old_status} to {new_status}: {ticket.title}",
        request=request,
        old_data={'status': old_status},
        new_data={'status': new_status}
    )


def log_entry_posted(user, entry, request=None):
    return _log_on(
        entry, user, AuditAction.POST_ENTRY,
        f"Posted accounting entry: {entry.label}",
        request=request,
        metadata={'journal': entry.journal.code, 'date': entry.date.isoformat()}
    )


def log_reconciliation(user, transaction, request=None):
    return _log_on(
        transaction, user, AuditAction.RECONCILE,
        f"Reconciled bank transaction {transaction.label} ({transaction.amount})",
        request=request,
        residence=transaction.bank_account.residence,
        metadata={'entry_id': transaction.reconciled_with_id}
    )


def log_call_sent(user, call, request=None):
    return _log_on(
        call, user, AuditAction.SEND_CALL,
        f"Sent fund call {call.call_number}: {call.total_amount}",
        request=request,
        metadata={'items': call.items.count()}
    )


def log_assembly_closed(user, assembly, request=None):
    adopted = assembly.resolutions.filter(outcome=ResolutionOutcome.ADOPTED).count()
    return _log_on(
        assembly, user, AuditAction.STATUS_CHANGE,
        f"Closed general assembly {assembly.title}: {adopted} resolution(s) adopted",
        request=request,
        new_data={'status': assembly.status},
        metadata={'adopted': adopted, 'resolutions': assembly.resolutions.count()}
    )
