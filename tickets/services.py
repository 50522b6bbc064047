"""
Ticket service - creation, status machine, assignment and comments.
"""
from django.db import transaction
from django.db.models import Q
from core.constants import TicketStatus, TicketScope, UserRole
from core.exceptions import InvalidTransitionError, PermissionDeniedError, ValidationError
from core.services import BaseService
from residences.access import can_access_residence, get_accessible_residence_ids
from .models import Ticket, TicketComment


def get_visible_tickets(user):
    """
    - Staff with residence access: every ticket of the residence
    - Others (residents, CS): their own tickets plus COMMON tickets of their residences
    """
    residence_ids = get_accessible_residence_ids(user)
    queryset = Ticket.objects.filter(residence_id__in=residence_ids)
    if user.is_staff_role:
        return queryset
    return queryset.filter(Q(created_by=user) | Q(scope=TicketScope.COMMON))


class TicketService(BaseService):
    """Service for ticket business rules"""

    def create_ticket(self, user, **data) -> Ticket:
        """
        Raises:
            PermissionDeniedError: residence not accessible to the user
        """
        residence = data['residence']
        if not can_access_residence(user, residence):
            raise PermissionDeniedError("You don't have access to this residence")

        ticket = Ticket(created_by=user, **data)
        ticket.save()
        self.log_info("Ticket created", ticket_id=ticket.id, residence_id=residence.id)
        return ticket

    @transaction.atomic
    def change_status(self, ticket: Ticket, new_status: str, user) -> tuple:
        """
        Move a ticket along the status machine.

        Returns:
            (ticket, old_status)

        Raises:
            PermissionDeniedError: non-staff user
            InvalidTransitionError: transition not allowed
        """
        if not user.is_staff_role:
            raise PermissionDeniedError("Only staff can change ticket status")

        ticket = Ticket.objects.select_for_update().get(pk=ticket.pk)
        old_status = ticket.status
        if new_status not in dict(TicketStatus.CHOICES):
            raise ValidationError(f"Unknown status: {new_status}", code="INVALID_STATUS")
        if not ticket.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move ticket from {old_status} to {new_status}",
                details={
                    'from': old_status,
                    'to': new_status,
                    'allowed': sorted(TicketStatus.TRANSITIONS.get(old_status, set())),
                }
            )
        ticket.status = new_status
        ticket.save()
        self.log_info("Ticket status changed", ticket_id=ticket.id, old=old_status, new=new_status)
        return ticket, old_status

    def assign(self, ticket: Ticket, assignee) -> Ticket:
        """Assign to a staff member with access to the residence"""
        if assignee is not None:
            if assignee.role not in (UserRole.OWNER, UserRole.MANAGER, UserRole.SYNDIC) \
                    or not can_access_residence(assignee, ticket.residence):
                raise ValidationError(
                    "Assignee must be a staff member with access to the residence",
                    code="INVALID_ASSIGNEE"
                )
        ticket.assignee = assignee
        ticket.save()
        self.log_info("Ticket assigned", ticket_id=ticket.id, assignee_id=getattr(assignee, 'id', None))
        return ticket

    def add_comment(self, ticket: Ticket, user, content: str) -> TicketComment:
        if not (content or '').strip():
            raise ValidationError("Comment cannot be empty", code="EMPTY_COMMENT")
        return TicketComment.objects.create(ticket=ticket, user=user, content=content.strip())
