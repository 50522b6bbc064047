"""
General assembly service - agenda, voting by tantiemes, closing.

Each lot votes once per resolution with its general tantiemes. Closing the
assembly decides every resolution; an adopted resolution carrying a budget
votes that budget.
"""
from typing import Iterable
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from core.constants import AssemblyStatus, MajorityRule, VoteChoice, ResolutionOutcome
from core.exceptions import (
    ValidationError, PermissionDeniedError, InvalidTransitionError, BusinessLogicError
)
from core.services import BaseService
from residences.access import can_manage_residence
from .models import GeneralAssembly, Resolution, AssemblyVote


def is_adopted(majority: str, shares_for: int, shares_against: int, total_shares: int) -> bool:
    if majority == MajorityRule.ABSOLUTE:
        return shares_for * 2 > total_shares
    return shares_for > shares_against


def residence_shares(residence) -> int:
    return residence.lots.aggregate(total=Sum('tantiemes'))['total'] or 0


class AssemblyService(BaseService):

    @transaction.atomic
    def create_assembly(self, user, residence, agenda: Iterable[dict] = (), **fields) -> GeneralAssembly:
        """
        Create a SCHEDULED assembly with its agenda.

        agenda items: {'title', 'description', 'majority', 'budget'}

        Raises:
            PermissionDeniedError: user cannot manage the residence
            ValidationError: agenda budget from another residence
        """
        if not can_manage_residence(user, residence):
            raise PermissionDeniedError("You don't have access to this residence")

        assembly = GeneralAssembly.objects.create(residence=residence, created_by=user, **fields)
        for order, item in enumerate(agenda, start=1):
            budget = item.get('budget')
            if budget is not None and budget.residence_id != residence.id:
                raise ValidationError(
                    "Budget must belong to the assembly's residence",
                    code="BUDGET_RESIDENCE_MISMATCH",
                    details={'budget_id': budget.id}
                )
            Resolution.objects.create(
                assembly=assembly,
                order=order,
                title=item['title'],
                description=item.get('description', ''),
                majority=item.get('majority', MajorityRule.SIMPLE),
                budget=budget,
            )
        self.log_info("General assembly created", assembly_id=assembly.id, residence_id=residence.id)
        return assembly

    def _lock(self, assembly: GeneralAssembly, expected: str, target: str) -> GeneralAssembly:
        assembly = GeneralAssembly.objects.select_for_update().get(pk=assembly.pk)
        if assembly.status != expected:
            raise InvalidTransitionError(
                f"Cannot move assembly from {assembly.status} to {target}",
                details={'from': assembly.status, 'to': target}
            )
        return assembly

    @transaction.atomic
    def open_voting(self, assembly: GeneralAssembly) -> GeneralAssembly:
        assembly = self._lock(assembly, AssemblyStatus.SCHEDULED, AssemblyStatus.VOTING)
        if not assembly.resolutions.exists():
            raise BusinessLogicError("The agenda has no resolution to vote on", code="EMPTY_AGENDA")
        assembly.status = AssemblyStatus.VOTING
        assembly.voting_opened_at = timezone.now()
        assembly.save()
        self.log_info("Assembly voting opened", assembly_id=assembly.id)
        return assembly

    @transaction.atomic
    def cast_vote(self, user, resolution: Resolution, lot, choice: str) -> AssemblyVote:
        """
        Record (or replace) the vote of a lot's owner.

        Raises:
            InvalidTransitionError: voting is not open
            ValidationError: lot outside the residence or without tantiemes
            PermissionDeniedError: user does not own the lot
        """
        assembly = resolution.assembly
        if assembly.status != AssemblyStatus.VOTING:
            raise InvalidTransitionError("Voting is not open for this assembly", code="VOTING_CLOSED")
        if lot.residence_id != assembly.residence_id:
            raise ValidationError("Lot does not belong to the assembly's residence", code="LOT_RESIDENCE_MISMATCH")
        if lot.owner_id != user.id:
            raise PermissionDeniedError("Only the owner of the lot can vote for it")
        if not lot.tantiemes:
            raise ValidationError("Lot has no tantiemes to vote with", code="NO_SHARES")

        vote, created = AssemblyVote.objects.update_or_create(
            resolution=resolution,
            lot=lot,
            defaults={'voter': user, 'choice': choice, 'shares': lot.tantiemes},
        )
        self.log_info(
            "Assembly vote cast" if created else "Assembly vote changed",
            resolution_id=resolution.id, lot_id=lot.id, choice=choice
        )
        return vote

    def tally(self, resolution: Resolution) -> dict:
        sums = {
            row['choice']: row['shares']
            for row in resolution.votes.values('choice').annotate(shares=Sum('shares'))
        }
        return {
            VoteChoice.FOR: sums.get(VoteChoice.FOR, 0),
            VoteChoice.AGAINST: sums.get(VoteChoice.AGAINST, 0),
            VoteChoice.ABSTAIN: sums.get(VoteChoice.ABSTAIN, 0),
        }

    @transaction.atomic
    def close(self, assembly: GeneralAssembly) -> GeneralAssembly:
        """
        VOTING -> CLOSED. Decides every resolution and votes the budgets of
        the adopted ones.
        """
        from accounting.services import BudgetService
        assembly = self._lock(assembly, AssemblyStatus.VOTING, AssemblyStatus.CLOSED)
        total_shares = residence_shares(assembly.residence)

        for resolution in assembly.resolutions.select_related('budget'):
            counts = self.tally(resolution)
            resolution.shares_for = counts[VoteChoice.FOR]
            resolution.shares_against = counts[VoteChoice.AGAINST]
            resolution.shares_abstain = counts[VoteChoice.ABSTAIN]
            adopted = is_adopted(resolution.majority, resolution.shares_for, resolution.shares_against, total_shares)
            resolution.outcome = ResolutionOutcome.ADOPTED if adopted else ResolutionOutcome.REJECTED
            resolution.save()
            if adopted and resolution.budget is not None:
                BudgetService().vote(resolution.budget)

        assembly.status = AssemblyStatus.CLOSED
        assembly.closed_at = timezone.now()
        assembly.save()
        self.log_info("General assembly closed", assembly_id=assembly.id, total_shares=total_shares)
        return assembly

    def results(self, assembly: GeneralAssembly) -> dict:
        """Live counts while voting, stored outcome once closed"""
        total_shares = residence_shares(assembly.residence)
        rows = []
        for resolution in assembly.resolutions.all():
            counts = self.tally(resolution)
            rows.append({
                'id': resolution.id,
                'order': resolution.order,
                'title': resolution.title,
                'majority': resolution.majority,
                'shares_for': counts[VoteChoice.FOR],
                'shares_against': counts[VoteChoice.AGAINST],
                'shares_abstain': counts[VoteChoice.ABSTAIN],
                'lots_voted': resolution.votes.count(),
                'outcome': resolution.outcome or None,
            })
        return {
            'assembly_id': assembly.id,
            'status': assembly.status,
            'total_shares': total_shares,
            'resolutions': rows,
        }
