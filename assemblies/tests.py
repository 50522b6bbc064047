"""
Tests for general assemblies and tantieme-weighted voting
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from core.constants import (
    AssemblyStatus, BudgetStatus, MajorityRule, ResolutionOutcome, VoteChoice
)
from core.exceptions import (
    BusinessLogicError, ConflictError, InvalidTransitionError, PermissionDeniedError, ValidationError
)
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from accounting.models import CoproBudget
from assemblies.models import AssemblyVote
from assemblies.services import AssemblyService, is_adopted


class AssemblyTestMixin:

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.owner = TestDataFactory.create_owner(agency)
        self.alice = TestDataFactory.create_user()
        self.bob = TestDataFactory.create_user()
        self.lot_a = TestDataFactory.create_lot(self.residence, 'A1', tantiemes=400, owner=self.alice)
        self.lot_b = TestDataFactory.create_lot(self.residence, 'B1', tantiemes=350, owner=self.bob)
        self.lot_c = TestDataFactory.create_lot(self.residence, 'C1', tantiemes=250)
        TestDataFactory.create_occupancy(self.alice, self.lot_a)
        TestDataFactory.create_occupancy(self.bob, self.lot_b)

        self.other_residence = TestDataFactory.create_residence(agency)
        self.budget = CoproBudget.objects.create(residence=self.residence, fiscal_year=2025)

    def _assembly(self, agenda=None):
        if agenda is None:
            agenda = [
                {'title': 'Approve the 2025 budget', 'budget': self.budget},
                {'title': 'Replace the lift', 'majority': MajorityRule.ABSOLUTE},
            ]
        return AssemblyService().create_assembly(
            self.owner, self.residence, agenda=agenda,
            title='Annual assembly', scheduled_at=timezone.now() + timedelta(days=20)
        )


class MajorityTests(TestCase):

    def test_simple_majority_ignores_abstentions(self):
        self.assertTrue(is_adopted(MajorityRule.SIMPLE, 300, 200, 1000))
        self.assertFalse(is_adopted(MajorityRule.SIMPLE, 200, 200, 1000))

    def test_absolute_majority_counts_every_share(self):
        self.assertFalse(is_adopted(MajorityRule.ABSOLUTE, 500, 0, 1000))
        self.assertTrue(is_adopted(MajorityRule.ABSOLUTE, 501, 400, 1000))


class AssemblyServiceTests(AssemblyTestMixin, TestCase):

    def test_create_with_agenda(self):
        assembly = self._assembly()
        self.assertEqual(assembly.status, AssemblyStatus.SCHEDULED)
        self.assertEqual(assembly.created_by, self.owner)
        self.assertEqual([r.order for r in assembly.resolutions.all()], [1, 2])
        self.assertEqual(assembly.resolutions.get(order=1).budget, self.budget)

    def test_create_rules(self):
        with self.assertRaises(PermissionDeniedError):
            AssemblyService().create_assembly(
                self.alice, self.residence, title='AG', scheduled_at=timezone.now()
            )

        foreign_budget = CoproBudget.objects.create(residence=self.other_residence, fiscal_year=2025)
        with self.assertRaises(ValidationError) as ctx:
            self._assembly(agenda=[{'title': 'Budget', 'budget': foreign_budget}])
        self.assertEqual(ctx.exception.code, 'BUDGET_RESIDENCE_MISMATCH')

    def test_empty_agenda_cannot_open(self):
        assembly = self._assembly(agenda=[])
        with self.assertRaises(BusinessLogicError) as ctx:
            AssemblyService().open_voting(assembly)
        self.assertEqual(ctx.exception.code, 'EMPTY_AGENDA')

    def test_vote_rules(self):
        assembly = self._assembly()
        resolution = assembly.resolutions.get(order=1)

        with self.assertRaises(InvalidTransitionError) as ctx:
            AssemblyService().cast_vote(self.alice, resolution, self.lot_a, VoteChoice.FOR)
        self.assertEqual(ctx.exception.code, 'VOTING_CLOSED')

        AssemblyService().open_voting(assembly)
        with self.assertRaises(PermissionDeniedError):
            AssemblyService().cast_vote(self.alice, resolution, self.lot_b, VoteChoice.FOR)

        foreign_lot = TestDataFactory.create_lot(self.other_residence, owner=self.alice)
        with self.assertRaises(ValidationError) as ctx:
            AssemblyService().cast_vote(self.alice, resolution, foreign_lot, VoteChoice.FOR)
        self.assertEqual(ctx.exception.code, 'LOT_RESIDENCE_MISMATCH')

        parking = TestDataFactory.create_lot(self.residence, 'P1', tantiemes=0, owner=self.alice)
        with self.assertRaises(ValidationError) as ctx:
            AssemblyService().cast_vote(self.alice, resolution, parking, VoteChoice.FOR)
        self.assertEqual(ctx.exception.code, 'NO_SHARES')

    def test_vote_can_be_changed_while_open(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        resolution = assembly.resolutions.get(order=1)

        AssemblyService().cast_vote(self.alice, resolution, self.lot_a, VoteChoice.AGAINST)
        vote = AssemblyService().cast_vote(self.alice, resolution, self.lot_a, VoteChoice.FOR)
        self.assertEqual(vote.shares, 400)
        self.assertEqual(AssemblyVote.objects.filter(resolution=resolution).count(), 1)
        self.assertEqual(AssemblyService().tally(resolution)[VoteChoice.FOR], 400)

    def test_close_decides_and_votes_budget(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        budget_resolution = assembly.resolutions.get(order=1)
        lift_resolution = assembly.resolutions.get(order=2)

        AssemblyService().cast_vote(self.alice, budget_resolution, self.lot_a, VoteChoice.FOR)
        AssemblyService().cast_vote(self.bob, budget_resolution, self.lot_b, VoteChoice.AGAINST)
        # 400 of 1000 shares is not an absolute majority even with no opposition
        AssemblyService().cast_vote(self.alice, lift_resolution, self.lot_a, VoteChoice.FOR)
        AssemblyService().cast_vote(self.bob, lift_resolution, self.lot_b, VoteChoice.ABSTAIN)

        assembly = AssemblyService().close(assembly)
        self.assertEqual(assembly.status, AssemblyStatus.CLOSED)
        self.assertIsNotNone(assembly.closed_at)

        budget_resolution.refresh_from_db()
        lift_resolution.refresh_from_db()
        self.assertEqual(budget_resolution.outcome, ResolutionOutcome.ADOPTED)
        self.assertEqual((budget_resolution.shares_for, budget_resolution.shares_against), (400, 350))
        self.assertEqual(lift_resolution.outcome, ResolutionOutcome.REJECTED)
        self.assertEqual(lift_resolution.shares_abstain, 350)

        self.budget.refresh_from_db()
        self.assertEqual(self.budget.status, BudgetStatus.VOTED)

        with self.assertRaises(InvalidTransitionError) as ctx:
            AssemblyService().cast_vote(self.alice, budget_resolution, self.lot_a, VoteChoice.AGAINST)
        self.assertEqual(ctx.exception.code, 'VOTING_CLOSED')

    def test_absolute_majority_reached(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        lift_resolution = assembly.resolutions.get(order=2)
        AssemblyService().cast_vote(self.alice, lift_resolution, self.lot_a, VoteChoice.FOR)
        AssemblyService().cast_vote(self.bob, lift_resolution, self.lot_b, VoteChoice.FOR)

        AssemblyService().close(assembly)
        lift_resolution.refresh_from_db()
        self.assertEqual(lift_resolution.outcome, ResolutionOutcome.ADOPTED)

    def test_rejected_budget_stays_draft(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        AssemblyService().cast_vote(self.bob, assembly.resolutions.get(order=1), self.lot_b, VoteChoice.AGAINST)
        AssemblyService().close(assembly)

        self.budget.refresh_from_db()
        self.assertEqual(self.budget.status, BudgetStatus.DRAFT)

    def test_budget_conflict_keeps_assembly_open(self):
        CoproBudget.objects.create(residence=self.residence, fiscal_year=2024, status=BudgetStatus.VOTED)
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        AssemblyService().cast_vote(self.alice, assembly.resolutions.get(order=1), self.lot_a, VoteChoice.FOR)

        with self.assertRaises(ConflictError):
            AssemblyService().close(assembly)

        assembly.refresh_from_db()
        self.assertEqual(assembly.status, AssemblyStatus.VOTING)
        self.assertEqual(assembly.resolutions.get(order=1).outcome, '')

    def test_results_while_voting(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        AssemblyService().cast_vote(self.bob, assembly.resolutions.get(order=1), self.lot_b, VoteChoice.FOR)

        results = AssemblyService().results(assembly)
        self.assertEqual(results['total_shares'], 1000)
        first = results['resolutions'][0]
        self.assertEqual((first['shares_for'], first['lots_voted'], first['outcome']), (350, 1, None))


class AssemblyAPITests(AssemblyTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        self.client = AuthenticatedAPIClient().authenticate_user(self.alice)

    def test_create_with_agenda(self):
        response = self.staff.post('/api/assemblies/', {
            'residence': self.residence.id,
            'title': 'Annual assembly',
            'scheduled_at': (timezone.now() + timedelta(days=30)).isoformat(),
            'agenda': [
                {'title': 'Approve the budget', 'budget': self.budget.id},
                {'title': 'Paint the hall', 'majority': MajorityRule.ABSOLUTE},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['resolutions']), 2)
        self.assertEqual(response.data['resolutions'][1]['majority'], MajorityRule.ABSOLUTE)

        response = self.client.post('/api/assemblies/', {
            'residence': self.residence.id, 'title': 'AG',
            'scheduled_at': timezone.now().isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_residents_list_their_assemblies(self):
        self._assembly()
        response = self.client.get('/api/assemblies/?upcoming=true')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['resolutions_count'], 2)

    def test_vote_and_results(self):
        assembly = self._assembly()
        resolution = assembly.resolutions.get(order=1)

        response = self.client.post(f'/api/assemblies/{assembly.id}/open-voting/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.staff.post(f'/api/assemblies/{assembly.id}/open-voting/')
        self.assertEqual(response.data['status'], AssemblyStatus.VOTING)

        response = self.client.post(f'/api/assemblies/{assembly.id}/vote/', {
            'resolution': resolution.id, 'lot': self.lot_a.id, 'choice': VoteChoice.FOR
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['shares'], 400)

        response = self.client.post(f'/api/assemblies/{assembly.id}/vote/', {
            'resolution': resolution.id, 'lot': self.lot_b.id, 'choice': VoteChoice.FOR
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.post(f'/api/assemblies/{assembly.id}/vote/', {
            'resolution': 999999, 'lot': self.lot_a.id, 'choice': VoteChoice.FOR
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.assertEqual(len(self.client.get(f'/api/assemblies/{assembly.id}/my-votes/').data), 1)

        response = self.staff.post(f'/api/assemblies/{assembly.id}/close/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = self.client.get(f'/api/assemblies/{assembly.id}/results/').data
        self.assertEqual(results['status'], AssemblyStatus.CLOSED)
        self.assertEqual(results['resolutions'][0]['outcome'], ResolutionOutcome.ADOPTED)

    def test_started_assembly_is_locked(self):
        assembly = self._assembly()
        AssemblyService().open_voting(assembly)
        response = self.staff.patch(f'/api/assemblies/{assembly.id}/', {'title': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(self.staff.delete(f'/api/assemblies/{assembly.id}/').status_code,
                         status.HTTP_422_UNPROCESSABLE_ENTITY)
