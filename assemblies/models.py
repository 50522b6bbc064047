from django.db import models
from django.conf import settings
from core.constants import AssemblyStatus, MajorityRule, VoteChoice, ResolutionOutcome
from residences.models import Residence, Lot


class GeneralAssembly(models.Model):
    """Co-owners' general assembly (AG) of a residence"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='assemblies')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    scheduled_at = models.DateTimeField()
    location = models.CharField(max_length=255, blank=True)
    video_link = models.URLField(blank=True)
    status = models.CharField(max_length=10, choices=AssemblyStatus.CHOICES, default=AssemblyStatus.SCHEDULED)
    minutes_url = models.URLField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assemblies_created'
    )
    voting_opened_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-scheduled_at']
        verbose_name_plural = 'General assemblies'

    def __str__(self):
        return f"{self.title} ({self.scheduled_at:%Y-%m-%d})"


class Resolution(models.Model):
    """Agenda item put to the vote"""
    assembly = models.ForeignKey(GeneralAssembly, on_delete=models.CASCADE, related_name='resolutions')
    order = models.PositiveIntegerField()
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    majority = models.CharField(max_length=10, choices=MajorityRule.CHOICES, default=MajorityRule.SIMPLE)
    budget = models.ForeignKey(
        'accounting.CoproBudget', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='resolutions',
        help_text="Budget approved when the resolution is adopted"
    )
    outcome = models.CharField(max_length=10, choices=ResolutionOutcome.CHOICES, blank=True)
    shares_for = models.PositiveIntegerField(default=0)
    shares_against = models.PositiveIntegerField(default=0)
    shares_abstain = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['assembly', 'order']
        unique_together = ['assembly', 'order']

    def __str__(self):
        return f"{self.order}. {self.title}"


class AssemblyVote(models.Model):
    """One vote per lot and resolution, weighted by the lot's tantiemes"""
    resolution = models.ForeignKey(Resolution, on_delete=models.CASCADE, related_name='votes')
    lot = models.ForeignKey(Lot, on_delete=models.CASCADE, related_name='assembly_votes')
    voter = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='assembly_votes')
    choice = models.CharField(max_length=10, choices=VoteChoice.CHOICES)
    shares = models.PositiveIntegerField()
    cast_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['resolution', 'lot']

    def __str__(self):
        return f"{self.lot} {self.choice} on {self.resolution}"
