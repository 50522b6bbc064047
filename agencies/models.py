from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone
from core.constants import AgencyType, AgencyPlan, AgencyStatus, UserRole


class Agency(models.Model):
    """Multi-tenant SaaS account - each agency (manager, syndic, landlord) has one"""
    name = models.CharField(max_length=255, help_text="Agency/Business name")
    agency_type = models.CharField(max_length=20, choices=AgencyType.CHOICES, default=AgencyType.AGENCY)
    plan = models.CharField(max_length=20, choices=AgencyPlan.CHOICES, default=AgencyPlan.FREE)
    status = models.CharField(max_length=20, choices=AgencyStatus.CHOICES, default=AgencyStatus.ACTIVE)
    siret = models.CharField(max_length=14, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    trial_ends_at = models.DateTimeField(null=True, blank=True)

    # Per-agency limits (override site-wide defaults)
    # If None, uses site settings default. If set, uses this value. 0 = unlimited
    max_residences = models.IntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Maximum number of residences. Leave blank to use site default. Set to 0 for unlimited."
    )
    max_managers = models.IntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Maximum number of managers. Leave blank to use site default. Set to 0 for unlimited."
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Agency"
        verbose_name_plural = "Agencies"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['agency_type', 'status']),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_agency_type_display()})"

    @property
    def owner(self):
        """Get the owner user (first user with OWNER role)"""
        return self.users.filter(role=UserRole.OWNER).first()

    @property
    def is_active(self):
        return self.status != AgencyStatus.SUSPENDED and not self.is_trial_expired

    @property
    def is_trial_expired(self):
        if self.status != AgencyStatus.TRIAL or not self.trial_ends_at:
            return False
        return self.trial_ends_at < timezone.now()

    def get_max_residences(self):
        """Residence limit for this agency (agency override first, then site settings)"""
        if self.max_residences is not None:
            return self.max_residences
        from common.utils import get_site_settings
        return get_site_settings().max_residences_per_agency

    def get_max_managers(self):
        """Manager limit for this agency (agency override first, then site settings)"""
        if self.max_managers is not None:
            return self.max_managers
        from common.utils import get_site_settings
        return get_site_settings().max_managers_per_agency
