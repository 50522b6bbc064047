"""
Agency Service Layer
Handles business logic for agency-related operations including limit management.
"""
from datetime import timedelta
from typing import Optional, Tuple
from django.utils import timezone
from core.constants import UserRole, AgencyStatus
from core.exceptions import LimitExceededError
from core.services import BaseService
from .models import Agency


class AgencyLimitService(BaseService):
    """
    Service for managing agency limits (residences and managers).
    Handles limit checking, validation, and provides clean interface for views.
    """

    def get_residence_limit(self, agency: Agency) -> int:
        """Maximum residences allowed (0 = unlimited)"""
        return agency.get_max_residences()

    def get_manager_limit(self, agency: Agency) -> int:
        """Maximum managers allowed (0 = unlimited)"""
        return agency.get_max_managers()

    def get_current_residence_count(self, agency: Agency) -> int:
        from residences.models import Residence
        return Residence.objects.filter(agency=agency).count()

    def get_current_manager_count(self, agency: Agency) -> int:
        from users.models import User
        return User.objects.filter(agency=agency, role=UserRole.MANAGER).count()

    def _check(self, limit: int, current: int, resource: str) -> Tuple[bool, Optional[str]]:
        # Unlimited (0) means always allowed
        if limit == 0 or current < limit:
            return True, None
        return False, (
            f'You have reached the maximum limit of {limit} {resource}. '
            f'Please contact administrator to increase your limit.'
        )

    def can_add_residence(self, agency: Agency) -> Tuple[bool, Optional[str]]:
        """
        Check if agency can add a new residence.

        Returns:
            Tuple of (can_add: bool, error_message: Optional[str])
        """
        return self._check(
            self.get_residence_limit(agency),
            self.get_current_residence_count(agency),
            'residences'
        )

    def can_add_manager(self, agency: Agency) -> Tuple[bool, Optional[str]]:
        """
        Check if agency can add a new manager.

        Returns:
            Tuple of (can_add: bool, error_message: Optional[str])
        """
        return self._check(
            self.get_manager_limit(agency),
            self.get_current_manager_count(agency),
            'managers'
        )

    def validate_residence_limit(self, agency: Agency) -> None:
        """
        Raises:
            LimitExceededError: If limit is exceeded
        """
        can_add, error_message = self.can_add_residence(agency)
        if not can_add:
            raise LimitExceededError(
                message=error_message,
                code="RESIDENCE_LIMIT_EXCEEDED",
                details={
                    "current": self.get_current_residence_count(agency),
                    "max": self.get_residence_limit(agency),
                    "resource": "residences"
                }
            )

    def validate_manager_limit(self, agency: Agency) -> None:
        """
        Raises:
            LimitExceededError: If limit is exceeded
        """
        can_add, error_message = self.can_add_manager(agency)
        if not can_add:
            raise LimitExceededError(
                message=error_message,
                code="MANAGER_LIMIT_EXCEEDED",
                details={
                    "current": self.get_current_manager_count(agency),
                    "max": self.get_manager_limit(agency),
                    "resource": "managers"
                }
            )

    def get_limit_info(self, agency: Agency) -> dict:
        """Comprehensive limit information for an agency"""
        residence_limit = self.get_residence_limit(agency)
        manager_limit = self.get_manager_limit(agency)
        return {
            'residences': {
                'current': self.get_current_residence_count(agency),
                'max': residence_limit,
                'unlimited': residence_limit == 0,
                'can_add': self.can_add_residence(agency)[0],
            },
            'managers': {
                'current': self.get_current_manager_count(agency),
                'max': manager_limit,
                'unlimited': manager_limit == 0,
                'can_add': self.can_add_manager(agency)[0],
            }
        }


class TrialService(BaseService):
    """Trial agencies: creation and expiry tracking"""

    def start_trial(self, agency: Agency, days: int = None) -> Agency:
        from common.utils import get_site_settings
        days = days or get_site_settings().trial_days
        agency.status = AgencyStatus.TRIAL
        agency.trial_ends_at = timezone.now() + timedelta(days=days)
        agency.save(update_fields=['status', 'trial_ends_at', 'updated_at'])
        self.log_info("Trial started", agency_id=agency.id, days=days)
        return agency

    def expiring_trials(self, within_days: int = 7):
        """Trial agencies whose trial ends within the given window"""
        now = timezone.now()
        return Agency.objects.filter(
            status=AgencyStatus.TRIAL,
            trial_ends_at__gte=now,
            trial_ends_at__lte=now + timedelta(days=within_days),
        ).order_by('trial_ends_at')

    def convert(self, agency: Agency, plan: str) -> Agency:
        """Turn a trial agency into an active paying one"""
        agency.status = AgencyStatus.ACTIVE
        agency.plan = plan
        agency.trial_ends_at = None
        agency.save(update_fields=['status', 'plan', 'trial_ends_at', 'updated_at'])
        self.log_info("Trial converted", agency_id=agency.id, plan=plan)
        return agency
