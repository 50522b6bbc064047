from django.contrib.auth.models import AbstractUser
from django.db import models
from agencies.models import Agency
from core.constants import UserRole


class User(AbstractUser):
    """Custom User model - agency staff, syndics and residents"""
    agency = models.ForeignKey(
        Agency,
        on_delete=models.CASCADE,
        related_name='users',
        null=True,
        blank=True,
        help_text="Agency the user works for. Residents have none."
    )
    role = models.CharField(max_length=20, choices=UserRole.CHOICES, default=UserRole.RESIDENT)
    phone = models.CharField(max_length=20, blank=True)

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=['agency', 'role']),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username

    @property
    def is_platform_admin(self):
        return self.role == UserRole.ADMIN or self.is_superuser

    @property
    def is_staff_role(self):
        """Agency staff and syndics - may manage residence data"""
        return self.role in UserRole.STAFF or self.is_superuser

    @property
    def is_resident(self):
        return self.role == UserRole.RESIDENT
