import secrets
import string
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from agencies.models import Agency
from core.constants import LotType, LotStatus, UserRole

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length=6):
    """Random invitation code (uppercase letters and digits)"""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_residence_code():
    return generate_code(8)


class Residence(models.Model):
    """Residence (co-ownership or rental property) managed by an agency"""
    agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='residences')
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    country = models.CharField(max_length=100, default='France')
    join_code = models.CharField(max_length=12, unique=True, default=generate_residence_code)
    allow_landlord_join = models.BooleanField(default=False)
    requires_syndic_approval = models.BooleanField(default=False)
    settings = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Residence"
        verbose_name_plural = "Residences"
        indexes = [
            models.Index(fields=['agency', 'name']),
        ]

    def __str__(self):
        return f"{self.name} ({self.agency.name})"

    @property
    def total_lots(self):
        if not hasattr(self, '_total_lots_cache'):
            self._total_lots_cache = self.lots.count()
        return self._total_lots_cache

    @property
    def occupied_lots(self):
        if not hasattr(self, '_occupied_lots_cache'):
            self._occupied_lots_cache = self.lots.filter(
                occupancies__is_active=True
            ).distinct().count()
        return self._occupied_lots_cache


class Building(models.Model):
    """Building inside a residence"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='buildings')
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        unique_together = ['residence', 'name']
        verbose_name = "Building"
        verbose_name_plural = "Buildings"

    def __str__(self):
        return f"{self.residence.name} - {self.name}"


class Lot(models.Model):
    """Lot (apartment, parking, cellar...) in a residence"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='lots')
    building = models.ForeignKey(
        Building,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lots'
    )
    lot_number = models.CharField(max_length=50, help_text="e.g., 'A101', 'P12'")
    lot_type = models.CharField(max_length=20, choices=LotType.CHOICES, default=LotType.APARTMENT)
    floor = models.IntegerField(null=True, blank=True)
    door = models.CharField(max_length=20, blank=True)
    surface = models.DecimalField(
        max_digits=8, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0)], help_text="m²"
    )
    rooms = models.PositiveIntegerField(null=True, blank=True)
    tantiemes = models.PositiveIntegerField(default=0, help_text="General co-ownership shares")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owned_lots'
    )
    primary_resident = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='primary_lots'
    )
    join_code = models.CharField(max_length=12, unique=True, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['lot_number']
        unique_together = ['residence', 'lot_number']
        verbose_name = "Lot"
        verbose_name_plural = "Lots"
        indexes = [
            models.Index(fields=['residence', 'lot_type']),
            models.Index(fields=['residence', 'building']),
        ]

    def __str__(self):
        return f"{self.residence.name} - {self.lot_number} ({self.get_lot_type_display()})"

    def clean(self):
        if self.building_id and self.building.residence_id != self.residence_id:
            raise ValidationError({'building': "Building must belong to the lot's residence"})

    def save(self, *args, **kwargs):
        if not self.join_code:
            self.join_code = generate_code()
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def current_occupancies(self):
        return self.occupancies.filter(is_active=True)

    @property
    def status(self):
        """OCCUPIED when an active occupancy exists, else VACANT"""
        if self.current_occupancies.exists():
            return LotStatus.OCCUPIED
        return LotStatus.VACANT


class ResidenceAccess(models.Model):
    """
    Tracks which staff members have access to which residences.

    - Owners automatically have access to all residences of their agency
    - MANAGER, SYNDIC and CS only have access to residences listed here
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='residence_accesses'
    )
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='access_grants')
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='granted_residence_accesses'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Residence Access"
        verbose_name_plural = "Residence Accesses"
        unique_together = ['user', 'residence']
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.username} → {self.residence.name}"

    def clean(self):
        """Validate access grant"""
        if self.user.role == UserRole.OWNER:
            raise ValidationError(
                "Owners automatically have access to all residences of their agency."
            )
        # Conseil syndical members are co-owners, not agency staff
        if self.user.role != UserRole.CS and self.user.agency_id != self.residence.agency_id:
            raise ValidationError("User and residence must belong to the same agency")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
