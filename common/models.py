from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from core.constants import DefaultLimits


class SiteSettings(models.Model):
    """
    Site-wide settings (singleton pattern - only one instance)
    """
    site_name = models.CharField(max_length=200, default="Residence Hub")
    company_name = models.CharField(max_length=200, blank=True, default="")
    company_email = models.EmailField(blank=True, default="")
    company_phone = models.CharField(max_length=20, blank=True, default="")
    company_address = models.TextField(blank=True, default="")

    # Currency
    currency_symbol = models.CharField(max_length=10, default="€")
    currency_code = models.CharField(max_length=3, default="EUR")

    # Rent Settings
    auto_generate_rent = models.BooleanField(default=True)
    rent_due_day = models.IntegerField(
        default=DefaultLimits.RENT_DUE_DAY,
        validators=[MinValueValidator(1), MaxValueValidator(28)]
    )

    # Co-ownership
    works_fund_min_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DefaultLimits.WORKS_FUND_MIN_PERCENTAGE,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Minimum yearly works-fund contribution as a percentage of the voted budget"
    )

    # Plan limits (per agency defaults, 0 = unlimited)
    max_residences_per_agency = models.IntegerField(
        default=DefaultLimits.MAX_RESIDENCES_PER_AGENCY,
        validators=[MinValueValidator(0)],
        help_text="Maximum number of residences each agency can add. Set to 0 for unlimited."
    )
    max_managers_per_agency = models.IntegerField(
        default=DefaultLimits.MAX_MANAGERS_PER_AGENCY,
        validators=[MinValueValidator(0)],
        help_text="Maximum number of managers each agency can create. Set to 0 for unlimited."
    )

    trial_days = models.IntegerField(default=14, validators=[MinValueValidator(1)])

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Site Settings'
        verbose_name_plural = 'Site Settings'

    def __str__(self):
        return self.site_name

    def save(self, *args, **kwargs):
        """Always store the singleton under pk=1"""
        from django.core.cache import cache
        self.pk = 1
        if self._state.adding:
            # A fresh instance replaces the stored row
            created_at = SiteSettings.objects.filter(pk=1).values_list('created_at', flat=True).first()
            if created_at is not None:
                self.created_at = created_at
                self._state.adding = False
        super().save(*args, **kwargs)
        cache.delete('site_settings')

    def delete(self, *args, **kwargs):
        """Singleton cannot be deleted"""
        pass

    @classmethod
    def load(cls):
        """Get or create the singleton instance"""
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj
