from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from core.constants import ListingStatus, ListingCondition
from residences.models import Residence


class Listing(models.Model):
    """Item offered by a resident to the other residents"""
    residence = models.ForeignKey(Residence, on_delete=models.CASCADE, related_name='listings')
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='listings')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=50, blank=True)
    condition = models.CharField(max_length=20, choices=ListingCondition.CHOICES, default=ListingCondition.GOOD)
    price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0)],
        help_text="Empty for free or negotiable items"
    )
    images = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=ListingStatus.CHOICES, default=ListingStatus.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['residence', 'status']),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        if not isinstance(self.images, list) or not all(isinstance(url, str) for url in self.images):
            raise ValidationError({'images': "Images must be a list of URLs."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Favorite(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='favorites')
    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name='favorited_by')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        unique_together = ['user', 'listing']

    def __str__(self):
        return f"{self.user.username} ♥ {self.listing.title}"
