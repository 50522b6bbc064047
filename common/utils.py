"""
Utility functions for accessing settings and shared helpers
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from django.core.cache import cache
from django.db import DatabaseError
from .models import SiteSettings
import logging

logger = logging.getLogger(__name__)

SITE_SETTINGS_CACHE_KEY = 'site_settings'
CENTS = Decimal('0.01')


def get_site_settings():
    """Get site settings (cached)"""
    settings = cache.get(SITE_SETTINGS_CACHE_KEY)
    if settings is not None:
        return settings
    try:
        settings = SiteSettings.load()
    except DatabaseError as e:
        # Table missing (pending migration): fall back to an unsaved default row
        logger.warning(f"Site settings unavailable, using defaults: {e}")
        return SiteSettings(pk=1)
    cache.set(SITE_SETTINGS_CACHE_KEY, settings, 300)
    return settings


def quantize_money(value) -> Decimal:
    """Round a value to cents (half up)"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Shift a first-of-month date by a number of months"""
    month_index = day.year * 12 + (day.month - 1) + months
    return date(month_index // 12, month_index % 12 + 1, 1)


def percentage(part, total, digits=1) -> float:
    """Percentage of part in total, 0 when total is 0"""
    if not total:
        return 0.0
    return round(float(part) / float(total) * 100, digits)
