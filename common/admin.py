from django.contrib import admin
from .models import SiteSettings


@admin.register(SiteSettings)
class SiteSettingsAdmin(admin.ModelAdmin):
    """
    Site Settings - Configure system-wide settings

    This is a singleton: only one instance exists.
    Plan limits apply to agencies without their own override (0 = unlimited).
    """
    list_display = ['site_name', 'company_name', 'currency_code', 'rent_due_day', 'updated_at']
    fieldsets = (
        ('Company', {
            'fields': ('site_name', 'company_name', 'company_email', 'company_phone', 'company_address')
        }),
        ('Currency', {
            'fields': ('currency_symbol', 'currency_code')
        }),
        ('Rent', {
            'fields': ('auto_generate_rent', 'rent_due_day')
        }),
        ('Co-ownership', {
            'fields': ('works_fund_min_percentage',)
        }),
        ('Plan Limits', {
            'fields': ('max_residences_per_agency', 'max_managers_per_agency', 'trial_days'),
            'description': 'Default limits per agency. Set to 0 for unlimited.'
        }),
    )

    def has_add_permission(self, request):
        return not SiteSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
