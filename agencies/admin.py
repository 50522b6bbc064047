from django.contrib import admin
from .models import Agency
from .services import AgencyLimitService


@admin.register(Agency)
class AgencyAdmin(admin.ModelAdmin):
    """
    Agency management

    Limits are per agency: leave blank to use the site default, 0 for unlimited.
    Create the agency first, then add its OWNER user in the Users section.
    """
    list_display = ['name', 'agency_type', 'plan', 'status', 'limits_display', 'usage_display', 'created_at']
    list_filter = ['agency_type', 'plan', 'status', 'created_at']
    search_fields = ['name', 'email', 'siret', 'city']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'agency_type', 'plan', 'status', 'trial_ends_at'),
        }),
        ('Custom Limits', {
            'fields': ('max_residences', 'max_managers'),
            'description': 'Leave blank to use site-wide defaults. Set to 0 for unlimited.',
        }),
        ('Contact Information', {
            'fields': ('siret', 'email', 'phone', 'address', 'city', 'postal_code')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    readonly_fields = ['created_at', 'updated_at']

    def limits_display(self, obj):
        max_res = obj.get_max_residences()
        max_mgr = obj.get_max_managers()
        res_text = f"{max_res}" if max_res > 0 else "∞"
        mgr_text = f"{max_mgr}" if max_mgr > 0 else "∞"
        return f"Residences: {res_text} | Managers: {mgr_text}"
    limits_display.short_description = 'Limits'

    def usage_display(self, obj):
        service = AgencyLimitService()
        return (
            f"Residences: {service.get_current_residence_count(obj)} | "
            f"Managers: {service.get_current_manager_count(obj)}"
        )
    usage_display.short_description = 'Usage'
