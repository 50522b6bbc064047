from django.contrib import admin
from .models import Occupancy


@admin.register(Occupancy)
class OccupancyAdmin(admin.ModelAdmin):
    list_display = ['user', 'lot', 'occupancy_type', 'rent_amount', 'start_date', 'end_date', 'is_active']
    list_filter = ['is_active', 'occupancy_type', 'start_date', 'lot__residence']
    search_fields = ['user__username', 'user__email', 'lot__lot_number', 'lot__residence__name']
    raw_id_fields = ['user', 'lot']

    fieldsets = (
        ('Occupant', {
            'fields': ('user', 'lot', 'occupancy_type')
        }),
        ('Rent Information', {
            'fields': ('rent_amount', 'charges_amount'),
            'description': 'Only for TENANT occupancies.'
        }),
        ('Dates', {
            'fields': ('start_date', 'end_date', 'is_active')
        }),
        ('Notes', {
            'fields': ('notes',),
            'classes': ('collapse',)
        }),
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('user', 'lot', 'lot__residence')
