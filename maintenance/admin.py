from django.contrib import admin
from .models import ServiceProvider, WorkOrder


@admin.register(ServiceProvider)
class ServiceProviderAdmin(admin.ModelAdmin):
    list_display = ['name', 'trade', 'agency', 'phone', 'is_active']
    list_filter = ['is_active', 'agency']
    search_fields = ['name', 'trade', 'email']


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    list_display = ['title', 'residence', 'provider', 'status', 'scheduled_date', 'estimated_cost', 'actual_cost']
    list_filter = ['status', 'priority', 'residence']
    search_fields = ['title', 'description', 'residence__name']
    raw_id_fields = ['ticket', 'lot', 'building', 'created_by']
