from django.contrib import admin
from .models import CommonArea, Reservation


@admin.register(CommonArea)
class CommonAreaAdmin(admin.ModelAdmin):
    list_display = ['name', 'residence', 'area_type', 'requires_approval', 'is_active']
    list_filter = ['is_active', 'requires_approval', 'residence']
    search_fields = ['name', 'residence__name']


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['title', 'area', 'user', 'start_at', 'end_at', 'status']
    list_filter = ['status', 'area__residence']
    search_fields = ['title', 'user__username', 'area__name']
    date_hierarchy = 'start_at'
