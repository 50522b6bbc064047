from django.contrib import admin
from .models import Residence, Building, Lot, ResidenceAccess


class BuildingInline(admin.TabularInline):
    model = Building
    extra = 0


@admin.register(Residence)
class ResidenceAdmin(admin.ModelAdmin):
    list_display = ['name', 'agency', 'city', 'join_code', 'lots_count', 'created_at']
    list_filter = ['agency', 'city']
    search_fields = ['name', 'address', 'city', 'join_code', 'agency__name']
    readonly_fields = ['join_code', 'created_at', 'updated_at']
    inlines = [BuildingInline]

    def lots_count(self, obj):
        return obj.lots.count()
    lots_count.short_description = 'Lots'


@admin.register(Building)
class BuildingAdmin(admin.ModelAdmin):
    list_display = ['name', 'residence', 'created_at']
    list_filter = ['residence__agency']
    search_fields = ['name', 'residence__name']


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = ['lot_number', 'residence', 'building', 'lot_type', 'floor', 'tantiemes', 'owner']
    list_filter = ['lot_type', 'residence']
    search_fields = ['lot_number', 'residence__name', 'owner__username', 'join_code']
    raw_id_fields = ['owner', 'primary_resident']


@admin.register(ResidenceAccess)
class ResidenceAccessAdmin(admin.ModelAdmin):
    list_display = ['user', 'residence', 'granted_by', 'created_at']
    list_filter = ['residence__agency']
    search_fields = ['user__username', 'residence__name']
    raw_id_fields = ['user', 'residence', 'granted_by']
