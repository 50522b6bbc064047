from django.contrib import admin
from .models import DistributionKey, LotShare, CoproCall, CoproCallItem, WorksFund, WorksFundContribution


class LotShareInline(admin.TabularInline):
    model = LotShare
    extra = 0


@admin.register(DistributionKey)
class DistributionKeyAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'residence']
    list_filter = ['residence']
    inlines = [LotShareInline]


class CoproCallItemInline(admin.TabularInline):
    model = CoproCallItem
    extra = 0
    readonly_fields = ['paid_amount', 'status', 'paid_at']


@admin.register(CoproCall)
class CoproCallAdmin(admin.ModelAdmin):
    list_display = ['call_number', 'residence', 'call_type', 'due_date', 'total_amount', 'status']
    list_filter = ['status', 'call_type', 'residence']
    search_fields = ['call_number', 'label']
    readonly_fields = ['call_number', 'sent_at', 'created_at', 'updated_at']
    inlines = [CoproCallItemInline]


class WorksFundContributionInline(admin.TabularInline):
    model = WorksFundContribution
    extra = 0


@admin.register(WorksFund)
class WorksFundAdmin(admin.ModelAdmin):
    list_display = ['residence', 'balance', 'minimum_percentage', 'last_contribution_date']
    inlines = [WorksFundContributionInline]
