from django.contrib import admin
from .models import GeneralAssembly, Resolution, AssemblyVote


class ResolutionInline(admin.TabularInline):
    model = Resolution
    extra = 0
    fields = ['order', 'title', 'majority', 'budget', 'outcome', 'shares_for', 'shares_against', 'shares_abstain']
    readonly_fields = ['outcome', 'shares_for', 'shares_against', 'shares_abstain']


@admin.register(GeneralAssembly)
class GeneralAssemblyAdmin(admin.ModelAdmin):
    list_display = ['title', 'residence', 'scheduled_at', 'status']
    list_filter = ['status', 'residence']
    search_fields = ['title', 'residence__name']
    inlines = [ResolutionInline]


@admin.register(AssemblyVote)
class AssemblyVoteAdmin(admin.ModelAdmin):
    list_display = ['resolution', 'lot', 'voter', 'choice', 'shares', 'cast_at']
    list_filter = ['choice']
