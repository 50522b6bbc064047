from django.contrib import admin
from .models import Ticket, TicketCategory, TicketComment


@admin.register(TicketCategory)
class TicketCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'scope', 'display_order', 'is_active']
    list_editable = ['display_order', 'is_active']


class TicketCommentInline(admin.TabularInline):
    model = TicketComment
    extra = 0
    readonly_fields = ['user', 'created_at']


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ['title', 'residence', 'priority', 'status', 'created_by', 'assignee', 'created_at']
    list_filter = ['status', 'priority', 'ticket_type', 'scope', 'residence']
    search_fields = ['title', 'description', 'residence__name', 'lot__lot_number']
    readonly_fields = ['resolved_at', 'closed_at', 'created_at', 'updated_at']
    raw_id_fields = ['created_by', 'assignee', 'lot', 'building']
    inlines = [TicketCommentInline]
