"""
Audit log admin, view only
"""
import json

from django.contrib import admin
from django.utils.html import format_html

from audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'agency', 'residence', 'user', 'action', 'entity', 'ip_address']
    list_filter = [
        'action',
        'entity_type',
        ('agency', admin.RelatedOnlyFieldListFilter),
        ('residence', admin.RelatedOnlyFieldListFilter),
    ]
    search_fields = ['description', 'user__username', 'entity_type', 'ip_address']
    list_select_related = ['agency', 'residence', 'user']
    date_hierarchy = 'timestamp'
    exclude = ['old_data', 'new_data', 'metadata']
    readonly_fields = ['payload']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description='Entity')
    def entity(self, obj):
        return f"{obj.entity_type}#{obj.entity_id}" if obj.entity_id else obj.entity_type

    @admin.display(description='Payload')
    def payload(self, obj):
        data = {'old': obj.old_data, 'new': obj.new_data, 'metadata': obj.metadata}
        return format_html('<pre>{}</pre>', json.dumps(data, indent=2, default=str))
