from django.contrib import admin
from .models import Payment, RentReceipt


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'residence', 'lot', 'payment_type', 'amount', 'paid_amount', 'due_date', 'status']
    list_filter = ['status', 'payment_type', 'residence']
    search_fields = ['user__username', 'label', 'reference']
    readonly_fields = ['status', 'paid_at', 'created_at', 'updated_at']
    date_hierarchy = 'due_date'


@admin.register(RentReceipt)
class RentReceiptAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'tenant', 'residence', 'period_start', 'total_amount', 'issued_at']
    list_filter = ['residence']
    search_fields = ['tenant__username']
    readonly_fields = ['total_amount', 'issued_at']
