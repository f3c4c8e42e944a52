from django.contrib import admin
from .models import Payment, ReceiptPayment, InventoryPayment


class ReceiptPaymentInline(admin.TabularInline):
    model = ReceiptPayment
    extra = 0
    fields = ['receipt', 'amount']


class InventoryPaymentInline(admin.TabularInline):
    model = InventoryPayment
    extra = 0
    fields = ['entry', 'amount']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'date', 'type', 'amount', 'customer', 'supplier', 'receipt', 'reference']
    list_filter = ['type', 'date']
    search_fields = ['description', 'reference', 'customer__name', 'supplier__name']
    ordering = ['-date']
    inlines = [ReceiptPaymentInline, InventoryPaymentInline]
