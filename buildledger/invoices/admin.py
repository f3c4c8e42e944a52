from django.contrib import admin
from .models import Invoice, InvoiceReceipt


class InvoiceReceiptInline(admin.TabularInline):
    model = InvoiceReceipt
    extra = 0
    fields = ['receipt']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_no', 'customer', 'receipt_type', 'status', 'total', 'outstanding', 'issued_at']
    list_filter = ['status', 'receipt_type']
    search_fields = ['invoice_no', 'customer__name']
    ordering = ['-issued_at']
    readonly_fields = ['subtotal', 'vat_amount', 'total', 'amount_paid', 'outstanding', 'created_at', 'updated_at']
    inlines = [InvoiceReceiptInline]
