from django.contrib import admin
from .models import Receipt, ReceiptItem


class ReceiptItemInline(admin.TabularInline):
    model = ReceiptItem
    extra = 0
    fields = ['product', 'quantity', 'unit_price', 'subtotal', 'display_quantity', 'display_unit']
    readonly_fields = ['subtotal']


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ['receipt_no', 'date', 'type', 'customer', 'walk_in_name', 'total', 'amount_paid', 'is_paid']
    list_filter = ['type', 'is_paid', 'tehmil', 'tenzil', 'date']
    search_fields = ['receipt_no', 'customer__name', 'walk_in_name']
    ordering = ['-date']
    readonly_fields = ['total', 'amount_paid', 'is_paid', 'created_at', 'updated_at']
    inlines = [ReceiptItemInline]
