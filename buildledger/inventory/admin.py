from django.contrib import admin
from .models import InventoryEntry, StockMovement


@admin.register(InventoryEntry)
class InventoryEntryAdmin(admin.ModelAdmin):
    list_display = ['inventory_no', 'entry_date', 'type', 'supplier', 'product', 'quantity', 'total_cost', 'is_paid',
                    'labor_paid']
    list_filter = ['type', 'is_paid', 'labor_paid', 'tva_eligible']
    search_fields = ['inventory_no', 'supplier__name', 'product__name']
    ordering = ['-entry_date']
    readonly_fields = ['amount_paid', 'created_at', 'updated_at']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['product', 'type', 'quantity', 'date', 'receipt', 'inventory_entry']
    list_filter = ['type', 'date']
    search_fields = ['product__name']
    ordering = ['-date']
