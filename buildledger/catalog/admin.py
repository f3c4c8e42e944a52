from django.contrib import admin
from .models import Product, ProductComponent


class ProductComponentInline(admin.TabularInline):
    model = ProductComponent
    fk_name = 'parent'
    extra = 0
    fields = ['component', 'quantity']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'unit', 'unit_price', 'stock_qty', 'is_manufactured', 'is_composite', 'is_fuel']
    list_filter = ['is_manufactured', 'is_composite', 'is_fuel']
    search_fields = ['name', 'description']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProductComponentInline]
