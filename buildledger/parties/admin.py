from django.contrib import admin
from .models import Customer, Supplier, JobSite, CustomerSupplierLink


class JobSiteInline(admin.TabularInline):
    model = JobSite
    extra = 0
    fields = ['name', 'address', 'notes']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_name', 'phone', 'receipt_type', 'manual_balance_override', 'created_at']
    list_filter = ['receipt_type']
    search_fields = ['name', 'contact_name', 'phone', 'email']
    ordering = ['name']
    readonly_fields = ['manual_balance_updated_at', 'manual_balance_updated_by', 'created_at', 'updated_at']
    inlines = [JobSiteInline]


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact', 'manual_balance_override', 'created_at']
    search_fields = ['name', 'contact']
    ordering = ['name']
    readonly_fields = ['manual_balance_updated_at', 'manual_balance_updated_by', 'created_at', 'updated_at']


@admin.register(CustomerSupplierLink)
class CustomerSupplierLinkAdmin(admin.ModelAdmin):
    list_display = ['customer', 'supplier', 'created_at']
    search_fields = ['customer__name', 'supplier__name']
