from django.contrib import admin
from .models import CashEntry, CashCustodyEntry


@admin.register(CashEntry)
class CashEntryAdmin(admin.ModelAdmin):
    list_display = ['type', 'amount', 'description', 'created_by', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['description']
    ordering = ['-created_at']


@admin.register(CashCustodyEntry)
class CashCustodyEntryAdmin(admin.ModelAdmin):
    list_display = ['type', 'amount', 'from_employee', 'to_employee', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['from_employee__name', 'to_employee__name', 'description']
    ordering = ['-created_at']
