from django.contrib import admin
from .models import DebrisEntry


@admin.register(DebrisEntry)
class DebrisEntryAdmin(admin.ModelAdmin):
    list_display = ['date', 'customer', 'supplier', 'walk_in_name', 'volume', 'dumping_fee', 'status', 'removal_cost']
    list_filter = ['status', 'date']
    search_fields = ['customer__name', 'supplier__name', 'walk_in_name', 'notes']
    ordering = ['-date']
