from django.contrib import admin
from .models import Driver, Truck, Tool, TruckRepair, DieselLog


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'created_at']
    search_fields = ['name', 'phone']
    ordering = ['name']


@admin.register(Truck)
class TruckAdmin(admin.ModelAdmin):
    list_display = ['plate_no', 'driver', 'insurance_expiry']
    search_fields = ['plate_no', 'driver__name']
    ordering = ['plate_no']


@admin.register(Tool)
class ToolAdmin(admin.ModelAdmin):
    list_display = ['name', 'quantity', 'unit']
    search_fields = ['name']


@admin.register(TruckRepair)
class TruckRepairAdmin(admin.ModelAdmin):
    list_display = ['truck', 'type', 'date', 'amount', 'supplier']
    list_filter = ['type', 'date']
    search_fields = ['truck__plate_no', 'description']
    ordering = ['-date']


@admin.register(DieselLog)
class DieselLogAdmin(admin.ModelAdmin):
    list_display = ['date', 'truck', 'driver', 'liters', 'total_cost']
    list_filter = ['date']
    search_fields = ['truck__plate_no', 'driver__name']
    ordering = ['-date']
