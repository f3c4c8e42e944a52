from django.urls import path
from .views import (
    inventory_list_create, inventory_detail, production_history, inventory_next_number, production_workers,
    inventory_payables, inventory_mark_paid, inventory_production_payables,
    production_payables_weekly_summary, inventory_mark_labor_paid,
)

urlpatterns = [
    # Inventory endpoints
    path('inventory/', inventory_list_create, name='inventory-list-create'),
    path('inventory/production-history/', production_history, name='inventory-production-history'),
    path('inventory/next-number/', inventory_next_number, name='inventory-next-number'),
    path('inventory/workers/', production_workers, name='inventory-workers'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),

    # Payables endpoints
    path('inventory/payables/', inventory_payables, name='inventory-payables'),
    path('inventory/<int:pk>/mark-paid/', inventory_mark_paid, name='inventory-mark-paid'),
    path('inventory/production-payables/', inventory_production_payables, name='inventory-production-payables'),
    path('inventory/production-payables/weekly-summary/', production_payables_weekly_summary,
         name='inventory-production-payables-weekly-summary'),
    path('inventory/<int:pk>/mark-labor-paid/', inventory_mark_labor_paid, name='inventory-mark-labor-paid'),
]
