from django.urls import path
from .views import cash_summary_view, cash_entries, cash_custody

urlpatterns = [
    # Cash endpoints
    path('cash/summary/', cash_summary_view, name='cash-summary'),
    path('cash/entries/', cash_entries, name='cash-entries'),
    path('cash/custody/', cash_custody, name='cash-custody'),
]
