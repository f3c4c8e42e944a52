from django.urls import path
from .views import (
    dashboard, summary_report, daily_report_view, custom_report_view,
    daily_pdf, financial_pdf, balances_pdf, cash_ledger_pdf,
    finance_overview_view, period_summary_pdf, tax_reports,
    debug_receivables_health, debug_recompute_receipt_balances, debug_receivables_repair,
    debug_repair_receipt, debug_cash_ledger,
)

urlpatterns = [
    # Dashboard endpoints
    path('dashboard/', dashboard, name='dashboard'),

    # Report endpoints
    path('reports/summary/', summary_report, name='report-summary'),
    path('reports/daily/', daily_report_view, name='report-daily'),
    path('reports/custom/', custom_report_view, name='report-custom'),
    path('reports/exports/daily-pdf/', daily_pdf, name='report-daily-pdf'),
    path('reports/exports/financial-pdf/', financial_pdf, name='report-financial-pdf'),
    path('reports/exports/balances-pdf/', balances_pdf, name='report-balances-pdf'),
    path('reports/exports/cash-ledger-pdf/', cash_ledger_pdf, name='report-cash-ledger-pdf'),

    # Finance endpoints
    path('finance/overview/', finance_overview_view, name='finance-overview'),
    path('finance/period-summary-pdf/', period_summary_pdf, name='finance-period-summary-pdf'),

    # Tax endpoints
    path('tax/reports/', tax_reports, name='tax-reports'),

    # Debug endpoints
    path('debug/receivables-health/', debug_receivables_health, name='debug-receivables-health'),
    path('debug/recompute-receipt-balances/', debug_recompute_receipt_balances,
         name='debug-recompute-receipt-balances'),
    path('debug/receivables-repair/', debug_receivables_repair, name='debug-receivables-repair'),
    path('debug/receipts/<int:pk>/repair/', debug_repair_receipt, name='debug-repair-receipt'),
    path('debug/cash-ledger/', debug_cash_ledger, name='debug-cash-ledger'),
]
