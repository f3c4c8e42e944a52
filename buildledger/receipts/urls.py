from django.urls import path
from .views import (
    receipt_list_create, receipt_paginated, receipt_next_number, receipt_detail, receipt_number_override,
    receipt_tehmil_payment, receipt_tenzil_payment, receipt_flags_bulk_payment,
    receipt_flags_summary, receipt_flags_weekly_summary, customer_invoice_preview,
    worker_receipt_print, worker_receipt_print_log, worker_receipt_by_number,
)

urlpatterns = [
    # Receipt endpoints
    path('receipts/', receipt_list_create, name='receipt-list-create'),
    path('receipts/paginated/', receipt_paginated, name='receipt-paginated'),
    path('receipts/next-number/', receipt_next_number, name='receipt-next-number'),
    path('receipts/flags-summary/', receipt_flags_summary, name='receipt-flags-summary'),
    path('receipts/flags/bulk-payment/', receipt_flags_bulk_payment, name='receipt-flags-bulk-payment'),
    path('receipts/tehmil-tenzil/weekly-summary/', receipt_flags_weekly_summary, name='receipt-flags-weekly-summary'),
    path('receipts/customers/<int:customer_id>/invoice-preview/', customer_invoice_preview,
         name='receipt-invoice-preview'),
    path('receipts/<int:pk>/', receipt_detail, name='receipt-detail'),
    path('receipts/<int:pk>/number/', receipt_number_override, name='receipt-number-override'),
    path('receipts/<int:pk>/tehmil-payment/', receipt_tehmil_payment, name='receipt-tehmil-payment'),
    path('receipts/<int:pk>/tenzil-payment/', receipt_tenzil_payment, name='receipt-tenzil-payment'),

    # Worker endpoints
    path('worker/receipts/<int:pk>/print/', worker_receipt_print, name='worker-receipt-print'),
    path('worker/receipts/<int:pk>/print-log/', worker_receipt_print_log, name='worker-receipt-print-log'),
    path('worker/receipts/by-number/<str:receipt_no>/', worker_receipt_by_number, name='worker-receipt-by-number'),
]
