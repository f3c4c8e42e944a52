from django.urls import path
from .views import (
    employee_list_create, employee_detail, employee_piece_rates, piece_rate_detail,
    payroll_list_create, payroll_paginated,
    payroll_run_list_create, payroll_run_detail, payroll_run_finalize, payroll_run_debit,
)

urlpatterns = [
    # Employee endpoints
    path('employees/', employee_list_create, name='employee-list-create'),
    path('employees/<int:pk>/', employee_detail, name='employee-detail'),
    path('employees/<int:pk>/piece-rates/', employee_piece_rates, name='employee-piece-rates'),
    path('employees/piece-rates/<int:pk>/', piece_rate_detail, name='piece-rate-detail'),

    # Payroll endpoints
    path('payroll/', payroll_list_create, name='payroll-list-create'),
    path('payroll/paginated/', payroll_paginated, name='payroll-paginated'),
    path('payroll/runs/', payroll_run_list_create, name='payroll-run-list-create'),
    path('payroll/runs/<int:pk>/', payroll_run_detail, name='payroll-run-detail'),
    path('payroll/runs/<int:pk>/finalize/', payroll_run_finalize, name='payroll-run-finalize'),
    path('payroll/runs/<int:pk>/debit/', payroll_run_debit, name='payroll-run-debit'),
]
