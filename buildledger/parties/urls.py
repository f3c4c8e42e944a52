from django.urls import path
from .views import (
    customer_list_create, customer_detail, customer_manual_balance,
    supplier_list_create, supplier_detail, supplier_manual_balance,
    job_site_list_create, job_site_detail,
    merge_customer_accounts, merge_supplier_accounts, pair_customer_supplier_view, settle_pairs,
)

urlpatterns = [
    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/manual-balance/', customer_manual_balance, name='customer-manual-balance'),

    # Supplier endpoints
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('suppliers/<int:pk>/manual-balance/', supplier_manual_balance, name='supplier-manual-balance'),

    # Job site endpoints
    path('job-sites/', job_site_list_create, name='job-site-list-create'),
    path('job-sites/<int:pk>/', job_site_detail, name='job-site-detail'),

    # Merge endpoints
    path('merge/customers/', merge_customer_accounts, name='merge-customers'),
    path('merge/suppliers/', merge_supplier_accounts, name='merge-suppliers'),
    path('merge/pair-customer-supplier/', pair_customer_supplier_view, name='merge-pair-customer-supplier'),
    path('merge/settle-pairs/', settle_pairs, name='merge-settle-pairs'),
]
