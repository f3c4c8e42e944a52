from django.urls import path
from .views import invoice_list_create, invoice_detail, invoice_mark_paid

urlpatterns = [
    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/mark-paid/', invoice_mark_paid, name='invoice-mark-paid'),
]
