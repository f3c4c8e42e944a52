from django.urls import path
from .views import (
    login, logout, me, user_list_create, user_detail, bootstrap,
    health, ready,
    audit_log_list, audit_invoice_print, audit_activity,
    display_settings, manual_controls,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', login, name='auth-login'),
    path('auth/logout/', logout, name='auth-logout'),
    path('auth/me/', me, name='auth-me'),
    path('auth/users/', user_list_create, name='auth-user-list-create'),
    path('auth/users/<int:pk>/', user_detail, name='auth-user-detail'),
    path('auth/bootstrap/', bootstrap, name='auth-bootstrap'),

    # Health endpoints
    path('health/', health, name='health'),
    path('ready/', ready, name='ready'),

    # Audit endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/invoice-print/', audit_invoice_print, name='audit-invoice-print'),
    path('audit-logs/activity/', audit_activity, name='audit-activity'),

    # Settings endpoints
    path('display-settings/', display_settings, name='display-settings'),
    path('manual-controls/', manual_controls, name='manual-controls'),
]
