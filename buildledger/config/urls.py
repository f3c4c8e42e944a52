"""
URL configuration for the buildledger project.

Every app mounts its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "BuildLedger Admin Panel"
admin.site.site_title = "BuildLedger Admin Portal"
admin.site.index_title = "Welcome to BuildLedger Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('buildledger.core.urls')),
    path('api/v1/', include('buildledger.catalog.urls')),
    path('api/v1/', include('buildledger.parties.urls')),
    path('api/v1/', include('buildledger.fleet.urls')),
    path('api/v1/', include('buildledger.payroll.urls')),
    path('api/v1/', include('buildledger.receipts.urls')),
    path('api/v1/', include('buildledger.inventory.urls')),
    path('api/v1/', include('buildledger.payments.urls')),
    path('api/v1/', include('buildledger.invoices.urls')),
    path('api/v1/', include('buildledger.debris.urls')),
    path('api/v1/', include('buildledger.cash.urls')),
    path('api/v1/', include('buildledger.reports.urls')),
]
