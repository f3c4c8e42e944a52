from django.urls import path
from .views import (
    driver_list_create, driver_detail,
    truck_list_create, truck_detail, truck_repairs,
    tool_list_create, tool_detail,
    diesel_logs, diesel_purchases,
)

urlpatterns = [
    path('drivers/', driver_list_create, name='driver-list-create'),
    path('drivers/<int:pk>/', driver_detail, name='driver-detail'),
    path('trucks/', truck_list_create, name='truck-list-create'),
    path('trucks/<int:pk>/', truck_detail, name='truck-detail'),
    path('trucks/<int:pk>/repairs/', truck_repairs, name='truck-repairs'),
    path('tools/', tool_list_create, name='tool-list-create'),
    path('tools/<int:pk>/', tool_detail, name='tool-detail'),
    path('diesel/logs/', diesel_logs, name='diesel-logs'),
    path('diesel/purchases/', diesel_purchases, name='diesel-purchases'),
]
