from django.urls import path
from .views import debris_list_create, debris_detail, debris_mark_paid, debris_mark_unpaid

urlpatterns = [
    # Debris endpoints
    path('debris/', debris_list_create, name='debris-list-create'),
    path('debris/<int:pk>/', debris_detail, name='debris-detail'),
    path('debris/<int:pk>/mark-paid/', debris_mark_paid, name='debris-mark-paid'),
    path('debris/<int:pk>/mark-unpaid/', debris_mark_unpaid, name='debris-mark-unpaid'),
]
