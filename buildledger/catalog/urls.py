from django.urls import path
from .views import (
    product_list_create, product_paginated, product_detail,
    product_materials, product_adjust_stock,
)

urlpatterns = [
    path('products/', product_list_create, name='product-list-create'),
    path('products/paginated/', product_paginated, name='product-paginated'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/materials/', product_materials, name='product-materials'),
    path('products/<int:pk>/adjust-stock/', product_adjust_stock, name='product-adjust-stock'),
]
