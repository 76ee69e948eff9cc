from django.urls import path
from .views import product_list_create, product_detail, category_list

urlpatterns = [
    path('categories/', category_list, name='category-list'),
    path('products/', product_list_create, name='product-list-create'),
    path('products/<slug:slug>/', product_detail, name='product-detail'),
]
