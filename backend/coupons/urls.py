from django.urls import path
from .views import coupon_validate, coupon_list_create, coupon_detail

urlpatterns = [
    path('coupons/', coupon_list_create, name='coupon-list-create'),
    path('coupons/validate/', coupon_validate, name='coupon-validate'),
    path('coupons/<int:pk>/', coupon_detail, name='coupon-detail'),
]
