from django.urls import path
from .views import (
    checkout_state, checkout_shipping, checkout_continue, checkout_back,
    checkout_payment, checkout_payment_callback, checkout_payment_dismiss,
    order_list, order_detail, order_sync_payment, order_status_update,
)

urlpatterns = [
    # Checkout endpoints
    path('checkout/', checkout_state, name='checkout-state'),
    path('checkout/shipping/', checkout_shipping, name='checkout-shipping'),
    path('checkout/continue/', checkout_continue, name='checkout-continue'),
    path('checkout/back/', checkout_back, name='checkout-back'),
    path('checkout/payment/', checkout_payment, name='checkout-payment'),
    path('checkout/payment/callback/', checkout_payment_callback, name='checkout-payment-callback'),
    path('checkout/payment/dismiss/', checkout_payment_dismiss, name='checkout-payment-dismiss'),

    # Order endpoints
    path('orders/', order_list, name='order-list'),
    path('orders/<uuid:pk>/', order_detail, name='order-detail'),
    path('orders/<uuid:pk>/sync-payment/', order_sync_payment, name='order-sync-payment'),
    path('orders/<uuid:pk>/status/', order_status_update, name='order-status-update'),
]
