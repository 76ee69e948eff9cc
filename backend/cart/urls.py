from django.urls import path
from .views import (
    cart_list_add_clear, cart_item_detail, cart_summary,
    wishlist_list_add, wishlist_remove, wishlist_toggle,
)

urlpatterns = [
    # Cart endpoints
    path('cart/', cart_list_add_clear, name='cart-list-add-clear'),
    path('cart/summary/', cart_summary, name='cart-summary'),
    path('cart/items/<int:item_id>/', cart_item_detail, name='cart-item-detail'),

    # Wishlist endpoints
    path('wishlist/', wishlist_list_add, name='wishlist-list-add'),
    path('wishlist/toggle/', wishlist_toggle, name='wishlist-toggle'),
    path('wishlist/<int:product_id>/', wishlist_remove, name='wishlist-remove'),
]
