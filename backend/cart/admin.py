from django.contrib import admin
from .models import CartItem, WishlistItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'quantity', 'size', 'color', 'updated_at']
    list_filter = ['created_at']
    search_fields = ['user__username', 'user__email', 'product__name']
    ordering = ['-updated_at']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(WishlistItem)
class WishlistItemAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'created_at']
    search_fields = ['user__username', 'user__email', 'product__name']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
