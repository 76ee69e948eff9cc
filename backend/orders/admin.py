from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'price', 'size', 'color']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['short_id', 'user', 'status', 'payment_status', 'total_amount', 'created_at']
    list_filter = ['status', 'payment_status', 'payment_method', 'created_at']
    search_fields = ['id', 'user__username', 'user__email', 'shipping_name', 'shipping_phone', 'gateway_order_id']
    ordering = ['-created_at']
    readonly_fields = ['id', 'gateway_order_id', 'gateway_payment_id', 'created_at', 'updated_at']
    inlines = [OrderItemInline]
