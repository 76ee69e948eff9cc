from django.contrib import admin
from .models import Coupon


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'discount_type', 'discount_value', 'min_order_amount', 'used_count', 'usage_limit', 'valid_until', 'is_active']
    list_filter = ['discount_type', 'is_active']
    search_fields = ['code', 'description']
    ordering = ['-created_at']
    readonly_fields = ['used_count', 'created_at', 'updated_at']
