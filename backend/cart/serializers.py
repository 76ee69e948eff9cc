from rest_framework import serializers
from backend.catalog.serializers import ProductSummarySerializer
from backend.core.utils import format_inr
from .models import CartItem, WishlistItem


class CartItemSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    product_id = serializers.IntegerField(read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'product_id', 'product', 'quantity', 'size', 'color', 'line_total', 'created_at', 'updated_at']


class CartAddSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    size = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)


class CartQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)


class WishlistItemSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    product_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = WishlistItem
        fields = ['id', 'product_id', 'product', 'created_at']


class WishlistProductSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()


def summary_data(summary):
    """Serializable cart summary"""
    coupon = summary['applied_coupon']
    return {
        'item_count': summary['item_count'],
        'subtotal': str(summary['subtotal']),
        'discount': str(summary['discount']),
        'total': str(summary['total']),
        'total_display': format_inr(summary['total']),
        'applied_coupon': coupon['coupon'].code if coupon and coupon.get('coupon') else None,
        'items': CartItemSerializer(summary['items'], many=True).data,
    }
