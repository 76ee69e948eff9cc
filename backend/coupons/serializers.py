from rest_framework import serializers
from .models import Coupon


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = ['id', 'code', 'description', 'discount_type', 'discount_value', 'min_order_amount',
                  'max_discount_amount', 'usage_limit', 'used_count', 'valid_from', 'valid_until',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['used_count', 'created_at', 'updated_at']

    def validate_discount_value(self, value):
        if value <= 0:
            raise serializers.ValidationError('Discount value must be positive')
        return value

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', 'percentage'))
        discount_value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if discount_type == 'percentage' and discount_value is not None and discount_value > 100:
            raise serializers.ValidationError({'discount_value': 'Percentage discount cannot exceed 100'})
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    order_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
