"""Coupon validation and discount calculation"""
from decimal import Decimal, ROUND_HALF_UP
import logging

from django.db.models import F
from django.utils import timezone

from .models import Coupon

logger = logging.getLogger(__name__)


def calculate_discount(coupon, order_amount):
    """Discount for an order amount, never more than the amount itself"""
    order_amount = Decimal(str(order_amount))
    if coupon.discount_type == 'percentage':
        discount = (order_amount * coupon.discount_value / Decimal('100')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        if coupon.max_discount_amount is not None:
            discount = min(discount, coupon.max_discount_amount)
    else:
        discount = coupon.discount_value
    return min(discount, order_amount)


def _invalid(message):
    return {'is_valid': False, 'coupon': None, 'discount': Decimal('0.00'), 'message': message}


def validate_coupon(code, order_amount):
    """
    Check a coupon code against an order amount.

    Returns {'is_valid', 'coupon', 'discount', 'message'}; an invalid coupon
    carries a zero discount and the reason in 'message'.
    """
    code = (code or '').strip().upper()
    if not code:
        return _invalid('Please enter a coupon code')

    coupon = Coupon.objects.filter(code=code).first()
    if coupon is None or not coupon.is_active:
        return _invalid('Invalid coupon code')

    now = timezone.now()
    if coupon.valid_from and coupon.valid_from > now:
        return _invalid('This coupon is not active yet')
    if coupon.valid_until and coupon.valid_until <= now:
        return _invalid('This coupon has expired')
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return _invalid('This coupon has reached its usage limit')

    order_amount = Decimal(str(order_amount))
    if order_amount < coupon.min_order_amount:
        return _invalid(f'Minimum order amount of ₹{coupon.min_order_amount:.0f} required')

    discount = calculate_discount(coupon, order_amount)
    return {
        'is_valid': True,
        'coupon': coupon,
        'discount': discount,
        'message': f'Coupon {coupon.code} applied',
    }


def redeem_coupon(coupon):
    """Count one use of a coupon"""
    Coupon.objects.filter(pk=coupon.pk).update(used_count=F('used_count') + 1)
    logger.info(f"Coupon redeemed: {coupon.code}")


def serialize_validation(result):
    """JSON-friendly form of a validate_coupon result"""
    coupon = result.get('coupon')
    return {
        'is_valid': result['is_valid'],
        'code': coupon.code if coupon else None,
        'coupon_id': coupon.id if coupon else None,
        'discount': str(result['discount']),
        'message': result['message'],
    }
