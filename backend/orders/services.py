"""Order creation and status updates"""
from decimal import Decimal
import logging

from django.db import transaction

from .models import Order, OrderItem

logger = logging.getLogger(__name__)

SHIPPING_FIELDS = (
    'address_line1', 'address_line2', 'city', 'state', 'postal_code', 'country', 'phone',
)


def get_user_orders(user):
    return Order.objects.filter(user=user).prefetch_related('items')


@transaction.atomic
def create_order(user, cart_items, shipping, summary, payment_method='razorpay'):
    """
    Create a pending order with one OrderItem per cart line.

    summary is a cart summary (subtotal, discount, total, applied_coupon).
    Shipping and tax are not charged.
    """
    if not cart_items:
        raise ValueError('Cannot create an order from an empty cart')

    shipping_fields = {f'shipping_{field}': shipping.get(field) or '' for field in SHIPPING_FIELDS}
    shipping_fields['shipping_country'] = shipping_fields['shipping_country'] or 'India'

    coupon_result = summary.get('applied_coupon')
    coupon = coupon_result.get('coupon') if coupon_result else None

    order = Order.objects.create(
        user=user,
        status='pending',
        payment_status='pending',
        payment_method=payment_method,
        subtotal_amount=summary['subtotal'],
        discount_amount=summary['discount'],
        shipping_amount=Decimal('0.00'),
        tax_amount=Decimal('0.00'),
        total_amount=summary['total'],
        coupon=coupon,
        shipping_name=shipping.get('full_name', ''),
        shipping_email=shipping.get('email', ''),
        notes=f"Customer: {shipping.get('full_name', '')}, Email: {shipping.get('email', '')}",
        **shipping_fields,
    )
    OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            product=item.product,
            product_name=item.product.name,
            quantity=item.quantity,
            price=item.product.price,
            size=item.size,
            color=item.color,
        )
        for item in cart_items
    ])
    logger.info(f"Order created: {order.id} user={user.pk} total={order.total_amount} lines={len(cart_items)}")
    return order


def update_order_status(order, status, payment_status=None):
    """Set order status (and payment status when given)"""
    valid_statuses = dict(Order.STATUS_CHOICES)
    if status not in valid_statuses:
        raise ValueError(f'Invalid order status: {status}')
    order.status = status
    update_fields = ['status', 'updated_at']
    if payment_status is not None:
        if payment_status not in dict(Order.PAYMENT_STATUS_CHOICES):
            raise ValueError(f'Invalid payment status: {payment_status}')
        order.payment_status = payment_status
        update_fields.append('payment_status')
    order.save(update_fields=update_fields)
    logger.info(f"Order {order.id} status -> {order.status}/{order.payment_status}")
    return order


def order_email_data(order):
    """Payload for the order confirmation email"""
    return {
        'order_id': str(order.id),
        'customer': {
            'name': order.shipping_name,
            'email': order.shipping_email or order.user.email,
        },
        'order': {
            'total_amount': order.total_amount,
            'payment_method': 'Razorpay' if order.payment_method == 'razorpay' else order.payment_method,
            'shipping_name': order.shipping_name,
            'shipping_address': order.shipping_address_line1,
            'shipping_city': order.shipping_city,
            'shipping_state': order.shipping_state,
            'shipping_pincode': order.shipping_postal_code,
            'shipping_country': order.shipping_country,
            'shipping_phone': order.shipping_phone,
        },
        'items': [
            {
                'name': item.product_name or 'Product',
                'color': item.color,
                'size': item.size,
                'quantity': item.quantity,
                'price': item.price,
            }
            for item in order.items.all()
        ],
    }
