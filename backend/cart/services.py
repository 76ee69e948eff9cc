"""
Cart and wishlist data access.

These functions are the only place cart_items / wishlist_items rows are
written. Errors (missing rows, bad quantities) are raised to the caller.
"""
from decimal import Decimal
import logging

from django.db import transaction, IntegrityError

from .models import CartItem, WishlistItem

logger = logging.getLogger(__name__)


def _normalize_variant(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# Cart

def get_cart_items(user):
    """All cart lines for the user with their products"""
    return list(CartItem.objects.select_related('product').filter(user=user).order_by('id'))


def add_to_cart(user, product, quantity=1, size=None, color=None):
    """
    Add a product to the cart.

    An existing line with the same (product, size, color) has its quantity
    increased instead of a second line being created.
    """
    quantity = int(quantity)
    if quantity < 1:
        raise ValueError('Quantity must be at least 1')
    if not product.is_active:
        raise ValueError(f'{product.name} is no longer available')

    size = _normalize_variant(size)
    color = _normalize_variant(color)

    with transaction.atomic():
        existing = (
            CartItem.objects.select_for_update()
            .filter(user=user, product=product, size=size, color=color)
            .first()
        )
        if existing:
            existing.quantity += quantity
            existing.save(update_fields=['quantity', 'updated_at'])
            logger.info(f"Cart merge: user={user.pk}, product={product.pk}, size={size}, color={color}, quantity={existing.quantity}")
            return existing, False

        item = CartItem.objects.create(user=user, product=product, quantity=quantity, size=size, color=color)
        logger.info(f"Cart add: user={user.pk}, product={product.pk}, size={size}, color={color}, quantity={quantity}")
        return item, True


def update_cart_quantity(user, item_id, quantity):
    """Set a line's quantity; anything below 1 removes the line. Returns the item or None"""
    quantity = int(quantity)
    item = CartItem.objects.select_related('product').get(pk=item_id, user=user)
    if quantity < 1:
        item.delete()
        return None
    item.quantity = quantity
    item.save(update_fields=['quantity', 'updated_at'])
    return item


def remove_from_cart(user, item_id):
    item = CartItem.objects.select_related('product').get(pk=item_id, user=user)
    item.delete()
    return item


def clear_cart(user):
    deleted, _ = CartItem.objects.filter(user=user).delete()
    logger.info(f"Cart cleared: user={user.pk}, lines={deleted}")
    return deleted


def cart_summary(items, applied_coupon=None):
    """
    Totals for a list of cart lines.

    applied_coupon is the result of coupon validation ({'discount': ..., ...})
    or None.
    """
    item_count = sum(item.quantity for item in items)
    subtotal = sum((item.product.price * item.quantity for item in items), Decimal('0.00'))
    discount = Decimal(str(applied_coupon.get('discount', 0))) if applied_coupon else Decimal('0.00')
    total = max(Decimal('0.00'), subtotal - discount)
    return {
        'item_count': item_count,
        'subtotal': subtotal,
        'discount': discount,
        'total': total,
        'items': items,
        'applied_coupon': applied_coupon,
    }


# Wishlist

def get_wishlist_items(user):
    return list(WishlistItem.objects.select_related('product').filter(user=user))


def add_to_wishlist(user, product):
    """Add a product; adding one already present returns the existing row"""
    try:
        with transaction.atomic():
            item, created = WishlistItem.objects.get_or_create(user=user, product=product)
    except IntegrityError:
        # Lost a race with a concurrent insert of the same (user, product)
        item, created = WishlistItem.objects.get(user=user, product=product), False
    return item, created


def remove_from_wishlist(user, product_id):
    deleted, _ = WishlistItem.objects.filter(user=user, product_id=product_id).delete()
    return deleted > 0


def is_in_wishlist(user, product_id):
    return WishlistItem.objects.filter(user=user, product_id=product_id).exists()
