from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
import logging

from backend.catalog.models import Product
from backend.core.session import AuthSession
from backend.core.utils import create_audit_log
from backend.coupons.services import validate_coupon, serialize_validation
from .containers import CartContainer, WishlistContainer
from .models import CartItem
from .serializers import (
    CartItemSerializer, CartAddSerializer, CartQuantitySerializer,
    WishlistItemSerializer, WishlistProductSerializer, summary_data,
)

logger = logging.getLogger(__name__)


def _cart_for(request):
    return CartContainer(AuthSession(request.user))


def _wishlist_for(request):
    return WishlistContainer(AuthSession(request.user))


def _error(message, exc, status_code=status.HTTP_400_BAD_REQUEST):
    return Response({'error': message, 'detail': str(exc)}, status=status_code)


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_list_add_clear(request):
    """List cart lines, add a product (merging identical lines) or clear the cart"""
    cart = _cart_for(request)

    if request.method == 'GET':
        if cart.error:
            return Response({'error': cart.error}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(CartItemSerializer(cart.items, many=True).data)

    elif request.method == 'POST':
        serializer = CartAddSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        product = get_object_or_404(Product, pk=data['product_id'])
        try:
            cart.add_to_cart(product, data['quantity'], data.get('size'), data.get('color'))
        except ValueError as e:
            return _error(cart.error or 'Failed to add item to cart', e)

        create_audit_log(
            request=request,
            action='cart_add',
            model_name='CartItem',
            object_id=str(product.id),
            object_name=product.name,
            object_reference=f"User #{request.user.pk}",
            changes={
                'product_id': product.id,
                'quantity_added': data['quantity'],
                'size': data.get('size'),
                'color': data.get('color'),
            }
        )
        return Response(CartItemSerializer(cart.items, many=True).data, status=status.HTTP_201_CREATED)

    else:  # DELETE
        deleted = cart.clear_cart()
        create_audit_log(
            request=request,
            action='cart_clear',
            model_name='CartItem',
            object_id=str(request.user.pk),
            object_reference=f"User #{request.user.pk}",
            changes={'lines_removed': deleted}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_item_detail(request, item_id):
    """Change a line's quantity (0 removes it) or remove the line"""
    cart = _cart_for(request)
    try:
        if request.method == 'PATCH':
            serializer = CartQuantitySerializer(data=request.data)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            cart.update_quantity(item_id, serializer.validated_data['quantity'])
            action = 'cart_update'
            changes = {'quantity': serializer.validated_data['quantity']}
        else:
            cart.remove_from_cart(item_id)
            action = 'cart_remove'
            changes = {}
    except CartItem.DoesNotExist:
        return Response(
            {'error': 'Cart item not found', 'detail': f'Cart item with id {item_id} does not exist'},
            status=status.HTTP_404_NOT_FOUND
        )

    create_audit_log(
        request=request,
        action=action,
        model_name='CartItem',
        object_id=str(item_id),
        object_reference=f"User #{request.user.pk}",
        changes=changes
    )
    return Response(CartItemSerializer(cart.items, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cart_summary(request):
    """Cart totals, optionally with a coupon code applied (?coupon=CODE)"""
    cart = _cart_for(request)
    code = request.query_params.get('coupon', '').strip()
    coupon_status = None
    if code:
        result = validate_coupon(code, cart.summary['subtotal'])
        coupon_status = serialize_validation(result)
        if result['is_valid']:
            cart.apply_coupon(result)

    data = summary_data(cart.summary)
    data['coupon_status'] = coupon_status
    return Response(data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def wishlist_list_add(request):
    """List wishlist items or add a product"""
    wishlist = _wishlist_for(request)

    if request.method == 'GET':
        if wishlist.error:
            return Response({'error': wishlist.error}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        summary = wishlist.summary
        return Response({
            'item_count': summary['item_count'],
            'total_value': str(summary['total_value']),
            'items': WishlistItemSerializer(summary['items'], many=True).data,
        })

    serializer = WishlistProductSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    product = get_object_or_404(Product, pk=serializer.validated_data['product_id'])
    wishlist.add_to_wishlist(product)
    create_audit_log(
        request=request,
        action='wishlist_add',
        model_name='WishlistItem',
        object_id=str(product.id),
        object_name=product.name,
        object_reference=f"User #{request.user.pk}",
    )
    return Response(WishlistItemSerializer(wishlist.items, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_remove(request, product_id):
    """Remove a product from the wishlist"""
    wishlist = _wishlist_for(request)
    if not wishlist.remove_from_wishlist(product_id):
        return Response({'error': 'Product is not in your wishlist'}, status=status.HTTP_404_NOT_FOUND)
    create_audit_log(
        request=request,
        action='wishlist_remove',
        model_name='WishlistItem',
        object_id=str(product_id),
        object_reference=f"User #{request.user.pk}",
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def wishlist_toggle(request):
    """Add the product if absent, remove it if present"""
    serializer = WishlistProductSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    product = get_object_or_404(Product, pk=serializer.validated_data['product_id'])

    wishlist = _wishlist_for(request)
    in_wishlist = wishlist.toggle_wishlist(product)
    create_audit_log(
        request=request,
        action='wishlist_add' if in_wishlist else 'wishlist_remove',
        model_name='WishlistItem',
        object_id=str(product.id),
        object_name=product.name,
        object_reference=f"User #{request.user.pk}",
    )
    return Response({
        'product_id': product.id,
        'in_wishlist': in_wishlist,
        'item_count': len(wishlist.items),
    })
