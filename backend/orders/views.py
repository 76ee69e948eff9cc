from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from django.shortcuts import get_object_or_404
import logging

from backend.cart.containers import CartContainer
from backend.core.session import AuthSession
from backend.core.utils import create_audit_log
from backend.coupons.services import validate_coupon, serialize_validation
from backend.persistence.store import StatePersistence
from .checkout import CheckoutController, CheckoutError, CheckoutValidationError
from .emails import send_order_confirmation_email, send_order_status_update_email
from .models import Order
from .payments import PaymentError, PaymentVerificationError, get_payment_adapter
from .serializers import (
    OrderSerializer, ShippingUpdateSerializer, PaymentCallbackSerializer, OrderStatusSerializer,
)
from .services import get_user_orders, update_order_status, order_email_data

logger = logging.getLogger(__name__)


def _checkout_for(request):
    """Checkout controller for the requesting user, restored from saved state"""
    cart = CartContainer(AuthSession(request.user))
    controller = CheckoutController(
        user=request.user,
        store=StatePersistence.for_request(request),
        cart=cart,
        payments=get_payment_adapter(),
        notifier=send_order_confirmation_email,
    )
    return controller.load()


def _checkout_response(controller, status_code=status.HTTP_200_OK, **extra):
    summary = controller.cart.summary
    data = controller.state()
    data.update({
        'redirect': controller.check_redirect(),
        'cart': {
            'item_count': summary['item_count'],
            'subtotal': str(summary['subtotal']),
            'discount': str(summary['discount']),
            'total': str(summary['total']),
        },
    })
    data.update(extra)
    return Response(data, status=status_code)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def checkout_state(request):
    """Current checkout step, shipping form and where to redirect, if anywhere"""
    return _checkout_response(_checkout_for(request))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def checkout_shipping(request):
    """Update shipping fields; the form is saved as it changes"""
    serializer = ShippingUpdateSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    controller = _checkout_for(request)
    controller.update_shipping(serializer.validated_data)
    return _checkout_response(controller)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_continue(request):
    """Validate shipping details and move to the payment step"""
    controller = _checkout_for(request)
    try:
        controller.continue_to_payment()
    except CheckoutValidationError as e:
        return Response({
            'error': 'Missing Information',
            'detail': str(e),
            'missing_fields': e.missing_fields,
            'step': int(controller.step),
        }, status=status.HTTP_400_BAD_REQUEST)
    return _checkout_response(controller)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_back(request):
    """Return from the payment step to shipping"""
    controller = _checkout_for(request)
    controller.back_to_shipping()
    return _checkout_response(controller)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_payment(request):
    """
    Create the pending order and a gateway order.

    Returns the options the browser passes to the hosted checkout modal.
    An optional coupon code is applied to the cart total first.
    """
    controller = _checkout_for(request)

    coupon_code = (request.data.get('coupon') or '').strip()
    if coupon_code:
        result = validate_coupon(coupon_code, controller.cart.summary['subtotal'])
        if not result['is_valid']:
            return Response({
                'error': 'Invalid coupon',
                'detail': result['message'],
                'coupon_status': serialize_validation(result),
            }, status=status.HTTP_400_BAD_REQUEST)
        controller.cart.apply_coupon(result)

    try:
        payment_request = controller.start_payment()
    except CheckoutError as e:
        return Response({'error': 'Cannot start payment', 'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PaymentError as e:
        return Response({'error': 'Payment Failed', 'detail': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    order = controller.order
    create_audit_log(
        request=request,
        action='order_create',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.short_id}",
        object_reference=order.gateway_order_id,
        changes={
            'total_amount': str(order.total_amount),
            'items_count': order.items.count(),
            'coupon': order.coupon.code if order.coupon_id else None,
        }
    )
    return Response({
        'order': OrderSerializer(order).data,
        'checkout_options': payment_request.options,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_payment_callback(request):
    """Success callback from the payment modal"""
    serializer = PaymentCallbackSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    controller = _checkout_for(request)
    try:
        order = controller.confirm_payment(serializer.validated_data)
    except CheckoutError as e:
        return Response({'error': 'Order not found', 'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except PaymentVerificationError as e:
        return Response({'error': 'Payment Failed', 'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PaymentError as e:
        return Response({'error': 'Payment Failed', 'detail': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    create_audit_log(
        request=request,
        action='order_complete',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.short_id}",
        object_reference=order.gateway_payment_id,
        changes={
            'status': order.status,
            'payment_status': order.payment_status,
            'total_amount': str(order.total_amount),
        }
    )
    return _checkout_response(controller, order=OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_payment_dismiss(request):
    """The customer closed the payment modal; checkout stays on the payment step"""
    controller = _checkout_for(request)
    try:
        message = controller.cancel_payment(request.data.get('razorpay_order_id'))
    except CheckoutError as e:
        return Response({'error': 'Order not found', 'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
    return _checkout_response(controller, detail=message)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_list(request):
    """Orders for the current user (all orders for staff with ?all=true)"""
    if request.user.is_staff and request.query_params.get('all') == 'true':
        queryset = Order.objects.all().prefetch_related('items')
    else:
        queryset = get_user_orders(request.user)

    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)

    return Response(OrderSerializer(queryset.select_related('coupon'), many=True).data)


def _get_order(request, pk):
    queryset = Order.objects.prefetch_related('items').select_related('coupon')
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)
    return get_object_or_404(queryset, pk=pk)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    return Response(OrderSerializer(_get_order(request, pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_sync_payment(request, pk):
    """Refresh an order's status from the payment gateway"""
    order = _get_order(request, pk)
    try:
        result = get_payment_adapter().check_payment_status(order)
    except PaymentError as e:
        return Response({'error': 'Payment status check failed', 'detail': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    create_audit_log(
        request=request,
        action='payment_sync',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.short_id}",
        object_reference=order.gateway_order_id,
        changes=result
    )
    return Response({**result, 'order': OrderSerializer(order).data})


@api_view(['PATCH'])
@permission_classes([IsAdminUser])
def order_status_update(request, pk):
    """Staff: move an order through fulfilment and notify the customer"""
    order = get_object_or_404(Order.objects.prefetch_related('items'), pk=pk)
    serializer = OrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    data = serializer.validated_data
    update_order_status(order, data['status'], data.get('payment_status'))

    email_result = None
    if data['notify'] and old_status != order.status:
        email_result = send_order_status_update_email(order_email_data(order), order.status)

    create_audit_log(
        request=request,
        action='update',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.short_id}",
        changes={'status': {'old': old_status, 'new': order.status}}
    )
    return Response({'order': OrderSerializer(order).data, 'email': email_result})
