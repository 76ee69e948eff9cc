from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from django.shortcuts import get_object_or_404

from backend.core.utils import create_audit_log
from .models import Coupon
from .serializers import CouponSerializer, CouponValidateSerializer
from .services import validate_coupon, serialize_validation


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def coupon_validate(request):
    """Validate a coupon code against an order amount"""
    serializer = CouponValidateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    result = validate_coupon(serializer.validated_data['code'], serializer.validated_data['order_amount'])
    if result['is_valid']:
        create_audit_log(
            request=request,
            action='coupon_apply',
            model_name='Coupon',
            object_id=str(result['coupon'].id),
            object_name=result['coupon'].code,
            changes={
                'order_amount': str(serializer.validated_data['order_amount']),
                'discount': str(result['discount']),
            }
        )
    return Response(serialize_validation(result))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def coupon_list_create(request):
    """List all coupons or create a new coupon"""
    if request.method == 'GET':
        return Response(CouponSerializer(Coupon.objects.all(), many=True).data)
    serializer = CouponSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def coupon_detail(request, pk):
    """Retrieve, update or delete a coupon"""
    coupon = get_object_or_404(Coupon, pk=pk)

    if request.method == 'GET':
        return Response(CouponSerializer(coupon).data)
    elif request.method == 'PATCH':
        serializer = CouponSerializer(coupon, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        coupon.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
