import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAdminUser
from django.shortcuts import get_object_or_404

from backend.core.utils import create_audit_log
from backend.persistence.store import StatePersistence
from .models import CustomDesignRequest
from .serializers import CustomDesignRequestSerializer, CustomDesignStatusSerializer

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def custom_design_list_create(request):
    """
    GET: the signed-in customer's design requests (every request for staff with ?all=true)
    POST: submit a design request; guests may submit with just a name and email
    """
    if request.method == 'GET':
        if not request.user.is_authenticated:
            return Response({'error': 'Authentication required'}, status=status.HTTP_401_UNAUTHORIZED)
        queryset = CustomDesignRequest.objects.all()
        if not (request.user.is_staff and request.query_params.get('all') == 'true'):
            queryset = queryset.filter(user=request.user)
        return Response(CustomDesignRequestSerializer(queryset, many=True).data)

    store = StatePersistence.for_request(request)
    serializer = CustomDesignRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    extra = {}
    if request.user.is_authenticated:
        extra['user'] = request.user
    if not serializer.validated_data.get('reference_images'):
        saved_image = store.load_custom_design_image()
        if saved_image:
            extra['reference_images'] = [saved_image]

    design = serializer.save(**extra)
    store.clear_custom_design_form()
    logger.info(f"Custom design request {design.id} submitted by {design.email}")

    create_audit_log(
        request=request,
        action='create',
        model_name='CustomDesignRequest',
        object_id=str(design.id),
        object_name=design.full_name,
        object_reference=design.design_type,
        changes={'occasion': design.occasion, 'budget': str(design.budget) if design.budget is not None else None}
    )
    return Response(CustomDesignRequestSerializer(design).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAdminUser])
def custom_design_status_update(request, pk):
    """Staff: move a design request through review and production"""
    design = get_object_or_404(CustomDesignRequest, pk=pk)
    serializer = CustomDesignStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = design.status
    design.status = serializer.validated_data['status']
    design.save(update_fields=['status', 'updated_at'])

    create_audit_log(
        request=request,
        action='update',
        model_name='CustomDesignRequest',
        object_id=str(design.id),
        object_name=design.full_name,
        changes={'status': {'old': old_status, 'new': design.status}}
    )
    return Response(CustomDesignRequestSerializer(design).data)
