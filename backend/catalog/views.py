from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAdminUser
from django.shortcuts import get_object_or_404
import logging

from backend.core.cache_utils import (
    get_cached_products_list,
    cache_products_list,
    cached_query,
    CATEGORIES_CACHE_TTL,
    CATEGORIES_PREFIX,
)
from backend.persistence.store import StatePersistence, owner_key_for_request
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer

logger = logging.getLogger(__name__)

FILTER_PARAMS = ['search', 'category', 'min_price', 'max_price', 'featured', 'size', 'color', 'sort']
DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100


@cached_query(cache_ttl=CATEGORIES_CACHE_TTL, key_prefix=CATEGORIES_PREFIX)
def get_active_categories():
    categories = Category.objects.filter(is_active=True)
    return CategorySerializer(categories, many=True).data


def _query_filters(request):
    """Query filters, falling back to the visitor's saved sort/filter for the category"""
    filters = {name: request.query_params.get(name, '') for name in FILTER_PARAMS}

    category = filters.get('category')
    if category and owner_key_for_request(request):
        saved = StatePersistence.for_request(request).load_sort_filter_state(category) or {}
        for name in ('sort', 'min_price', 'max_price', 'size', 'color'):
            if not filters[name] and saved.get(name) not in (None, ''):
                filters[name] = str(saved[name])
    return filters


def _page_params(request):
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max(int(request.query_params.get('limit', DEFAULT_PAGE_SIZE)), 1), MAX_PAGE_SIZE)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    return page, limit


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def product_list_create(request):
    """List active products (cached) or create a product (staff only)"""
    if request.method == 'POST':
        if not IsAdminUser().has_permission(request, None):
            return Response({'error': 'Permission denied', 'detail': 'Only staff can create products'},
                            status=status.HTTP_403_FORBIDDEN)
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    filters = _query_filters(request)
    page, limit = _page_params(request)

    try:
        cached_data, cache_key = get_cached_products_list({**filters, 'page': page, 'limit': limit})
        if cached_data:
            response = Response(cached_data)
            response['X-Cache'] = 'HIT'
            return response
    except Exception as e:
        logger.warning(f"Cache unavailable, proceeding without cache: {e}")
        cache_key = None

    queryset = Product.objects.select_related('category').filter(is_active=True)
    product_filter = ProductFilter({k: v for k, v in filters.items() if v}, queryset=queryset)
    if not product_filter.is_valid():
        return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = product_filter.qs
    if not filters.get('sort'):
        queryset = queryset.order_by('-created_at', 'id')

    total = queryset.count()
    offset = (page - 1) * limit
    data = {
        'count': total,
        'page': page,
        'limit': limit,
        'results': ProductSerializer(queryset[offset:offset + limit], many=True).data,
    }

    if cache_key:
        cache_products_list(cache_key, data)
    response = Response(data)
    response['X-Cache'] = 'MISS'
    return response


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
def product_detail(request, slug):
    """Retrieve a product; staff may update or deactivate it"""
    product = get_object_or_404(Product.objects.select_related('category'), slug=slug)

    if request.method == 'GET':
        if not product.is_active and not IsAdminUser().has_permission(request, None):
            return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(product).data)

    if not IsAdminUser().has_permission(request, None):
        return Response({'error': 'Permission denied', 'detail': 'Only staff can modify products'},
                        status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        serializer = ProductSerializer(product, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        # Soft delete keeps order history intact
        product.is_active = False
        product.save(update_fields=['is_active', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([AllowAny])
def category_list(request):
    """Active categories with product counts"""
    return Response(get_active_categories())
