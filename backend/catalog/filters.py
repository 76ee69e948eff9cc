import django_filters
from django.db.models import Q
from .models import Product


SORT_OPTIONS = {
    'newest': '-created_at',
    'price_low': 'price',
    'price_high': '-price',
    'name': 'name',
}


class ProductFilter(django_filters.FilterSet):
    """Storefront product filter using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category__slug', lookup_expr='exact')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    featured = django_filters.BooleanFilter(field_name='is_featured')
    size = django_filters.CharFilter(method='filter_size', label='Size')
    color = django_filters.CharFilter(method='filter_color', label='Color')
    sort = django_filters.CharFilter(method='filter_sort', label='Sort')

    class Meta:
        model = Product
        fields = ['search', 'category', 'min_price', 'max_price', 'featured', 'size', 'color', 'sort']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, description, fabric or category"""
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(description__icontains=word) |
                Q(fabric__icontains=word) |
                Q(category__name__icontains=word)
            )
        return queryset

    # JSON list membership is checked in Python so it works on SQLite as well as PostgreSQL
    def filter_size(self, queryset, name, value):
        if not value:
            return queryset
        ids = [pk for pk, sizes in queryset.values_list('id', 'sizes') if value in (sizes or [])]
        return queryset.filter(id__in=ids)

    def filter_color(self, queryset, name, value):
        if not value:
            return queryset
        wanted = value.lower()
        ids = [pk for pk, colors in queryset.values_list('id', 'colors') if wanted in [c.lower() for c in (colors or [])]]
        return queryset.filter(id__in=ids)

    def filter_sort(self, queryset, name, value):
        return queryset.order_by(SORT_OPTIONS.get(value, '-created_at'), 'id')
