from rest_framework import serializers
from backend.core.utils import format_inr
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'image_url', 'display_order', 'is_active', 'product_count']

    def get_product_count(self, obj):
        return obj.products.filter(is_active=True).count()


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    category_slug = serializers.CharField(source='category.slug', read_only=True)
    price_display = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'category', 'category_name', 'category_slug', 'description',
                  'price', 'price_display', 'original_price', 'image_urls', 'sizes', 'colors', 'fabric',
                  'stock_quantity', 'is_featured', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_price_display(self, obj):
        return format_inr(obj.price)


class ProductSummarySerializer(serializers.ModelSerializer):
    """Compact product embedded in cart, wishlist and order rows"""

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'price', 'image_urls']
