from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories (Sarees, Lehengas, Suits, Kurtis...)"""
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    display_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['display_order', 'name']


class Product(models.Model):
    """Storefront product"""
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    original_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    image_urls = models.JSONField(default=list, blank=True)
    sizes = models.JSONField(default=list, blank=True)  # e.g. ["S", "M", "L", "Free Size"]
    colors = models.JSONField(default=list, blank=True)  # e.g. ["Maroon", "Gold"]
    fabric = models.CharField(max_length=100, blank=True)
    stock_quantity = models.IntegerField(default=0)
    is_featured = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def primary_image(self):
        return self.image_urls[0] if self.image_urls else ''

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
