from django.db import models
from backend.catalog.models import Product
from backend.core.models import User


class CartItem(models.Model):
    """Cart line; one row per (user, product, size, color)"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='cart_items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1)
    size = models.CharField(max_length=50, blank=True, null=True)
    color = models.CharField(max_length=50, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} x{self.quantity}"

    @property
    def line_total(self):
        return self.product.price * self.quantity

    class Meta:
        db_table = 'cart_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['user', 'product'], name='idx_cartitem_user_product'),
        ]


class WishlistItem(models.Model):
    """Wishlist entry; at most one per (user, product)"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='wishlist_items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='wishlist_items')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} ♥ {self.product.name}"

    class Meta:
        db_table = 'wishlist_items'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='uniq_wishlist_user_product'),
        ]
