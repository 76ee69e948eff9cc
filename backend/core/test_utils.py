"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils.text import slugify
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.catalog.models import Category, Product
from backend.cart.models import CartItem, WishlistItem
from backend.coupons.models import Coupon
from backend.orders.models import Order, OrderItem
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False,
                    is_superuser=False, full_name='', phone=''):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser,
            full_name=full_name,
            phone=phone,
        )
        return user

    @staticmethod
    def create_category(name=None, description=None, is_active=True):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            slug=slugify(name),
            description=description or f'Description for {name}',
            is_active=is_active,
        )

    @staticmethod
    def create_product(name=None, category=None, price=Decimal('1000.00'), sizes=None, colors=None,
                       is_active=True, is_featured=False):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            name=name,
            slug=f'{slugify(name)}-{TestDataFactory.random_string(4).lower()}',
            category=category,
            price=Decimal(str(price)),
            image_urls=[f'https://cdn.test/{slugify(name)}.jpg'],
            sizes=sizes if sizes is not None else ['S', 'M', 'L'],
            colors=colors if colors is not None else ['Maroon', 'Gold'],
            stock_quantity=10,
            is_active=is_active,
            is_featured=is_featured,
        )

    @staticmethod
    def create_cart_item(user, product=None, quantity=1, size=None, color=None):
        """Create a test cart line"""
        if product is None:
            product = TestDataFactory.create_product()
        return CartItem.objects.create(user=user, product=product, quantity=quantity, size=size, color=color)

    @staticmethod
    def create_wishlist_item(user, product=None):
        """Create a test wishlist entry"""
        if product is None:
            product = TestDataFactory.create_product()
        return WishlistItem.objects.create(user=user, product=product)

    @staticmethod
    def create_coupon(code=None, discount_type='percentage', discount_value=Decimal('10.00'), **kwargs):
        """Create a test coupon"""
        if not code:
            code = f'SAVE{TestDataFactory.random_string(4).upper()}'
        return Coupon.objects.create(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(str(discount_value)),
            **kwargs
        )

    @staticmethod
    def create_order(user, products=None, status='pending', payment_status='pending', gateway_order_id=''):
        """Create a test order with one line per product"""
        products = products or [TestDataFactory.create_product()]
        total = sum((product.price for product in products), Decimal('0.00'))
        order = Order.objects.create(
            user=user,
            status=status,
            payment_status=payment_status,
            gateway_order_id=gateway_order_id,
            subtotal_amount=total,
            total_amount=total,
            shipping_name=user.full_name or user.username,
            shipping_email=user.email,
            shipping_address_line1='12 MG Road',
            shipping_city='Jaipur',
            shipping_state='Rajasthan',
            shipping_postal_code='302001',
            shipping_phone='9876543210',
        )
        for product in products:
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                quantity=1,
                price=product.price,
            )
        return order


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
