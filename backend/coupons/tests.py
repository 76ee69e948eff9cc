"""
Test suite for coupons
Tests: validation rules, discount calculation, redemption, API permissions
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.coupons.models import Coupon
from backend.coupons.services import calculate_discount, validate_coupon, redeem_coupon


class CouponValidationTests(TestCase):
    """Test validate_coupon and calculate_discount"""

    def test_code_is_upper_cased(self):
        coupon = TestDataFactory.create_coupon(code=' diwali20 ')
        self.assertEqual(coupon.code, 'DIWALI20')

    def test_percentage_discount(self):
        coupon = TestDataFactory.create_coupon(code='TEN', discount_value=Decimal('10'))
        result = validate_coupon('ten', Decimal('12999'))
        self.assertTrue(result['is_valid'])
        self.assertEqual(result['coupon'], coupon)
        self.assertEqual(result['discount'], Decimal('1299.90'))
        self.assertEqual(result['message'], 'Coupon TEN applied')

    def test_percentage_discount_capped(self):
        coupon = TestDataFactory.create_coupon(
            discount_value=Decimal('50'), max_discount_amount=Decimal('1000.00')
        )
        self.assertEqual(calculate_discount(coupon, Decimal('12999')), Decimal('1000.00'))

    def test_fixed_discount_never_exceeds_amount(self):
        coupon = TestDataFactory.create_coupon(discount_type='fixed', discount_value=Decimal('500'))
        self.assertEqual(calculate_discount(coupon, Decimal('2000')), Decimal('500'))
        self.assertEqual(calculate_discount(coupon, Decimal('300')), Decimal('300'))

    def test_empty_code(self):
        result = validate_coupon('  ', Decimal('100'))
        self.assertFalse(result['is_valid'])
        self.assertEqual(result['message'], 'Please enter a coupon code')

    def test_unknown_and_inactive(self):
        TestDataFactory.create_coupon(code='OFF', is_active=False)
        self.assertEqual(validate_coupon('NOPE', 100)['message'], 'Invalid coupon code')
        self.assertEqual(validate_coupon('OFF', 100)['message'], 'Invalid coupon code')

    def test_not_yet_valid_and_expired(self):
        now = timezone.now()
        TestDataFactory.create_coupon(code='SOON', valid_from=now + timedelta(days=1))
        TestDataFactory.create_coupon(code='OLD', valid_until=now - timedelta(days=1))
        self.assertEqual(validate_coupon('SOON', 100)['message'], 'This coupon is not active yet')
        self.assertEqual(validate_coupon('OLD', 100)['message'], 'This coupon has expired')

    def test_usage_limit(self):
        coupon = TestDataFactory.create_coupon(code='ONCE', usage_limit=1)
        self.assertTrue(validate_coupon('ONCE', 100)['is_valid'])
        redeem_coupon(coupon)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        result = validate_coupon('ONCE', 100)
        self.assertFalse(result['is_valid'])
        self.assertEqual(result['message'], 'This coupon has reached its usage limit')

    def test_minimum_order_amount(self):
        TestDataFactory.create_coupon(code='BIG', min_order_amount=Decimal('5000'))
        result = validate_coupon('BIG', Decimal('4999'))
        self.assertFalse(result['is_valid'])
        self.assertEqual(result['discount'], Decimal('0.00'))
        self.assertEqual(result['message'], 'Minimum order amount of ₹5000 required')


class CouponAPITests(TestCase):
    """Test coupon endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_validate_endpoint(self):
        TestDataFactory.create_coupon(code='FLAT500', discount_type='fixed', discount_value=Decimal('500'))
        response = self.client.post(
            '/api/v1/coupons/validate/', {'code': 'flat500', 'order_amount': '12999.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_valid'])
        self.assertEqual(response.data['code'], 'FLAT500')
        self.assertEqual(Decimal(response.data['discount']), Decimal('500'))

    def test_validate_invalid_code(self):
        response = self.client.post(
            '/api/v1/coupons/validate/', {'code': 'NOPE', 'order_amount': '100'}, format='json'
        )
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(response.data['message'], 'Invalid coupon code')

    def test_customers_cannot_manage_coupons(self):
        response = self.client.get('/api/v1/coupons/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_create_and_update(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/coupons/', {
            'code': 'wedding15',
            'discount_type': 'percentage',
            'discount_value': '15.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        coupon = Coupon.objects.get(code='WEDDING15')

        response = self.client.patch(f'/api/v1/coupons/{coupon.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        coupon.refresh_from_db()
        self.assertFalse(coupon.is_active)

    def test_percentage_over_hundred_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/coupons/', {
            'code': 'TOOMUCH',
            'discount_type': 'percentage',
            'discount_value': '120.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
