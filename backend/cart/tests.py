"""
Test suite for cart and wishlist
Tests: line merging, quantity updates, containers following the auth session, wishlist toggle, API
"""
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from rest_framework import status

from backend.core.session import AuthSession
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.models import AuditLog
from backend.cart import services
from backend.cart.containers import CartContainer, WishlistContainer, NotAuthenticated
from backend.cart.models import CartItem, WishlistItem


class CartServiceTests(TestCase):
    """Test cart data access"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('2499.00'))

    def test_same_line_twice_merges_quantity(self):
        """Test adding the same (product, size, color) twice gives one line with summed quantity"""
        services.add_to_cart(self.user, self.product, 1, 'M', 'Maroon')
        item, created = services.add_to_cart(self.user, self.product, 2, 'M', 'Maroon')

        self.assertFalse(created)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)
        self.assertEqual(item.quantity, 3)

    def test_different_variant_is_separate_line(self):
        services.add_to_cart(self.user, self.product, 1, 'M', 'Maroon')
        services.add_to_cart(self.user, self.product, 1, 'L', 'Maroon')
        services.add_to_cart(self.user, self.product, 1, 'M', 'Gold')
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 3)

    def test_blank_variant_matches_missing_variant(self):
        """Test '' and None are the same size/colour"""
        services.add_to_cart(self.user, self.product, 1, '', None)
        services.add_to_cart(self.user, self.product, 1, None, '  ')
        items = services.get_cart_items(self.user)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 2)
        self.assertIsNone(items[0].size)

    def test_carts_are_per_user(self):
        other = TestDataFactory.create_user()
        services.add_to_cart(self.user, self.product)
        services.add_to_cart(other, self.product)
        self.assertEqual(len(services.get_cart_items(self.user)), 1)
        self.assertEqual(len(services.get_cart_items(other)), 1)

    def test_invalid_quantity_rejected(self):
        with self.assertRaises(ValueError):
            services.add_to_cart(self.user, self.product, 0)

    def test_inactive_product_rejected(self):
        product = TestDataFactory.create_product(is_active=False)
        with self.assertRaises(ValueError):
            services.add_to_cart(self.user, product)

    def test_update_quantity_to_zero_removes_line(self):
        item, _ = services.add_to_cart(self.user, self.product, 2)
        self.assertIsNone(services.update_cart_quantity(self.user, item.id, 0))
        self.assertFalse(CartItem.objects.filter(pk=item.pk).exists())

    def test_update_other_users_line_fails(self):
        item, _ = services.add_to_cart(self.user, self.product)
        other = TestDataFactory.create_user()
        with self.assertRaises(CartItem.DoesNotExist):
            services.update_cart_quantity(other, item.id, 5)

    def test_cart_summary(self):
        """Test subtotal, discount and total"""
        second = TestDataFactory.create_product(price=Decimal('1000.00'))
        services.add_to_cart(self.user, self.product, 2)
        services.add_to_cart(self.user, second, 1)
        items = services.get_cart_items(self.user)

        summary = services.cart_summary(items)
        self.assertEqual(summary['item_count'], 3)
        self.assertEqual(summary['subtotal'], Decimal('5998.00'))
        self.assertEqual(summary['total'], Decimal('5998.00'))

        summary = services.cart_summary(items, {'discount': Decimal('500.00')})
        self.assertEqual(summary['discount'], Decimal('500.00'))
        self.assertEqual(summary['total'], Decimal('5498.00'))

    def test_cart_summary_total_never_negative(self):
        services.add_to_cart(self.user, self.product)
        summary = services.cart_summary(services.get_cart_items(self.user), {'discount': Decimal('99999')})
        self.assertEqual(summary['total'], Decimal('0.00'))

    def test_clear_cart(self):
        services.add_to_cart(self.user, self.product)
        services.add_to_cart(self.user, TestDataFactory.create_product())
        self.assertEqual(services.clear_cart(self.user), 2)
        self.assertEqual(services.get_cart_items(self.user), [])

    def test_wishlist_add_is_idempotent(self):
        services.add_to_wishlist(self.user, self.product)
        _, created = services.add_to_wishlist(self.user, self.product)
        self.assertFalse(created)
        self.assertEqual(WishlistItem.objects.filter(user=self.user).count(), 1)


class CartContainerTests(TestCase):
    """Test the cart container following the signed-in session"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('12999.00'))

    def test_anonymous_add_raises(self):
        cart = CartContainer(AuthSession())
        with self.assertRaises(NotAuthenticated) as ctx:
            cart.add_to_cart(self.product)
        self.assertEqual(str(ctx.exception), 'Please login to add items to cart')

    def test_anonymous_update_and_remove_are_noops(self):
        cart = CartContainer(AuthSession())
        self.assertIsNone(cart.update_quantity(1, 2))
        self.assertIsNone(cart.remove_from_cart(1))
        self.assertIsNone(cart.clear_cart())

    def test_sign_in_fetches_and_sign_out_empties(self):
        """Test the container refetches on identity change"""
        TestDataFactory.create_cart_item(self.user, self.product, quantity=2)
        session = AuthSession()
        cart = CartContainer(session)
        self.assertEqual(cart.items, [])

        session.sign_in(self.user)
        self.assertEqual(len(cart.items), 1)
        self.assertEqual(cart.items[0].quantity, 2)

        session.sign_out()
        self.assertEqual(cart.items, [])

    def test_switching_user_replaces_items(self):
        other = TestDataFactory.create_user()
        TestDataFactory.create_cart_item(self.user, self.product)
        session = AuthSession(self.user)
        cart = CartContainer(session)
        self.assertEqual(len(cart.items), 1)

        session.sign_in(other)
        self.assertEqual(cart.items, [])

    def test_add_refetches_and_notifies(self):
        cart = CartContainer(AuthSession(self.user))
        notified = []
        cart.subscribe(lambda container: notified.append(len(container.items)))

        self.assertTrue(cart.add_to_cart(self.product, 1, 'Free Size', 'Red'))
        cart.add_to_cart(self.product, 1, 'Free Size', 'Red')

        self.assertEqual(len(cart.items), 1)
        self.assertEqual(cart.items[0].quantity, 2)
        self.assertEqual(notified, [1, 1])
        self.assertFalse(cart.loading)

    def test_backend_error_propagates_and_sets_error(self):
        cart = CartContainer(AuthSession(self.user))
        with mock.patch('backend.cart.services.add_to_cart', side_effect=RuntimeError('db down')):
            with self.assertRaises(RuntimeError):
                cart.add_to_cart(self.product)
        self.assertEqual(cart.error, 'Failed to add item to cart')
        self.assertFalse(cart.loading)

    def test_fetch_error_is_surfaced_not_raised(self):
        session = AuthSession()
        cart = CartContainer(session)
        with mock.patch('backend.cart.services.get_cart_items', side_effect=RuntimeError('db down')):
            session.sign_in(self.user)
        self.assertEqual(cart.error, 'Failed to load cart items')
        self.assertEqual(cart.items, [])

    def test_clear_cart_empties_without_refetch(self):
        TestDataFactory.create_cart_item(self.user, self.product)
        cart = CartContainer(AuthSession(self.user))
        with mock.patch.object(cart, 'refresh') as refresh:
            cart.clear_cart()
        refresh.assert_not_called()
        self.assertTrue(cart.is_empty)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

    def test_detach_stops_following_session(self):
        session = AuthSession(self.user)
        TestDataFactory.create_cart_item(self.user, self.product)
        cart = CartContainer(session)
        cart.detach()
        session.sign_out()
        self.assertEqual(len(cart.items), 1)


class WishlistContainerTests(TestCase):
    """Test wishlist toggling"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()
        self.wishlist = WishlistContainer(AuthSession(self.user))

    def test_toggle_twice_restores_membership(self):
        """Test an even number of toggles returns to the original state"""
        self.assertFalse(self.wishlist.is_in_wishlist(self.product.id))
        self.assertTrue(self.wishlist.toggle_wishlist(self.product))
        self.assertTrue(self.wishlist.is_in_wishlist(self.product.id))
        self.assertFalse(self.wishlist.toggle_wishlist(self.product))
        self.assertFalse(self.wishlist.is_in_wishlist(self.product.id))
        self.assertFalse(WishlistItem.objects.filter(user=self.user).exists())

    def test_toggle_starting_from_member(self):
        TestDataFactory.create_wishlist_item(self.user, self.product)
        self.wishlist.refresh()
        self.wishlist.toggle_wishlist(self.product)
        self.wishlist.toggle_wishlist(self.product)
        self.assertTrue(self.wishlist.is_in_wishlist(self.product.id))

    def test_anonymous_toggle_raises(self):
        wishlist = WishlistContainer(AuthSession())
        with self.assertRaises(NotAuthenticated):
            wishlist.toggle_wishlist(self.product)

    def test_summary(self):
        second = TestDataFactory.create_product(price=Decimal('500.00'))
        self.wishlist.add_to_wishlist(self.product)
        self.wishlist.add_to_wishlist(second)
        summary = self.wishlist.summary
        self.assertEqual(summary['item_count'], 2)
        self.assertEqual(summary['total_value'], self.product.price + second.price)


class CartAPITests(TestCase):
    """Test cart and wishlist endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(price=Decimal('12999.00'))

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_same_item_twice(self):
        data = {'product_id': self.product.id, 'quantity': 1, 'size': 'M', 'color': 'Maroon'}
        response = self.client.post('/api/v1/cart/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post('/api/v1/cart/', data, format='json')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['quantity'], 2)
        self.assertTrue(AuditLog.objects.filter(action='cart_add', user=self.user).exists())

    def test_add_unknown_product(self):
        response = self.client.post('/api/v1/cart/', {'product_id': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_add_inactive_product(self):
        product = TestDataFactory.create_product(is_active=False)
        response = self.client.post('/api/v1/cart/', {'product_id': product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_update_and_remove_line(self):
        item = TestDataFactory.create_cart_item(self.user, self.product)
        response = self.client.patch(f'/api/v1/cart/items/{item.id}/', {'quantity': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['quantity'], 4)

        response = self.client.delete(f'/api/v1/cart/items/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_update_missing_line(self):
        response = self.client.patch('/api/v1/cart/items/424242/', {'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clear_cart(self):
        TestDataFactory.create_cart_item(self.user, self.product)
        response = self.client.delete('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

    def test_summary_displays_inr(self):
        TestDataFactory.create_cart_item(self.user, self.product)
        response = self.client.get('/api/v1/cart/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_display'], '₹12,999')
        self.assertIsNone(response.data['coupon_status'])

    def test_summary_with_coupon(self):
        TestDataFactory.create_coupon(code='FESTIVE10', discount_value=Decimal('10'))
        TestDataFactory.create_cart_item(self.user, self.product)
        response = self.client.get('/api/v1/cart/summary/?coupon=festive10')
        self.assertTrue(response.data['coupon_status']['is_valid'])
        self.assertEqual(response.data['discount'], '1299.90')
        self.assertEqual(response.data['applied_coupon'], 'FESTIVE10')

    def test_wishlist_toggle(self):
        response = self.client.post('/api/v1/wishlist/toggle/', {'product_id': self.product.id}, format='json')
        self.assertTrue(response.data['in_wishlist'])
        response = self.client.post('/api/v1/wishlist/toggle/', {'product_id': self.product.id}, format='json')
        self.assertFalse(response.data['in_wishlist'])
        self.assertEqual(response.data['item_count'], 0)

    def test_wishlist_add_list_remove(self):
        response = self.client.post('/api/v1/wishlist/', {'product_id': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.data['item_count'], 1)

        response = self.client.delete(f'/api/v1/wishlist/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/wishlist/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
