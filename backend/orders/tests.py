"""
Test suite for orders, payments and checkout
Tests: Razorpay adapter, confirmation email, checkout step flow, redirect guard ordering, API
"""
from decimal import Decimal
from io import StringIO
from unittest import mock

import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from rest_framework import status
from razorpay.errors import SignatureVerificationError

from backend.cart.containers import CartContainer
from backend.cart.models import CartItem
from backend.core.session import AuthSession
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.checkout import CheckoutController, CheckoutStep, CheckoutValidationError, CheckoutError
from backend.orders.emails import send_order_confirmation_email
from backend.orders.models import Order
from backend.orders.payments import (
    PaymentAdapter, PaymentError, PaymentCancelled, PaymentVerificationError,
)
from backend.orders.serializers import OrderSerializer
from backend.orders.services import create_order, order_email_data
from backend.persistence.store import StatePersistence, MemoryStorage, DatabaseStorage

SHIPPING = {
    'full_name': 'Ananya Sharma',
    'email': 'ananya@example.com',
    'phone': '9876543210',
    'address_line1': '14 Civil Lines',
    'city': 'Jaipur',
    'state': 'Rajasthan',
    'postal_code': '302006',
}

CALLBACK = {
    'razorpay_payment_id': 'pay_TEST123',
    'razorpay_order_id': 'order_TEST123',
    'razorpay_signature': 'sig_TEST123',
}


def make_gateway_client():
    client = mock.Mock()
    client.order.create.return_value = {'id': 'order_TEST123', 'amount': 1299900, 'currency': 'INR'}
    client.order.fetch.return_value = {'id': 'order_TEST123', 'status': 'paid'}
    client.utility.verify_payment_signature.return_value = True
    return client


def make_adapter(client=None):
    client = client or make_gateway_client()
    factory = mock.Mock(return_value=client)
    return PaymentAdapter('rzp_test_key', 'rzp_test_secret', client_factory=factory), client, factory


class PaymentAdapterTests(TestCase):
    """Test the Razorpay adapter against a fake gateway client"""

    def setUp(self):
        self.adapter, self.client, self.factory = make_adapter()
        self.user = TestDataFactory.create_user()

    def test_load_is_idempotent(self):
        first = self.adapter.load()
        second = self.adapter.load()
        self.assertIs(first, second)
        self.factory.assert_called_once_with(auth=('rzp_test_key', 'rzp_test_secret'))

    def test_load_without_credentials(self):
        adapter = PaymentAdapter('', '', client_factory=mock.Mock())
        with self.assertRaises(PaymentError):
            adapter.load()

    def test_create_order_converts_to_paise(self):
        result = self.adapter.create_order(Decimal('12999.00'), notes={'order_id': 'abc'})
        data = self.client.order.create.call_args.kwargs['data']
        self.assertEqual(data['amount'], 1299900)
        self.assertEqual(data['currency'], 'INR')
        self.assertTrue(data['receipt'].startswith('receipt_'))
        self.assertEqual(result['order_id'], 'order_TEST123')
        self.assertEqual(result['key_id'], 'rzp_test_key')

    def test_create_order_rejects_small_amount(self):
        with self.assertRaises(PaymentError):
            self.adapter.create_order(Decimal('0.50'))
        self.client.order.create.assert_not_called()

    def test_create_order_gateway_failure(self):
        self.client.order.create.side_effect = RuntimeError('gateway down')
        with self.assertRaises(PaymentError):
            self.adapter.create_order(100)

    def test_process_payment_options(self):
        request = self.adapter.process_payment({
            'amount': Decimal('12999'),
            'order_id': 'order_TEST123',
            'customer_name': 'Ananya',
            'customer_email': 'ananya@example.com',
            'customer_phone': '9876543210',
        })
        options = request.options
        self.assertEqual(options['amount'], 1299900)
        self.assertEqual(options['name'], 'Dharika Fashion')
        self.assertEqual(options['theme']['color'], '#6f0e06')
        self.assertEqual(options['prefill']['contact'], '9876543210')
        self.assertEqual(options['order_id'], 'order_TEST123')
        self.assertFalse(request.done)

    def test_resolve_returns_payment_result(self):
        request = self.adapter.process_payment({'amount': 100, 'order_id': 'order_TEST123'})
        result = request.resolve(CALLBACK)
        self.assertEqual(result.payment_id, 'pay_TEST123')
        self.assertEqual(result.signature, 'sig_TEST123')
        self.assertEqual(request.result(timeout=0), result)

    def test_dismiss_rejects_with_cancelled(self):
        request = self.adapter.process_payment({'amount': 100, 'order_id': 'order_TEST123'})
        request.dismiss()
        with self.assertRaises(PaymentCancelled) as ctx:
            request.result(timeout=0)
        self.assertEqual(str(ctx.exception), 'Payment cancelled by user')

    def test_bad_signature(self):
        self.client.utility.verify_payment_signature.side_effect = SignatureVerificationError('mismatch')
        request = self.adapter.process_payment({'amount': 100, 'order_id': 'order_TEST123'})
        with self.assertRaises(PaymentVerificationError):
            request.resolve(CALLBACK)
        with self.assertRaises(PaymentVerificationError):
            request.result(timeout=0)

    def test_complete_order(self):
        """Test the order is marked paid and the cart emptied"""
        coupon = TestDataFactory.create_coupon(code='TEN')
        order = TestDataFactory.create_order(self.user)
        order.coupon = coupon
        order.save()
        TestDataFactory.create_cart_item(self.user)

        request = self.adapter.process_payment({'amount': 100, 'order_id': 'order_TEST123'})
        self.adapter.complete_order(order, request.resolve(CALLBACK))

        order.refresh_from_db()
        coupon.refresh_from_db()
        self.assertEqual(order.status, 'completed')
        self.assertEqual(order.payment_status, 'completed')
        self.assertEqual(order.payment_method, 'razorpay')
        self.assertEqual(order.gateway_payment_id, 'pay_TEST123')
        self.assertIn('Payment: {', order.notes)
        self.assertEqual(coupon.used_count, 1)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

    def test_check_payment_status_mapping(self):
        cases = [
            ('paid', 'confirmed', 'completed', True),
            ('attempted', 'pending', 'pending', False),
            ('created', 'pending', 'pending', False),
            ('expired', 'cancelled', 'failed', True),
        ]
        for gateway_status, order_status, payment_status, updated in cases:
            order = TestDataFactory.create_order(self.user, gateway_order_id=f'order_{gateway_status}')
            self.client.order.fetch.return_value = {'status': gateway_status}
            result = self.adapter.check_payment_status(order)
            order.refresh_from_db()
            self.assertEqual(result['gateway_status'], gateway_status)
            self.assertEqual(result['status'], order_status)
            self.assertEqual(result['updated'], updated)
            self.assertEqual(order.status, order_status)
            self.assertEqual(order.payment_status, payment_status)

    def test_check_payment_status_keeps_settled_order(self):
        """Test a paid order that has moved on to fulfilment is left alone"""
        order = TestDataFactory.create_order(
            self.user, status='shipped', payment_status='completed', gateway_order_id='order_TEST123',
        )
        result = self.adapter.check_payment_status(order)
        order.refresh_from_db()
        self.assertFalse(result['updated'])
        self.assertEqual(order.status, 'shipped')
        self.assertEqual(order.payment_status, 'completed')
        self.client.order.fetch.assert_not_called()

    def test_check_payment_status_without_gateway_order(self):
        order = TestDataFactory.create_order(self.user)
        with self.assertRaises(PaymentError):
            self.adapter.check_payment_status(order)

    def test_format_amount(self):
        self.assertEqual(self.adapter.format_amount(12999), '₹12,999')


class OrderConfirmationEmailTests(TestCase):
    """Test the email collaborator never breaks checkout"""

    def setUp(self):
        self.user = TestDataFactory.create_user(full_name='Ananya Sharma')
        self.order = TestDataFactory.create_order(self.user)
        self.email_data = order_email_data(self.order)

    @override_settings(EMAIL_FUNCTION_URL='')
    def test_not_configured_logs_and_succeeds(self):
        result = send_order_confirmation_email(self.email_data)
        self.assertTrue(result['success'])
        self.assertTrue(result['message_id'].startswith('dev-'))

    @override_settings(EMAIL_FUNCTION_URL='https://functions.test/send-email', EMAIL_FUNCTION_KEY='k')
    def test_missing_function_falls_back(self):
        with mock.patch('backend.orders.emails.requests.post', return_value=mock.Mock(status_code=404)):
            result = send_order_confirmation_email(self.email_data)
        self.assertTrue(result['success'])
        self.assertTrue(result['message_id'].startswith('fallback-'))

    @override_settings(EMAIL_FUNCTION_URL='https://functions.test/send-email', EMAIL_FUNCTION_KEY='k')
    def test_sent(self):
        response = mock.Mock(status_code=200)
        response.json.return_value = {'success': True, 'messageId': 'msg_1'}
        with mock.patch('backend.orders.emails.requests.post', return_value=response) as post:
            result = send_order_confirmation_email(self.email_data)
        self.assertEqual(result, {'success': True, 'message_id': 'msg_1', 'message': 'Email sent successfully'})
        payload = post.call_args.kwargs['json']
        self.assertEqual(payload['type'], 'order_confirmation')
        self.assertEqual(payload['order_data']['total_amount'], '₹1,000')
        self.assertEqual(post.call_args.kwargs['headers']['Authorization'], 'Bearer k')

    @override_settings(EMAIL_FUNCTION_URL='https://functions.test/send-email')
    def test_server_error_reported_not_raised(self):
        response = mock.Mock(status_code=500)
        response.raise_for_status.side_effect = requests.HTTPError('500 Server Error')
        with mock.patch('backend.orders.emails.requests.post', return_value=response):
            result = send_order_confirmation_email(self.email_data)
        self.assertFalse(result['success'])
        self.assertIn('500', result['error'])

    @override_settings(EMAIL_FUNCTION_URL='https://functions.test/send-email')
    def test_network_error_reported_not_raised(self):
        with mock.patch('backend.orders.emails.requests.post', side_effect=requests.ConnectionError('refused')):
            result = send_order_confirmation_email(self.email_data)
        self.assertFalse(result['success'])


class OrderServiceTests(TestCase):
    """Test order creation from the cart"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.saree = TestDataFactory.create_product(name='Banarasi Silk Saree', price=Decimal('12999.00'))
        self.cart = CartContainer(AuthSession(self.user))
        self.cart.add_to_cart(self.saree, 1, 'Free Size', 'Maroon')

    def test_order_total_matches_cart(self):
        """Test a ₹12,999 saree with free shipping and no tax gives a ₹12,999 order"""
        order = create_order(self.user, self.cart.items, SHIPPING, self.cart.summary)
        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.payment_status, 'pending')
        self.assertEqual(order.shipping_amount, Decimal('0.00'))
        self.assertEqual(order.tax_amount, Decimal('0.00'))
        self.assertEqual(order.total_amount, Decimal('12999.00'))
        self.assertEqual(order.shipping_country, 'India')
        self.assertEqual(order.items.count(), 1)
        self.assertEqual(order.items.first().price, Decimal('12999.00'))
        self.assertEqual(OrderSerializer(order).data['total_display'], '₹12,999')

    def test_empty_cart_rejected(self):
        with self.assertRaises(ValueError):
            create_order(self.user, [], SHIPPING, self.cart.summary)


class CheckoutControllerTests(TestCase):
    """Test the Shipping -> Payment -> Success flow"""

    def setUp(self):
        self.user = TestDataFactory.create_user(full_name='Ananya Sharma', phone='9876543210')
        self.saree = TestDataFactory.create_product(price=Decimal('12999.00'))
        self.session = AuthSession(self.user)
        self.cart = CartContainer(self.session)
        self.cart.add_to_cart(self.saree, 1, 'Free Size', 'Maroon')
        self.store = StatePersistence(MemoryStorage())
        self.adapter, self.gateway, _ = make_adapter()
        self.notifier = mock.Mock(return_value={'success': True, 'message_id': 'dev-1'})
        self.redirects = []

    def make_controller(self):
        controller = CheckoutController(
            self.user, self.store, self.cart, self.adapter, self.notifier, redirect=self.redirects.append
        )
        return controller.load()

    def ready_for_payment(self):
        controller = self.make_controller()
        controller.update_shipping(SHIPPING)
        controller.continue_to_payment()
        return controller

    def test_prefill_from_user(self):
        controller = self.make_controller()
        self.assertEqual(controller.shipping_data['full_name'], 'Ananya Sharma')
        self.assertEqual(controller.shipping_data['email'], self.user.email)
        self.assertEqual(controller.shipping_data['phone'], '9876543210')
        self.assertEqual(controller.shipping_data['country'], 'India')

    def test_saved_form_wins_over_prefill(self):
        self.store.save_checkout_form({'full_name': 'Gift For Mom', 'city': 'Pune'})
        controller = self.make_controller()
        self.assertEqual(controller.shipping_data['full_name'], 'Gift For Mom')
        self.assertEqual(controller.shipping_data['city'], 'Pune')

    def test_missing_field_keeps_step_one(self):
        """Test any empty required field blocks the move to payment"""
        controller = self.make_controller()
        controller.update_shipping(SHIPPING, city='  ')
        with self.assertRaises(CheckoutValidationError) as ctx:
            controller.continue_to_payment()
        self.assertEqual(controller.step, CheckoutStep.SHIPPING)
        self.assertEqual(ctx.exception.missing_fields, ['city'])
        self.assertEqual(str(ctx.exception), 'Please fill in: city')

    def test_message_names_every_missing_field(self):
        self.user.full_name = ''
        controller = self.make_controller()
        controller.update_shipping(full_name='', address_line1='', postal_code='')
        with self.assertRaises(CheckoutValidationError) as ctx:
            controller.continue_to_payment()
        self.assertIn('full name', str(ctx.exception))
        self.assertIn('address line1', str(ctx.exception))

    def test_all_fields_advance_to_payment(self):
        controller = self.ready_for_payment()
        self.assertEqual(controller.step, CheckoutStep.PAYMENT)
        self.assertEqual(self.store.load_checkout_step(), 2)

    def test_reload_resumes_step_and_form(self):
        self.ready_for_payment()
        reloaded = self.make_controller()
        self.assertEqual(reloaded.step, CheckoutStep.PAYMENT)
        self.assertEqual(reloaded.shipping_data['city'], 'Jaipur')

    def test_saved_step_out_of_range_ignored(self):
        self.store.save_checkout_step(7)
        self.assertEqual(self.make_controller().step, CheckoutStep.SHIPPING)

    def test_redirect_when_signed_out(self):
        controller = self.make_controller()
        self.session.sign_out()
        self.assertEqual(controller.check_redirect(), '/login')

    def test_empty_cart_redirects_before_success(self):
        controller = self.ready_for_payment()
        self.cart.clear_cart()
        self.assertEqual(self.redirects, ['/cart'])
        self.assertEqual(controller.step, CheckoutStep.PAYMENT)

    def test_payment_success(self):
        """Test success reaches step 3, empties the cart and does not redirect"""
        controller = self.ready_for_payment()
        payment_request = controller.start_payment()

        order = controller.order
        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.gateway_order_id, 'order_TEST123')
        self.assertEqual(payment_request.options['amount'], 1299900)

        completed = controller.confirm_payment(CALLBACK)

        self.assertEqual(controller.step, CheckoutStep.SUCCESS)
        self.assertTrue(controller.order_placed)
        self.assertTrue(controller.checkout_completed)
        self.assertTrue(self.cart.is_empty)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())
        self.assertEqual(self.redirects, [])
        # Re-checking the guard afterwards still keeps the success screen
        self.assertIsNone(controller.check_redirect())

        completed.refresh_from_db()
        self.assertEqual(completed.status, 'completed')
        self.assertEqual(completed.payment_status, 'completed')
        self.assertEqual(OrderSerializer(completed).data['total_display'], '₹12,999')
        self.assertIsNone(self.store.load_checkout_form())
        self.assertIsNone(self.store.load_checkout_step())
        self.notifier.assert_called_once()

    def test_flags_set_before_cart_cleared(self):
        controller = self.ready_for_payment()
        controller.start_payment()
        seen = {}
        original_clear = self.cart.clear_cart

        def clear_spy():
            seen['step'] = controller.step
            seen['order_placed'] = controller.order_placed
            seen['checkout_completed'] = controller.checkout_completed
            return original_clear()

        with mock.patch.object(self.cart, 'clear_cart', side_effect=clear_spy):
            controller.confirm_payment(CALLBACK)

        self.assertEqual(seen, {
            'step': CheckoutStep.SUCCESS, 'order_placed': True, 'checkout_completed': True,
        })

    def test_email_failure_does_not_fail_checkout(self):
        self.notifier.side_effect = RuntimeError('smtp down')
        controller = self.ready_for_payment()
        controller.start_payment()
        controller.confirm_payment(CALLBACK)
        self.assertEqual(controller.step, CheckoutStep.SUCCESS)

    def test_cancelled_payment_stays_on_payment_step(self):
        controller = self.ready_for_payment()
        controller.start_payment()
        message = controller.cancel_payment()

        self.assertEqual(message, 'Payment cancelled by user')
        self.assertEqual(controller.step, CheckoutStep.PAYMENT)
        controller.order.refresh_from_db()
        self.assertEqual(controller.order.status, 'pending')
        self.assertFalse(self.cart.is_empty)

        with self.assertRaises(PaymentCancelled):
            controller.confirm_payment(CALLBACK)

    def test_failed_verification_stays_on_payment_step(self):
        self.gateway.utility.verify_payment_signature.side_effect = SignatureVerificationError('mismatch')
        controller = self.ready_for_payment()
        controller.start_payment()
        with self.assertRaises(PaymentVerificationError):
            controller.confirm_payment(CALLBACK)
        self.assertEqual(controller.step, CheckoutStep.PAYMENT)
        self.assertEqual(controller.error, 'Payment verification failed')
        self.assertEqual(Order.objects.get(pk=controller.order.pk).status, 'pending')
        self.assertFalse(self.cart.is_empty)

    def test_gateway_order_failure_leaves_pending_order(self):
        self.gateway.order.create.side_effect = RuntimeError('gateway down')
        controller = self.ready_for_payment()
        with self.assertRaises(PaymentError):
            controller.start_payment()
        self.assertEqual(controller.step, CheckoutStep.PAYMENT)
        self.assertEqual(Order.objects.get(user=self.user).status, 'pending')

    def test_start_payment_requires_payment_step(self):
        controller = self.make_controller()
        with self.assertRaises(CheckoutError):
            controller.start_payment()

    def test_confirm_in_new_controller_resumes_pending_order(self):
        """Test the callback can arrive in a later request"""
        self.ready_for_payment().start_payment()

        later = self.make_controller()
        order = later.confirm_payment(CALLBACK)
        self.assertEqual(order.status, 'completed')
        self.assertEqual(later.step, CheckoutStep.SUCCESS)

    def test_confirm_unknown_gateway_order(self):
        controller = self.make_controller()
        with self.assertRaises(CheckoutError):
            controller.confirm_payment({**CALLBACK, 'razorpay_order_id': 'order_UNKNOWN'})


class CheckoutAPITests(TestCase):
    """Test checkout and order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(full_name='Ananya Sharma')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.saree = TestDataFactory.create_product(price=Decimal('12999.00'))
        TestDataFactory.create_cart_item(self.user, self.saree)

        self.adapter, self.gateway, _ = make_adapter()
        adapter_patch = mock.patch('backend.orders.views.get_payment_adapter', return_value=self.adapter)
        email_patch = mock.patch(
            'backend.orders.views.send_order_confirmation_email',
            return_value={'success': True, 'message_id': 'dev-1'},
        )
        adapter_patch.start()
        email_patch.start()
        self.addCleanup(adapter_patch.stop)
        self.addCleanup(email_patch.stop)

    def test_state(self):
        response = self.client.get('/api/v1/checkout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['step'], 1)
        self.assertIsNone(response.data['redirect'])
        self.assertEqual(response.data['shipping_data']['full_name'], 'Ananya Sharma')

    def test_empty_cart_state_redirects(self):
        CartItem.objects.filter(user=self.user).delete()
        response = self.client.get('/api/v1/checkout/')
        self.assertEqual(response.data['redirect'], '/cart')

    def test_continue_with_missing_fields(self):
        response = self.client.post('/api/v1/checkout/continue/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['step'], 1)
        self.assertIn('address_line1', response.data['missing_fields'])

    def test_full_checkout(self):
        """Test shipping, payment and callback across separate requests"""
        response = self.client.patch('/api/v1/checkout/shipping/', SHIPPING, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/v1/checkout/continue/')
        self.assertEqual(response.data['step'], 2)

        response = self.client.post('/api/v1/checkout/payment/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['checkout_options']['order_id'], 'order_TEST123')
        self.assertEqual(response.data['order']['status'], 'pending')

        response = self.client.post('/api/v1/checkout/payment/callback/', CALLBACK, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['step'], 3)
        self.assertTrue(response.data['checkout_completed'])
        self.assertIsNone(response.data['redirect'])
        self.assertEqual(response.data['order']['total_display'], '₹12,999')
        self.assertEqual(response.data['order']['status'], 'completed')
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

        store = StatePersistence(DatabaseStorage(f'user:{self.user.pk}'))
        self.assertIsNone(store.load_checkout_step())

    def test_payment_with_coupon(self):
        TestDataFactory.create_coupon(code='FLAT999', discount_type='fixed', discount_value=Decimal('999'))
        self.client.patch('/api/v1/checkout/shipping/', SHIPPING, format='json')
        self.client.post('/api/v1/checkout/continue/')
        response = self.client.post('/api/v1/checkout/payment/', {'coupon': 'flat999'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['order']['total_amount']), Decimal('12000.00'))
        self.assertEqual(response.data['order']['coupon_code'], 'FLAT999')

    def test_payment_before_shipping(self):
        response = self.client.post('/api/v1/checkout/payment/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dismiss(self):
        self.client.patch('/api/v1/checkout/shipping/', SHIPPING, format='json')
        self.client.post('/api/v1/checkout/continue/')
        self.client.post('/api/v1/checkout/payment/', {}, format='json')

        response = self.client.post(
            '/api/v1/checkout/payment/dismiss/', {'razorpay_order_id': 'order_TEST123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['step'], 2)
        self.assertEqual(response.data['error'], 'Payment cancelled by user')
        self.assertEqual(Order.objects.get(user=self.user).status, 'pending')

    def test_order_list_and_detail(self):
        order = TestDataFactory.create_order(self.user, products=[self.saree])
        other_order = TestDataFactory.create_order(TestDataFactory.create_user())

        response = self.client.get('/api/v1/orders/')
        self.assertEqual([o['id'] for o in response.data], [str(order.id)])

        response = self.client.get(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.data['total_display'], '₹12,999')

        response = self.client.get(f'/api/v1/orders/{other_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_sync_payment(self):
        order = TestDataFactory.create_order(self.user, gateway_order_id='order_TEST123')
        response = self.client.post(f'/api/v1/orders/{order.id}/sync-payment/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['payment_status'], 'completed')

    def test_sync_payment_leaves_shipped_order(self):
        order = TestDataFactory.create_order(
            self.user, status='shipped', payment_status='completed', gateway_order_id='order_TEST123',
        )
        response = self.client.post(f'/api/v1/orders/{order.id}/sync-payment/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['updated'])
        order.refresh_from_db()
        self.assertEqual(order.status, 'shipped')
        self.assertEqual(order.payment_status, 'completed')

    def test_status_update_is_staff_only(self):
        order = TestDataFactory.create_order(self.user)
        response = self.client.patch(f'/api/v1/orders/{order.id}/status/', {'status': 'shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        with override_settings(EMAIL_FUNCTION_URL=''):
            response = self.client.patch(f'/api/v1/orders/{order.id}/status/', {'status': 'shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['status'], 'shipped')
        self.assertTrue(response.data['email']['message_id'].startswith('dev-status-'))


class SyncPendingPaymentsCommandTests(TestCase):
    """Test the bulk gateway sync for pending orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.adapter, self.gateway, _ = make_adapter()
        patcher = mock.patch(
            'backend.orders.management.commands.sync_pending_payments.get_payment_adapter',
            return_value=self.adapter,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_syncs_pending_orders_only(self):
        paid = TestDataFactory.create_order(self.user, gateway_order_id='order_PAID')
        waiting = TestDataFactory.create_order(self.user, gateway_order_id='order_WAITING')
        broken = TestDataFactory.create_order(self.user, gateway_order_id='order_BROKEN')
        shipped = TestDataFactory.create_order(
            self.user, status='shipped', payment_status='completed', gateway_order_id='order_SHIPPED',
        )
        TestDataFactory.create_order(self.user)

        def fetch(gateway_order_id):
            if gateway_order_id == 'order_BROKEN':
                raise RuntimeError('gateway timeout')
            return {'id': gateway_order_id, 'status': 'paid' if gateway_order_id == 'order_PAID' else 'attempted'}

        self.gateway.order.fetch.side_effect = fetch

        out = StringIO()
        call_command('sync_pending_payments', stdout=out)
        output = out.getvalue()

        self.assertIn('Total orders processed: 3', output)
        self.assertIn('Orders updated: 1', output)
        self.assertIn('Orders unchanged: 1', output)
        self.assertIn('Errors: 1', output)

        fetched = sorted(call.args[0] for call in self.gateway.order.fetch.call_args_list)
        self.assertEqual(fetched, ['order_BROKEN', 'order_PAID', 'order_WAITING'])

        for order in (paid, waiting, broken, shipped):
            order.refresh_from_db()
        self.assertEqual((paid.status, paid.payment_status), ('confirmed', 'completed'))
        self.assertEqual((waiting.status, waiting.payment_status), ('pending', 'pending'))
        self.assertEqual((broken.status, broken.payment_status), ('pending', 'pending'))
        self.assertEqual((shipped.status, shipped.payment_status), ('shipped', 'completed'))

    def test_nothing_to_sync(self):
        out = StringIO()
        call_command('sync_pending_payments', stdout=out)
        self.assertIn('No pending orders to sync', out.getvalue())

    def test_gateway_not_configured(self):
        unconfigured = PaymentAdapter('', '', client_factory=mock.Mock())
        with mock.patch(
            'backend.orders.management.commands.sync_pending_payments.get_payment_adapter',
            return_value=unconfigured,
        ):
            with self.assertRaises(CommandError):
                call_command('sync_pending_payments', stdout=StringIO())
