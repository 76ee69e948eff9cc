"""
Razorpay payment adapter.

The gateway client is built lazily on first use and reused afterwards.
A payment is modelled as a PaymentRequest: the hosted-checkout options the
browser needs to open the Razorpay modal, plus a Future that is completed
when the modal reports back (resolve) or is closed (dismiss).
"""
from collections import namedtuple
from concurrent.futures import Future
from decimal import Decimal, ROUND_HALF_UP
import json
import logging
import threading
import time

import razorpay
from razorpay.errors import SignatureVerificationError
from django.conf import settings
from django.utils import timezone

from backend.cart import services as cart_services
from backend.coupons.services import redeem_coupon
from backend.core.utils import format_inr
from .services import update_order_status

logger = logging.getLogger(__name__)

PaymentResult = namedtuple('PaymentResult', ['payment_id', 'signature', 'order_id'])

# Gateway order status -> (order status, payment status)
GATEWAY_STATUS_MAP = {
    'paid': ('confirmed', 'completed'),
    'created': ('pending', 'pending'),
    'attempted': ('pending', 'pending'),
}
UNPAID_STATUS = ('cancelled', 'failed')


class PaymentError(Exception):
    pass


class PaymentCancelled(PaymentError):
    def __init__(self, message='Payment cancelled by user'):
        super().__init__(message)


class PaymentVerificationError(PaymentError):
    pass


def to_paise(amount):
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class PaymentRequest:
    """A payment waiting on the hosted checkout modal"""

    def __init__(self, adapter, options):
        self.adapter = adapter
        self.options = options
        self.future = Future()

    @property
    def order_id(self):
        return self.options.get('order_id')

    @property
    def done(self):
        return self.future.done()

    def resolve(self, response):
        """
        Complete the payment from the modal's success callback.

        response carries razorpay_payment_id, razorpay_order_id and
        razorpay_signature. Returns the PaymentResult or raises
        PaymentVerificationError when the signature does not match.
        """
        if self.future.done():
            return self.future.result()

        result = PaymentResult(
            payment_id=response.get('razorpay_payment_id'),
            signature=response.get('razorpay_signature'),
            order_id=response.get('razorpay_order_id') or self.order_id,
        )
        try:
            self.adapter.verify_payment(result)
        except PaymentVerificationError as e:
            self.future.set_exception(e)
            raise
        self.future.set_result(result)
        return result

    def dismiss(self):
        """The customer closed the modal without paying"""
        if not self.future.done():
            self.future.set_exception(PaymentCancelled())

    def result(self, timeout=None):
        return self.future.result(timeout=timeout)


class PaymentAdapter:
    """Thin caller around the Razorpay SDK"""

    def __init__(self, key_id=None, key_secret=None, client_factory=None):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self._client_factory = client_factory or razorpay.Client
        self._client = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self):
        return self._client is not None

    def load(self):
        """Build the gateway client once; later calls return the same client"""
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                if not self.key_id or not self.key_secret:
                    raise PaymentError('Payment gateway is not configured')
                self._client = self._client_factory(auth=(self.key_id, self.key_secret))
                logger.info("Razorpay client initialised")
        return self._client

    def create_order(self, amount, currency='INR', notes=None):
        """Create a gateway order for an amount in rupees"""
        if amount is None or Decimal(str(amount)) < 1:
            raise PaymentError('Amount must be at least ₹1')

        client = self.load()
        receipt = f"receipt_{int(time.time() * 1000)}"
        data = {
            'amount': to_paise(amount),
            'currency': currency,
            'receipt': receipt,
            'notes': notes or {},
        }
        try:
            gateway_order = client.order.create(data=data)
        except Exception as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise PaymentError(f'Failed to create payment order: {e}') from e

        logger.info(f"Razorpay order created: {gateway_order.get('id')} amount={data['amount']} receipt={receipt}")
        return {
            'order_id': gateway_order['id'],
            'amount': gateway_order.get('amount', data['amount']),
            'currency': gateway_order.get('currency', currency),
            'key_id': self.key_id,
            'receipt': receipt,
        }

    def process_payment(self, payment_data):
        """
        Prepare the hosted checkout for a gateway order.

        payment_data: amount (rupees), order_id (gateway order id),
        customer_name, customer_email, customer_phone, description, notes.
        """
        self.load()
        options = {
            'key': self.key_id,
            'amount': to_paise(payment_data['amount']),
            'currency': 'INR',
            'name': settings.STORE_NAME,
            'description': payment_data.get('description') or f'Purchase from {settings.STORE_NAME}',
            'image': '/logo.png',
            'order_id': payment_data.get('order_id'),
            'prefill': {
                'name': payment_data.get('customer_name', ''),
                'email': payment_data.get('customer_email', ''),
                'contact': payment_data.get('customer_phone', ''),
            },
            'notes': payment_data.get('notes') or {},
            'theme': {
                'color': settings.STORE_THEME_COLOR,
            },
        }
        return PaymentRequest(self, options)

    def verify_payment(self, result):
        client = self.load()
        try:
            client.utility.verify_payment_signature({
                'razorpay_order_id': result.order_id,
                'razorpay_payment_id': result.payment_id,
                'razorpay_signature': result.signature,
            })
        except SignatureVerificationError as e:
            logger.warning(f"Payment signature mismatch for gateway order {result.order_id}")
            raise PaymentVerificationError('Payment verification failed') from e
        return True

    def complete_order(self, order, payment_result):
        """Mark a paid order completed, record the payment and empty the cart"""
        update_order_status(order, 'completed', 'completed')

        payment_info = json.dumps({
            'razorpay_payment_id': payment_result.payment_id,
            'razorpay_signature': payment_result.signature,
            'payment_completed_at': timezone.now().isoformat(),
        })
        order.payment_method = 'razorpay'
        order.gateway_payment_id = payment_result.payment_id or ''
        order.notes = f"{order.notes} | Payment: {payment_info}" if order.notes else f"Payment: {payment_info}"
        order.save(update_fields=['payment_method', 'gateway_payment_id', 'notes', 'updated_at'])

        if order.coupon_id:
            redeem_coupon(order.coupon)

        cart_services.clear_cart(order.user)
        logger.info(f"Order {order.id} completed with payment {payment_result.payment_id}")
        return {'success': True, 'order': order, 'payment': payment_result}

    def check_payment_status(self, order):
        """
        Sync an order with the gateway's view of its payment.

        Only orders still awaiting payment are synced; an order whose payment
        already settled keeps its fulfilment status. The order is written only
        when the mapped payment status differs from the stored one.
        """
        if not order.gateway_order_id:
            raise PaymentError('Order has no payment gateway reference')

        if order.payment_status != 'pending':
            logger.info(f"Skipping payment sync for order {order.id}: payment already {order.payment_status}")
            return {
                'gateway_status': None,
                'status': order.status,
                'payment_status': order.payment_status,
                'updated': False,
            }

        client = self.load()
        try:
            gateway_order = client.order.fetch(order.gateway_order_id)
        except Exception as e:
            logger.error(f"Razorpay order fetch failed for {order.gateway_order_id}: {e}")
            raise PaymentError(f'Failed to fetch payment status: {e}') from e

        gateway_status = gateway_order.get('status')
        order_status, payment_status = GATEWAY_STATUS_MAP.get(gateway_status, UNPAID_STATUS)
        updated = payment_status != order.payment_status
        if updated:
            update_order_status(order, order_status, payment_status)
        return {
            'gateway_status': gateway_status,
            'status': order.status,
            'payment_status': order.payment_status,
            'updated': updated,
        }

    def format_amount(self, amount):
        return format_inr(amount)


_adapter = None
_adapter_lock = threading.Lock()


def get_payment_adapter():
    """Process-wide adapter configured from settings"""
    global _adapter
    with _adapter_lock:
        if _adapter is None:
            _adapter = PaymentAdapter()
        return _adapter
