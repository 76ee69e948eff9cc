"""
Checkout flow: Shipping -> Payment -> Success.

The controller keeps the shipping form and current step in the state store
so a reload resumes where the customer left off, and watches the cart
container so an emptied cart sends the customer back to /cart. After a
successful payment the completion flags are set before the cart is cleared;
the cart-change notification then finds the flags and leaves the success
screen in place.
"""
from enum import IntEnum
import logging

from django.conf import settings

from .models import Order
from .payments import PaymentCancelled, PaymentError
from .services import create_order, order_email_data

logger = logging.getLogger(__name__)


class CheckoutStep(IntEnum):
    SHIPPING = 1
    PAYMENT = 2
    SUCCESS = 3


SHIPPING_FIELDS = (
    'full_name', 'email', 'phone', 'address_line1', 'address_line2',
    'city', 'state', 'postal_code', 'country',
)
REQUIRED_SHIPPING_FIELDS = (
    'full_name', 'email', 'phone', 'address_line1', 'city', 'state', 'postal_code',
)


def empty_shipping_data():
    data = {field: '' for field in SHIPPING_FIELDS}
    data['country'] = 'India'
    return data


class CheckoutError(Exception):
    pass


class CheckoutValidationError(CheckoutError):
    def __init__(self, missing_fields):
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Please fill in: {', '.join(field.replace('_', ' ') for field in self.missing_fields)}"
        )


class CheckoutController:

    def __init__(self, user, store, cart, payments, notifier, redirect=None):
        self.user = user
        self.store = store
        self.cart = cart
        self.payments = payments
        self.notifier = notifier
        self.redirect = redirect

        self.step = CheckoutStep.SHIPPING
        self.shipping_data = empty_shipping_data()
        self.order_placed = False
        self.checkout_completed = False
        self.order = None
        self.payment_request = None
        self.error = None

        self._unsubscribe = cart.subscribe(self._on_cart_change)

    def detach(self):
        self._unsubscribe()

    # State restore

    def load(self):
        """Restore the saved shipping form and step, then prefill from the user"""
        saved_form = self.store.load_checkout_form()
        if saved_form:
            self.shipping_data.update({
                key: value for key, value in saved_form.items() if key in SHIPPING_FIELDS
            })

        saved_step = self.store.load_checkout_step()
        if (saved_step and CheckoutStep.SHIPPING <= saved_step <= CheckoutStep.SUCCESS
                and not self.checkout_completed and not self.order_placed):
            self.step = CheckoutStep(saved_step)

        self.prefill_from_user()
        return self

    def prefill_from_user(self):
        """Fill empty name, email and phone from the account; saved values win"""
        if self.user is None:
            return
        account = {
            'full_name': getattr(self.user, 'full_name', '') or self.user.get_full_name(),
            'email': self.user.email,
            'phone': getattr(self.user, 'phone', ''),
        }
        changed = False
        for field, value in account.items():
            if not self.shipping_data.get(field) and value:
                self.shipping_data[field] = value
                changed = True
        if changed:
            self._save_shipping()

    # Shipping step

    def update_shipping(self, changes=None, **fields):
        updates = dict(changes or {})
        updates.update(fields)
        for field, value in updates.items():
            if field in SHIPPING_FIELDS:
                self.shipping_data[field] = '' if value is None else str(value)
        self._save_shipping()
        return self.shipping_data

    def missing_fields(self):
        return [
            field for field in REQUIRED_SHIPPING_FIELDS
            if not (self.shipping_data.get(field) or '').strip()
        ]

    def continue_to_payment(self):
        missing = self.missing_fields()
        if missing:
            error = CheckoutValidationError(missing)
            self.error = str(error)
            raise error
        self.error = None
        self._set_step(CheckoutStep.PAYMENT)
        return self.step

    def back_to_shipping(self):
        if self.step == CheckoutStep.PAYMENT:
            self._set_step(CheckoutStep.SHIPPING)
        return self.step

    # Redirect guard

    def check_redirect(self):
        """Where the customer should be sent instead of checkout, or None"""
        target = None
        if self.user is None or not self.cart.is_authenticated:
            target = '/login'
        elif self.checkout_completed or self.order_placed or self.step == CheckoutStep.SUCCESS:
            target = None
        elif self.cart.is_empty:
            target = '/cart'

        if target and self.redirect is not None:
            self.redirect(target)
        return target

    def _on_cart_change(self, cart):
        self.check_redirect()

    # Payment step

    def start_payment(self):
        """Create the pending order and the gateway order; returns the PaymentRequest"""
        if self.step != CheckoutStep.PAYMENT:
            raise CheckoutError('Please complete your shipping details first')
        if self.cart.is_empty:
            raise CheckoutError('Your cart is empty')

        items = list(self.cart.items)
        order = create_order(self.user, items, self.shipping_data, self.cart.summary)
        self.order = order
        try:
            gateway = self.payments.create_order(
                order.total_amount,
                notes={'order_id': str(order.id), 'items_count': len(items)},
            )
        except PaymentError as e:
            self.error = str(e)
            raise

        order.gateway_order_id = gateway['order_id']
        order.save(update_fields=['gateway_order_id', 'updated_at'])
        self.payment_request = self.payments.process_payment(self._payment_data(order))
        self.error = None
        return self.payment_request

    def resume_payment(self, gateway_order_id):
        """Rebind to a pending order started in an earlier request"""
        order = Order.objects.filter(
            user=self.user, gateway_order_id=gateway_order_id, status='pending'
        ).first()
        if order is None:
            raise CheckoutError('No pending payment found for this order')
        self.order = order
        self.payment_request = self.payments.process_payment(self._payment_data(order))
        return self.payment_request

    def confirm_payment(self, response):
        """Handle the gateway success callback and finish the order"""
        if self.payment_request is None:
            self.resume_payment(response.get('razorpay_order_id'))

        try:
            result = self.payment_request.resolve(response)
        except PaymentError as e:
            self.error = str(e)
            logger.warning(f"Payment failed for order {self.order.id}: {e}")
            raise

        order = self.order
        self.payments.complete_order(order, result)
        self._send_confirmation(order)

        self.store.clear_checkout_form()
        self.store.clear_checkout_step()

        self.step = CheckoutStep.SUCCESS
        self.order_placed = True
        self.checkout_completed = True
        self.error = None

        # Flags above must be set before this notifies the redirect guard
        self.cart.clear_cart()
        return order

    def cancel_payment(self, gateway_order_id=None):
        """The customer closed the payment modal; the order stays pending"""
        if self.payment_request is None and gateway_order_id:
            self.resume_payment(gateway_order_id)
        if self.payment_request is not None:
            self.payment_request.dismiss()
        self.error = str(PaymentCancelled())
        logger.info(f"Payment cancelled for order {getattr(self.order, 'id', None)}")
        return self.error

    def _payment_data(self, order):
        return {
            'amount': order.total_amount,
            'order_id': order.gateway_order_id,
            'customer_name': self.shipping_data.get('full_name') or order.shipping_name,
            'customer_email': self.shipping_data.get('email') or order.shipping_email,
            'customer_phone': self.shipping_data.get('phone') or order.shipping_phone,
            'description': f"Order #{order.short_id} - {settings.STORE_NAME}",
            'notes': {'order_id': str(order.id), 'items_count': order.items.count()},
        }

    def _send_confirmation(self, order):
        try:
            result = self.notifier(order_email_data(order))
        except Exception as e:
            logger.error(f"Error sending order confirmation email for {order.id}: {e}")
            return
        if result.get('success'):
            logger.info(f"Order confirmation email sent for {order.id}")
        else:
            logger.warning(f"Failed to send order confirmation email for {order.id}: {result.get('error')}")

    def _set_step(self, step):
        self.step = CheckoutStep(step)
        self.store.save_checkout_step(int(self.step))

    def _save_shipping(self):
        if any((value or '').strip() for value in self.shipping_data.values()):
            self.store.save_checkout_form(dict(self.shipping_data))

    def state(self):
        return {
            'step': int(self.step),
            'shipping_data': dict(self.shipping_data),
            'order_placed': self.order_placed,
            'checkout_completed': self.checkout_completed,
            'order_id': str(self.order.id) if self.order else None,
            'error': self.error,
        }
