"""
In-memory cart and wishlist state bound to a signed-in session.

Containers observe an AuthSession: when the identity changes they refetch
their rows and replace the list wholesale (or empty it on sign-out). Every
mutation round-trips through the service layer and then refetches; there is
no optimistic update.
"""
from decimal import Decimal
import logging

from . import services

logger = logging.getLogger(__name__)


class NotAuthenticated(Exception):
    pass


class UserStateContainer:
    """Base container: items, loading and error for one signed-in user"""

    load_error_message = 'Failed to load items'

    def __init__(self, session):
        self.session = session
        self.items = []
        self.loading = False
        self.error = None
        self._listeners = []
        self._unsubscribe = session.subscribe(self._on_session_change)
        if session.is_authenticated:
            self.refresh()

    @property
    def user(self):
        return self.session.user

    @property
    def is_authenticated(self):
        return self.session.is_authenticated

    def subscribe(self, listener):
        """Register listener(container), called whenever items change"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def detach(self):
        """Stop observing the session"""
        self._unsubscribe()

    def fetch(self, user):
        raise NotImplementedError

    def refresh(self):
        if not self.user:
            return
        self.loading = True
        self.error = None
        try:
            self._set_items(self.fetch(self.user))
        except Exception as e:
            logger.error(f"{self.load_error_message}: {e}")
            self.error = self.load_error_message
        finally:
            self.loading = False

    def _on_session_change(self, user):
        if user is not None:
            self.refresh()
        else:
            self.error = None
            self._set_items([])

    def _set_items(self, items):
        self.items = list(items)
        for listener in list(self._listeners):
            listener(self)

    def _require_auth(self, message):
        if not self.is_authenticated:
            raise NotAuthenticated(message)

    def _mutate(self, action, error_message, refetch=True):
        self.loading = True
        self.error = None
        try:
            result = action()
            if refetch:
                self.refresh()
            return result
        except Exception as e:
            logger.error(f"{error_message}: {e}")
            self.error = error_message
            raise
        finally:
            self.loading = False


class CartContainer(UserStateContainer):
    load_error_message = 'Failed to load cart items'

    def __init__(self, session):
        self.applied_coupon = None
        super().__init__(session)

    def fetch(self, user):
        return services.get_cart_items(user)

    def add_to_cart(self, product, quantity=1, size=None, color=None):
        self._require_auth('Please login to add items to cart')
        self._mutate(
            lambda: services.add_to_cart(self.user, product, quantity, size, color),
            'Failed to add item to cart',
        )
        return True

    def update_quantity(self, item_id, quantity):
        if not self.is_authenticated:
            return None
        return self._mutate(
            lambda: services.update_cart_quantity(self.user, item_id, quantity),
            'Failed to update quantity',
        )

    def remove_from_cart(self, item_id):
        if not self.is_authenticated:
            return None
        return self._mutate(
            lambda: services.remove_from_cart(self.user, item_id),
            'Failed to remove item from cart',
        )

    def clear_cart(self):
        if not self.is_authenticated:
            return None

        def clear():
            deleted = services.clear_cart(self.user)
            self._set_items([])
            return deleted

        return self._mutate(clear, 'Failed to clear cart', refetch=False)

    def apply_coupon(self, coupon_result):
        self.applied_coupon = coupon_result

    def remove_coupon(self):
        self.applied_coupon = None

    @property
    def is_empty(self):
        return not self.items

    @property
    def summary(self):
        return services.cart_summary(self.items, self.applied_coupon)


class WishlistContainer(UserStateContainer):
    load_error_message = 'Failed to load wishlist items'

    def fetch(self, user):
        return services.get_wishlist_items(user)

    def add_to_wishlist(self, product):
        self._require_auth('Please login to add items to wishlist')
        self._mutate(
            lambda: services.add_to_wishlist(self.user, product),
            'Failed to add item to wishlist',
        )
        return True

    def remove_from_wishlist(self, product_id):
        if not self.is_authenticated:
            return None
        return self._mutate(
            lambda: services.remove_from_wishlist(self.user, product_id),
            'Failed to remove item from wishlist',
        )

    def is_in_wishlist(self, product_id):
        return any(item.product_id == product_id for item in self.items)

    def toggle_wishlist(self, product):
        """Add if absent, remove if present; returns the new membership"""
        self._require_auth('Please login to manage wishlist')
        if self.is_in_wishlist(product.id):
            self.remove_from_wishlist(product.id)
            return False
        self.add_to_wishlist(product)
        return True

    @property
    def summary(self):
        return {
            'item_count': len(self.items),
            'total_value': sum((item.product.price for item in self.items), Decimal('0.00')),
            'items': self.items,
        }
