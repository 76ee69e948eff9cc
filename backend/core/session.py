"""
Signed-in session subject.

Cart and wishlist containers subscribe to an AuthSession and re-synchronise
whenever the signed-in identity changes.
"""
import logging

logger = logging.getLogger(__name__)


class AuthSession:
    """Holds the current user and notifies observers when identity changes"""

    def __init__(self, user=None):
        self._user = None
        self._observers = []
        if user is not None:
            self._user = user if getattr(user, 'is_authenticated', False) else None

    @property
    def user(self):
        return self._user

    @property
    def is_authenticated(self):
        return self._user is not None

    def subscribe(self, callback):
        """Register callback(user) and return an unsubscribe function"""
        self._observers.append(callback)

        def unsubscribe():
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback):
        if callback in self._observers:
            self._observers.remove(callback)

    def sign_in(self, user):
        if not getattr(user, 'is_authenticated', False):
            raise ValueError('Cannot sign in an anonymous user')
        previous = self._user
        self._user = user
        if previous is None or previous.pk != user.pk:
            self._notify()

    def sign_out(self):
        if self._user is None:
            return
        self._user = None
        self._notify()

    def _notify(self):
        logger.debug(f"Auth session changed: user={getattr(self._user, 'pk', None)}, observers={len(self._observers)}")
        for callback in list(self._observers):
            callback(self._user)
