"""
Namespaced key/value persistence with per-key expiry.

Every entry is stored as JSON ``{"data": ..., "timestamp": <ms>}`` under
``prefix + key``. Storage failures are logged and never raised: reads return
None and writes become no-ops.
"""
import json
import logging
import time

from django.db import transaction

from .models import PersistedState

logger = logging.getLogger(__name__)

SECOND = 1000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR

CLEANUP_MAX_AGE = 7 * DAY


class StateKeys:
    CHECKOUT_FORM = 'checkout_form'
    CHECKOUT_STEP = 'checkout_step'
    CUSTOM_DESIGN_FORM = 'custom_design_form'
    CUSTOM_DESIGN_STEP = 'custom_design_step'
    CUSTOM_DESIGN_IMAGE = 'custom_design_image'
    ADMIN_TAB = 'admin_tab'
    ADMIN_PRODUCT_FORM = 'admin_product_form'
    ADMIN_CATEGORY_FORM = 'admin_category_form'
    ADMIN_SETTINGS_FORM = 'admin_settings_form'
    AUTH_FORM = 'auth_form'
    LAST_ROUTE = 'last_route'
    FORM_AUTOSAVE = 'form_autosave'
    SORT_FILTER_STATE = 'sort_filter_state'
    PRODUCT_QUICK_VIEW = 'product_quick_view'
    USER_PREFERENCES = 'user_preferences'


# Routes that are never remembered as "last visited"
EXCLUDED_ROUTE_PREFIXES = ('/login', '/auth', '/admin')


class MemoryStorage:
    """Dict-backed storage, used outside a request and in tests"""

    def __init__(self):
        self._data = {}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, raw):
        self._data[key] = raw

    def delete(self, key):
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class DatabaseStorage:
    """Storage scoped to one browser profile, backed by PersistedState rows"""

    def __init__(self, owner_key):
        self.owner_key = owner_key

    def get(self, key):
        row = PersistedState.objects.filter(owner_key=self.owner_key, key=key).only('data').first()
        return row.data if row else None

    def set(self, key, raw):
        with transaction.atomic():
            PersistedState.objects.update_or_create(
                owner_key=self.owner_key,
                key=key,
                defaults={'data': raw},
            )

    def delete(self, key):
        PersistedState.objects.filter(owner_key=self.owner_key, key=key).delete()

    def keys(self):
        return list(PersistedState.objects.filter(owner_key=self.owner_key).values_list('key', flat=True))


def owner_key_for_request(request):
    """Identify the browser profile: the signed-in user, else the X-Client-Id header"""
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    client_id = request.META.get('HTTP_X_CLIENT_ID', '').strip()
    if client_id:
        return f"client:{client_id[:80]}"
    return None


class StatePersistence:
    """
    Persistence store for client state (forms, steps, routes, preferences).

    A single instance is created per owner and passed to whatever needs it;
    expired entries are swept by calling ``cleanup_expired_data`` explicitly.
    """

    def __init__(self, storage, prefix='dharika_', clock=None):
        self.storage = storage
        self.prefix = prefix
        self._clock = clock or time.time

    @classmethod
    def for_request(cls, request, prefix=None):
        from django.conf import settings

        owner_key = owner_key_for_request(request)
        storage = DatabaseStorage(owner_key) if owner_key else MemoryStorage()
        return cls(storage, prefix=prefix or settings.STATE_PREFIX)

    def now(self):
        """Current time in milliseconds"""
        return int(self._clock() * 1000)

    def _full_key(self, key):
        return self.prefix + key

    # Generic save/load

    def save(self, key, data):
        try:
            payload = json.dumps({'data': data, 'timestamp': self.now()})
            self.storage.set(self._full_key(key), payload)
        except Exception as e:
            logger.warning(f"Failed to save persisted state {key}: {e}")

    def load(self, key, max_age=None):
        try:
            stored = self.storage.get(self._full_key(key))
            if not stored:
                return None

            parsed = json.loads(stored)

            if max_age and self.now() - parsed['timestamp'] > max_age:
                self.remove(key)
                return None

            return parsed['data']
        except Exception as e:
            logger.warning(f"Failed to load persisted state {key}: {e}")
            return None

    def remove(self, key):
        try:
            self.storage.delete(self._full_key(key))
        except Exception as e:
            logger.warning(f"Failed to remove persisted state {key}: {e}")

    def clear(self):
        try:
            for full_key in self.storage.keys():
                if full_key.startswith(self.prefix):
                    self.storage.delete(full_key)
        except Exception as e:
            logger.warning(f"Failed to clear persisted state: {e}")

    def keys(self):
        """Un-prefixed keys currently stored"""
        try:
            return [k[len(self.prefix):] for k in self.storage.keys() if k.startswith(self.prefix)]
        except Exception as e:
            logger.warning(f"Failed to list persisted state: {e}")
            return []

    def cleanup_expired_data(self, max_age=CLEANUP_MAX_AGE):
        """Drop entries older than max_age and entries that cannot be parsed"""
        removed = 0
        try:
            now = self.now()
            for full_key in self.storage.keys():
                if not full_key.startswith(self.prefix):
                    continue
                try:
                    parsed = json.loads(self.storage.get(full_key))
                    expired = now - parsed['timestamp'] > max_age
                except (TypeError, ValueError, KeyError):
                    expired = True
                if expired:
                    self.storage.delete(full_key)
                    removed += 1
        except Exception as e:
            logger.warning(f"Failed to cleanup expired persisted state: {e}")
        return removed

    # Checkout

    def save_checkout_form(self, form_data):
        self.save(StateKeys.CHECKOUT_FORM, form_data)

    def load_checkout_form(self):
        return self.load(StateKeys.CHECKOUT_FORM, DAY)

    def clear_checkout_form(self):
        self.remove(StateKeys.CHECKOUT_FORM)

    def save_checkout_step(self, step):
        self.save(StateKeys.CHECKOUT_STEP, int(step))

    def load_checkout_step(self):
        return self.load(StateKeys.CHECKOUT_STEP, DAY)

    def clear_checkout_step(self):
        self.remove(StateKeys.CHECKOUT_STEP)

    # Custom design request

    def save_custom_design_form(self, form_data):
        self.save(StateKeys.CUSTOM_DESIGN_FORM, form_data)

    def load_custom_design_form(self):
        return self.load(StateKeys.CUSTOM_DESIGN_FORM, 7 * DAY)

    def save_custom_design_step(self, step):
        self.save(StateKeys.CUSTOM_DESIGN_STEP, step)

    def load_custom_design_step(self):
        return self.load(StateKeys.CUSTOM_DESIGN_STEP, 7 * DAY)

    def save_custom_design_image(self, image_data):
        self.save(StateKeys.CUSTOM_DESIGN_IMAGE, image_data)

    def load_custom_design_image(self):
        return self.load(StateKeys.CUSTOM_DESIGN_IMAGE, 7 * DAY)

    def clear_custom_design_form(self):
        self.remove(StateKeys.CUSTOM_DESIGN_FORM)
        self.remove(StateKeys.CUSTOM_DESIGN_STEP)
        self.remove(StateKeys.CUSTOM_DESIGN_IMAGE)

    # Admin console

    def save_admin_tab(self, tab):
        self.save(StateKeys.ADMIN_TAB, tab)

    def load_admin_tab(self):
        return self.load(StateKeys.ADMIN_TAB, DAY)

    def save_admin_product_form(self, form_data):
        self.save(StateKeys.ADMIN_PRODUCT_FORM, form_data)

    def load_admin_product_form(self):
        return self.load(StateKeys.ADMIN_PRODUCT_FORM, HOUR)

    def clear_admin_product_form(self):
        self.remove(StateKeys.ADMIN_PRODUCT_FORM)

    def save_admin_category_form(self, form_data):
        self.save(StateKeys.ADMIN_CATEGORY_FORM, form_data)

    def load_admin_category_form(self):
        return self.load(StateKeys.ADMIN_CATEGORY_FORM, HOUR)

    def clear_admin_category_form(self):
        self.remove(StateKeys.ADMIN_CATEGORY_FORM)

    def save_admin_settings_form(self, form_data):
        self.save(StateKeys.ADMIN_SETTINGS_FORM, form_data)

    def load_admin_settings_form(self):
        return self.load(StateKeys.ADMIN_SETTINGS_FORM, HOUR)

    def clear_admin_settings_form(self):
        self.remove(StateKeys.ADMIN_SETTINGS_FORM)

    # Auth form (password is never stored)

    def save_auth_form(self, form_data):
        safe_data = dict(form_data or {})
        safe_data.pop('password', None)
        safe_data.pop('password_confirm', None)
        self.save(StateKeys.AUTH_FORM, safe_data)

    def load_auth_form(self):
        return self.load(StateKeys.AUTH_FORM, 30 * MINUTE)

    def clear_auth_form(self):
        self.remove(StateKeys.AUTH_FORM)

    # Routes

    def save_last_route(self, route):
        pathname = (route or {}).get('pathname', '')
        if not pathname or pathname.startswith(EXCLUDED_ROUTE_PREFIXES):
            return False
        self.save(StateKeys.LAST_ROUTE, {
            'pathname': pathname,
            'search': route.get('search', ''),
            'hash': route.get('hash', ''),
            'state': route.get('state'),
        })
        return True

    def load_last_route(self):
        return self.load(StateKeys.LAST_ROUTE, DAY)

    def restore_last_route(self, current_pathname):
        """Saved route to navigate back to, or None when already there"""
        last_route = self.load_last_route()
        if last_route and last_route.get('pathname') != current_pathname:
            return last_route
        return None

    def clear_last_route(self):
        self.remove(StateKeys.LAST_ROUTE)

    # Generic form autosave map keyed by form id

    def save_form_autosave(self, form_id, form_data):
        existing = self.load(StateKeys.FORM_AUTOSAVE) or {}
        existing[form_id] = form_data
        self.save(StateKeys.FORM_AUTOSAVE, existing)

    def load_form_autosave(self, form_id):
        data = self.load(StateKeys.FORM_AUTOSAVE, DAY)
        return data.get(form_id) if data else None

    def clear_form_autosave(self, form_id):
        existing = self.load(StateKeys.FORM_AUTOSAVE) or {}
        existing.pop(form_id, None)
        self.save(StateKeys.FORM_AUTOSAVE, existing)

    # Sort / filter per category slug

    def save_sort_filter_state(self, category_slug, state):
        existing = self.load(StateKeys.SORT_FILTER_STATE) or {}
        existing[category_slug] = state
        self.save(StateKeys.SORT_FILTER_STATE, existing)

    def load_sort_filter_state(self, category_slug):
        data = self.load(StateKeys.SORT_FILTER_STATE, HOUR)
        return data.get(category_slug) if data else None

    # Product quick view

    def save_product_quick_view(self, product_id):
        self.save(StateKeys.PRODUCT_QUICK_VIEW, product_id)

    def load_product_quick_view(self):
        return self.load(StateKeys.PRODUCT_QUICK_VIEW, 10 * MINUTE)

    def clear_product_quick_view(self):
        self.remove(StateKeys.PRODUCT_QUICK_VIEW)

    # User preferences

    def save_user_preferences(self, preferences):
        self.save(StateKeys.USER_PREFERENCES, preferences)

    def load_user_preferences(self):
        return self.load(StateKeys.USER_PREFERENCES)
