"""
Test suite for the persistence store and form autosave
Tests: save/load, expiry, namespacing, storage failures, debounce, restore merge, API
"""
import json
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.persistence.autosave import FormAutosave
from backend.persistence.models import PersistedState
from backend.persistence.store import (
    StatePersistence, MemoryStorage, DatabaseStorage, StateKeys, SECOND, DAY, HOUR, MINUTE,
)


class FakeClock:
    """Controllable time source, in seconds"""

    def __init__(self, start=1_700_000_000.0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, milliseconds):
        self.current += milliseconds / 1000.0


class FailingStorage:
    """Storage whose every operation raises"""

    def get(self, key):
        raise OSError('storage unavailable')

    def set(self, key, raw):
        raise OSError('storage unavailable')

    def delete(self, key):
        raise OSError('storage unavailable')

    def keys(self):
        raise OSError('storage unavailable')


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to"""

    instances = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class StatePersistenceTests(TestCase):
    """Test the namespaced store"""

    def setUp(self):
        self.clock = FakeClock()
        self.storage = MemoryStorage()
        self.store = StatePersistence(self.storage, prefix='dharika_', clock=self.clock)

    def test_save_then_load_returns_value(self):
        """Test a saved value is returned unchanged"""
        payload = {'full_name': 'Asha Rao', 'items': [1, 2, 3], 'nested': {'a': None}}
        self.store.save('anything', payload)
        self.assertEqual(self.store.load('anything'), payload)

    def test_entry_format(self):
        """Test entries are stored as {data, timestamp} under the prefixed key"""
        self.store.save('checkout_step', 2)
        raw = json.loads(self.storage.get('dharika_checkout_step'))
        self.assertEqual(raw['data'], 2)
        self.assertEqual(raw['timestamp'], self.store.now())

    def test_load_missing_key_returns_none(self):
        self.assertIsNone(self.store.load('missing'))

    def test_load_within_max_age(self):
        """Test entries younger than max_age are returned"""
        self.store.save('k', 'v')
        self.clock.advance(HOUR - SECOND)
        self.assertEqual(self.store.load('k', HOUR), 'v')

    def test_load_expired_entry_removes_key(self):
        """Test entries older than max_age return None and are deleted"""
        self.store.save('k', 'v')
        self.clock.advance(HOUR + SECOND)
        self.assertIsNone(self.store.load('k', HOUR))
        self.assertIsNone(self.storage.get('dharika_k'))
        # Without max_age it is gone as well
        self.assertIsNone(self.store.load('k'))

    def test_load_without_max_age_never_expires(self):
        self.store.save('k', 'v')
        self.clock.advance(365 * DAY)
        self.assertEqual(self.store.load('k'), 'v')

    def test_remove(self):
        self.store.save('a', 1)
        self.store.save('b', 2)
        self.store.remove('a')
        self.assertIsNone(self.store.load('a'))
        self.assertEqual(self.store.load('b'), 2)

    def test_clear_only_touches_prefixed_keys(self):
        """Test clear() leaves keys outside the namespace alone"""
        self.storage.set('other_app_key', 'keep me')
        self.store.save('a', 1)
        self.store.save('b', 2)
        self.store.clear()
        self.assertEqual(self.store.keys(), [])
        self.assertEqual(self.storage.get('other_app_key'), 'keep me')

    def test_corrupt_entry_returns_none(self):
        self.storage.set('dharika_bad', '{not json')
        self.assertIsNone(self.store.load('bad'))

    def test_failing_storage_never_raises(self):
        """Test storage failures are swallowed: reads return None, writes no-op"""
        store = StatePersistence(FailingStorage())
        store.save('k', 'v')
        self.assertIsNone(store.load('k'))
        store.remove('k')
        store.clear()
        self.assertEqual(store.keys(), [])
        self.assertEqual(store.cleanup_expired_data(), 0)

    def test_cleanup_expired_data(self):
        """Test the sweep drops old and unparseable entries only"""
        self.store.save('old', 1)
        self.clock.advance(8 * DAY)
        self.store.save('fresh', 2)
        self.storage.set('dharika_garbage', 'nope')
        self.storage.set('unrelated', 'nope')

        removed = self.store.cleanup_expired_data()

        self.assertEqual(removed, 2)
        self.assertEqual(self.store.keys(), ['fresh'])
        self.assertEqual(self.storage.get('unrelated'), 'nope')

    def test_auth_form_never_stores_password(self):
        """Test password fields are stripped from the saved auth form"""
        self.store.save_auth_form({
            'email': 'asha@example.com',
            'full_name': 'Asha',
            'password': 'secret123',
            'password_confirm': 'secret123',
        })
        saved = self.store.load_auth_form()
        self.assertEqual(saved, {'email': 'asha@example.com', 'full_name': 'Asha'})
        self.assertNotIn('secret123', self.storage.get('dharika_auth_form'))

    def test_auth_form_expires_after_thirty_minutes(self):
        self.store.save_auth_form({'email': 'a@b.com'})
        self.clock.advance(30 * MINUTE + SECOND)
        self.assertIsNone(self.store.load_auth_form())

    def test_checkout_form_and_step(self):
        self.store.save_checkout_form({'city': 'Jaipur'})
        self.store.save_checkout_step(2)
        self.assertEqual(self.store.load_checkout_form(), {'city': 'Jaipur'})
        self.assertEqual(self.store.load_checkout_step(), 2)
        self.clock.advance(DAY + SECOND)
        self.assertIsNone(self.store.load_checkout_form())
        self.assertIsNone(self.store.load_checkout_step())

    def test_clear_custom_design_form_clears_step_and_image(self):
        self.store.save_custom_design_form({'occasion': 'Wedding'})
        self.store.save_custom_design_step(3)
        self.store.save_custom_design_image('data:image/png;base64,AAA')
        self.store.clear_custom_design_form()
        self.assertIsNone(self.store.load_custom_design_form())
        self.assertIsNone(self.store.load_custom_design_step())
        self.assertIsNone(self.store.load_custom_design_image())

    def test_last_route_skips_excluded_paths(self):
        """Test login/auth/admin routes are never remembered"""
        self.assertFalse(self.store.save_last_route({'pathname': '/login'}))
        self.assertFalse(self.store.save_last_route({'pathname': '/admin/products'}))
        self.assertIsNone(self.store.load_last_route())

        self.assertTrue(self.store.save_last_route({'pathname': '/products', 'search': '?sort=price_low'}))
        self.assertEqual(self.store.load_last_route()['search'], '?sort=price_low')

    def test_restore_last_route(self):
        self.store.save_last_route({'pathname': '/category/sarees'})
        self.assertIsNone(self.store.restore_last_route('/category/sarees'))
        self.assertEqual(self.store.restore_last_route('/')['pathname'], '/category/sarees')

    def test_form_autosave_map_is_keyed_by_form_id(self):
        self.store.save_form_autosave('contact', {'name': 'A'})
        self.store.save_form_autosave('review', {'rating': 5})
        self.store.clear_form_autosave('contact')
        self.assertIsNone(self.store.load_form_autosave('contact'))
        self.assertEqual(self.store.load_form_autosave('review'), {'rating': 5})

    def test_sort_filter_state_per_category(self):
        self.store.save_sort_filter_state('sarees', {'sort': 'price_low'})
        self.store.save_sort_filter_state('lehengas', {'sort': 'newest'})
        self.assertEqual(self.store.load_sort_filter_state('sarees'), {'sort': 'price_low'})
        self.clock.advance(HOUR + SECOND)
        self.assertIsNone(self.store.load_sort_filter_state('lehengas'))

    def test_product_quick_view_expires(self):
        self.store.save_product_quick_view(42)
        self.assertEqual(self.store.load_product_quick_view(), 42)
        self.clock.advance(10 * MINUTE + SECOND)
        self.assertIsNone(self.store.load_product_quick_view())


class DatabaseStorageTests(TestCase):
    """Test the PersistedState-backed storage"""

    def test_owners_are_isolated(self):
        first = StatePersistence(DatabaseStorage('client:one'))
        second = StatePersistence(DatabaseStorage('client:two'))
        first.save(StateKeys.CHECKOUT_STEP, 2)
        self.assertEqual(first.load(StateKeys.CHECKOUT_STEP), 2)
        self.assertIsNone(second.load(StateKeys.CHECKOUT_STEP))

    def test_save_overwrites_single_row(self):
        store = StatePersistence(DatabaseStorage('client:one'))
        store.save('k', 1)
        store.save('k', 2)
        self.assertEqual(PersistedState.objects.filter(owner_key='client:one').count(), 1)
        self.assertEqual(store.load('k'), 2)

    def test_cleanup_command(self):
        """Test the management command sweeps expired rows for every owner"""
        clock = FakeClock()
        store = StatePersistence(DatabaseStorage('client:one'), clock=clock)
        store.save('stale', 1)
        PersistedState.objects.filter(key='dharika_stale').update(
            data=json.dumps({'data': 1, 'timestamp': 0})
        )
        StatePersistence(DatabaseStorage('client:two')).save('fresh', 2)

        out = StringIO()
        call_command('cleanup_persisted_state', stdout=out)

        self.assertFalse(PersistedState.objects.filter(key='dharika_stale').exists())
        self.assertTrue(PersistedState.objects.filter(key='dharika_fresh').exists())
        self.assertIn('Removed 1 expired', out.getvalue())


class FormAutosaveTests(TestCase):
    """Test debounced autosave with a controllable timer"""

    def setUp(self):
        FakeTimer.instances = []
        self.store = StatePersistence(MemoryStorage())

    def make_autosave(self, form_data=None, **kwargs):
        return FormAutosave(self.store, 'custom_order', form_data=form_data, timer_factory=FakeTimer, **kwargs)

    def test_update_waits_for_debounce(self):
        """Test nothing is written until the timer fires"""
        autosave = self.make_autosave({'name': '', 'notes': ''})
        autosave.update(name='Meera')
        self.assertTrue(autosave.pending)
        self.assertIsNone(self.store.load_form_autosave('custom_order'))

        FakeTimer.instances[-1].fire()
        self.assertFalse(autosave.pending)
        self.assertEqual(self.store.load_form_autosave('custom_order'), {'name': 'Meera'})

    def test_each_change_restarts_window(self):
        """Test a newer keystroke cancels the previous timer"""
        autosave = self.make_autosave()
        autosave.update(name='M')
        first_timer = FakeTimer.instances[-1]
        autosave.update(name='Me')
        self.assertTrue(first_timer.cancelled)

        # A superseded timer that fires anyway must not save or clear the pending one
        first_timer.function()
        self.assertTrue(autosave.pending)
        self.assertIsNone(self.store.load_form_autosave('custom_order'))

        FakeTimer.instances[-1].fire()
        self.assertEqual(self.store.load_form_autosave('custom_order'), {'name': 'Me'})

    def test_excluded_and_empty_fields_not_saved(self):
        autosave = self.make_autosave(exclude_fields=['card_number'])
        autosave.update({'name': 'Meera', 'card_number': '4111', 'notes': ''})
        autosave.save_now()
        self.assertEqual(self.store.load_form_autosave('custom_order'), {'name': 'Meera'})

    def test_restore_fills_only_empty_fields(self):
        """Test saved values never overwrite what is already typed"""
        self.store.save_form_autosave('custom_order', {'name': 'Saved Name', 'city': 'Pune'})
        received = []
        autosave = self.make_autosave({'name': 'Typed Name', 'city': ''}, set_form_data=received.append)

        data = autosave.restore()

        self.assertEqual(data, {'name': 'Typed Name', 'city': 'Pune'})
        self.assertEqual(received[-1], data)

    def test_reload_restores_saved_field(self):
        """Test a value saved after the debounce survives a reload"""
        autosave = self.make_autosave({'name': ''})
        autosave.update(name='Meera')
        FakeTimer.instances[-1].fire()

        reloaded = self.make_autosave({'name': ''})
        self.assertEqual(reloaded.restore(), {'name': 'Meera'})

    def test_reload_before_debounce_keeps_newer_keystroke(self):
        """Test closing with a pending save flushes the newest value"""
        first = self.make_autosave({'name': ''})
        first.update(name='Meera')
        FakeTimer.instances[-1].fire()

        second = self.make_autosave({'name': ''})
        second.restore()
        second.update(name='Meera Iyer')
        second.close()

        third = self.make_autosave({'name': ''})
        self.assertEqual(third.restore(), {'name': 'Meera Iyer'})

    def test_close_without_flush_drops_pending(self):
        autosave = self.make_autosave()
        autosave.update(name='Meera')
        autosave.close(flush=False)
        self.assertIsNone(self.store.load_form_autosave('custom_order'))

    def test_clear_saved_data(self):
        autosave = self.make_autosave()
        autosave.update(name='Meera')
        autosave.save_now()
        autosave.clear_saved_data()
        self.assertIsNone(self.store.load_form_autosave('custom_order'))

    def test_disabled_autosave_is_inert(self):
        self.store.save_form_autosave('custom_order', {'name': 'Saved'})
        autosave = self.make_autosave({'name': ''}, enabled=False)
        self.assertEqual(autosave.restore(), {'name': ''})
        autosave.update(name='Typed')
        self.assertFalse(autosave.pending)

    def test_disabled_save_now_writes_nothing(self):
        autosave = self.make_autosave({'name': 'Meera'}, enabled=False)
        autosave.save_now()
        self.assertIsNone(self.store.load_form_autosave('custom_order'))

    def test_storage_failure_does_not_block_typing(self):
        autosave = FormAutosave(StatePersistence(FailingStorage()), 'f', timer_factory=FakeTimer)
        autosave.update(name='Meera')
        FakeTimer.instances[-1].fire()
        self.assertEqual(autosave.form_data, {'name': 'Meera'})


class PersistenceAPITests(TestCase):
    """Test the state endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_requires_client_identity(self):
        response = self.client.get('/api/v1/state/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_anonymous_client_round_trip(self):
        headers = {'HTTP_X_CLIENT_ID': 'browser-123'}
        response = self.client.put(
            '/api/v1/state/user_preferences/', {'data': {'theme': 'dark'}}, format='json', **headers
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/state/user_preferences/', **headers)
        self.assertEqual(response.data['data'], {'theme': 'dark'})

        response = self.client.get('/api/v1/state/', **headers)
        self.assertEqual(response.data['keys'], ['user_preferences'])

    def test_auth_form_endpoint_strips_password(self):
        headers = {'HTTP_X_CLIENT_ID': 'browser-123'}
        self.client.put(
            '/api/v1/state/auth_form/',
            {'data': {'email': 'a@b.com', 'password': 'secret'}},
            format='json', **headers
        )
        response = self.client.get('/api/v1/state/auth_form/', **headers)
        self.assertEqual(response.data['data'], {'email': 'a@b.com'})

    def test_authenticated_user_state(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        self.client.put('/api/v1/state/checkout_step/', {'data': 2}, format='json')
        self.assertTrue(PersistedState.objects.filter(owner_key=f'user:{user.pk}').exists())

        response = self.client.delete('/api/v1/state/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PersistedState.objects.filter(owner_key=f'user:{user.pk}').exists())

    def test_form_autosave_endpoint(self):
        headers = {'HTTP_X_CLIENT_ID': 'browser-123'}
        response = self.client.put(
            '/api/v1/forms/contact/autosave/',
            {'data': {'name': 'Meera', 'message': '', 'otp': '1234'}, 'exclude_fields': ['otp']},
            format='json', **headers
        )
        self.assertEqual(response.data['data'], {'name': 'Meera'})
        response = self.client.get('/api/v1/forms/contact/autosave/', **headers)
        self.assertEqual(response.data['data'], {'name': 'Meera'})

    def test_form_autosave_restore_merges_into_current_form(self):
        headers = {'HTTP_X_CLIENT_ID': 'browser-123'}
        self.client.put(
            '/api/v1/forms/contact/autosave/',
            {'data': {'name': 'Meera', 'email': 'meera@example.com', 'otp': '1234'}},
            format='json', **headers
        )
        current = json.dumps({'name': 'Ananya', 'email': '', 'message': 'Hello'})
        response = self.client.get(
            '/api/v1/forms/contact/autosave/', {'current': current, 'exclude_fields': 'otp'}, **headers
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'], {'name': 'Ananya', 'email': 'meera@example.com', 'message': 'Hello'})

        response = self.client.get('/api/v1/forms/contact/autosave/', {'current': '[1, 2]'}, **headers)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete('/api/v1/forms/contact/autosave/', **headers)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get('/api/v1/forms/contact/autosave/', {'current': current}, **headers)
        self.assertEqual(response.data['data'], {'name': 'Ananya', 'email': '', 'message': 'Hello'})

    def test_last_route_endpoint(self):
        headers = {'HTTP_X_CLIENT_ID': 'browser-123'}
        response = self.client.put('/api/v1/state/routes/last/', {'pathname': '/auth'}, format='json', **headers)
        self.assertFalse(response.data['saved'])
        self.client.put('/api/v1/state/routes/last/', {'pathname': '/wishlist'}, format='json', **headers)
        response = self.client.get('/api/v1/state/routes/last/?current=/', **headers)
        self.assertEqual(response.data['route']['pathname'], '/wishlist')

    def test_invalid_max_age(self):
        response = self.client.get('/api/v1/state/k/?max_age=abc', HTTP_X_CLIENT_ID='browser-123')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
