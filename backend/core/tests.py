"""
Test suite for core
Tests: money formatting, auth session observers, audit logging, auth endpoints
"""
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog, Setting
from backend.core.session import AuthSession
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import format_inr, create_audit_log
from backend.persistence.store import StatePersistence, DatabaseStorage


class FormatINRTests(TestCase):

    def test_whole_rupees(self):
        self.assertEqual(format_inr(12999), '₹12,999')
        self.assertEqual(format_inr(Decimal('12999.00')), '₹12,999')
        self.assertEqual(format_inr(999), '₹999')

    def test_indian_grouping(self):
        self.assertEqual(format_inr(1234567), '₹12,34,567')
        self.assertEqual(format_inr(100000), '₹1,00,000')

    def test_fraction(self):
        self.assertEqual(format_inr(Decimal('1499.50')), '₹1,499.5')
        self.assertEqual(format_inr('1299.90'), '₹1,299.9')
        self.assertEqual(format_inr(Decimal('0.456')), '₹0.46')

    def test_missing_or_invalid(self):
        self.assertEqual(format_inr(None), '₹0')
        self.assertEqual(format_inr('abc'), '₹0')

    def test_negative(self):
        self.assertEqual(format_inr(-2500), '-₹2,500')


class AuthSessionTests(TestCase):
    """Test the signed-in session notifies observers on identity changes"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.session = AuthSession()
        self.seen = []
        self.session.subscribe(self.seen.append)

    def test_sign_in_and_out(self):
        self.assertFalse(self.session.is_authenticated)
        self.session.sign_in(self.user)
        self.assertTrue(self.session.is_authenticated)
        self.session.sign_out()
        self.assertEqual(self.seen, [self.user, None])

    def test_same_user_does_not_notify(self):
        self.session.sign_in(self.user)
        self.session.sign_in(self.user)
        self.assertEqual(self.seen, [self.user])

    def test_switching_user_notifies(self):
        other = TestDataFactory.create_user()
        self.session.sign_in(self.user)
        self.session.sign_in(other)
        self.assertEqual(self.seen, [self.user, other])

    def test_sign_out_when_signed_out_is_silent(self):
        self.session.sign_out()
        self.assertEqual(self.seen, [])

    def test_unsubscribe(self):
        other_seen = []
        unsubscribe = self.session.subscribe(other_seen.append)
        unsubscribe()
        self.session.sign_in(self.user)
        self.assertEqual(other_seen, [])

    def test_anonymous_user_rejected(self):
        from django.contrib.auth.models import AnonymousUser
        with self.assertRaises(ValueError):
            self.session.sign_in(AnonymousUser())
        self.assertFalse(AuthSession(AnonymousUser()).is_authenticated)


class AuditLogTests(TestCase):

    def test_create_with_user(self):
        user = TestDataFactory.create_user()
        log = create_audit_log(
            user=user, action='cart_add', model_name='CartItem', object_id=1,
            changes={'quantity': 2}, object_name='Banarasi Silk Saree',
        )
        self.assertEqual(log.user, user)
        self.assertEqual(log.object_id, '1')
        self.assertEqual(log.changes, {'quantity': 2})

    def test_missing_fields_skipped(self):
        self.assertIsNone(create_audit_log(action='cart_add', model_name='CartItem'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_failure_never_raises(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            result = create_audit_log(action='cart_add', model_name='CartItem', object_id='1')
        self.assertIsNone(result)


class AuthAPITests(TestCase):
    """Test registration, login and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_returns_tokens_and_clears_saved_form(self):
        store = StatePersistence(DatabaseStorage('client:browser-1'))
        store.save_auth_form({'email': 'meera@example.com', 'full_name': 'Meera', 'password': 'secret'})
        self.assertNotIn('password', store.load_auth_form())

        response = self.client.post('/api/v1/auth/register/', {
            'username': 'meera',
            'email': 'meera@example.com',
            'full_name': 'Meera Iyer',
            'password': 'Kanjeevaram#2024',
            'password_confirm': 'Kanjeevaram#2024',
        }, format='json', HTTP_X_CLIENT_ID='browser-1')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['full_name'], 'Meera Iyer')
        self.assertIsNone(store.load_auth_form())

    def test_register_password_mismatch(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'meera',
            'email': 'meera@example.com',
            'password': 'Kanjeevaram#2024',
            'password_confirm': 'Different#2024',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='meera@example.com')
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'meera2',
            'email': 'MEERA@example.com',
            'password': 'Kanjeevaram#2024',
            'password_confirm': 'Kanjeevaram#2024',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login(self):
        TestDataFactory.create_user(username='ananya', password='Lehenga#2024', full_name='Ananya')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'ananya', 'password': 'Lehenga#2024',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'ananya')

    def test_me_requires_auth(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_update(self):
        user = TestDataFactory.create_user(username='ananya')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['display_name'], 'ananya')
        self.assertFalse(response.data['is_admin'])

        response = self.client.patch('/api/v1/auth/me/', {
            'full_name': 'Ananya Sharma', 'phone': '9876543210',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['display_name'], 'Ananya Sharma')
        self.assertEqual(response.data['phone'], '9876543210')

    def test_user_admin_is_staff_only(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(self.client.get('/api/v1/users/').status_code, status.HTTP_403_FORBIDDEN)

    def test_deleting_user_deactivates(self):
        customer = TestDataFactory.create_user()
        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.delete(f'/api/v1/users/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        customer.refresh_from_db()
        self.assertFalse(customer.is_active)

    def test_customers_see_only_their_audit_logs(self):
        user = TestDataFactory.create_user()
        other = TestDataFactory.create_user()
        create_audit_log(user=user, action='cart_add', model_name='CartItem', object_id='1')
        create_audit_log(user=other, action='cart_add', model_name='CartItem', object_id='2')

        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual([log['object_id'] for log in response.data], ['1'])


class SiteSettingsTests(TestCase):
    """Test the public site settings map and the staff settings admin"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user(is_staff=True)
        Setting.objects.create(key='site_name', value='Dharika')
        Setting.objects.create(key='hero_content', value='[{"title": "Festive Edit", "image": "/hero-1.jpg"}]')
        Setting.objects.create(key='footer_content', value='{"phone": "+91 98765 43210"}')
        Setting.objects.create(key='promotional_messages', value='[not json')

    def test_public_read_without_sign_in(self):
        response = self.client.get('/api/v1/site-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['site_name'], 'Dharika')
        self.assertEqual(response.data['hero_content'], [{'title': 'Festive Edit', 'image': '/hero-1.jpg'}])
        self.assertEqual(response.data['footer_content'], {'phone': '+91 98765 43210'})
        self.assertEqual(response.data['promotional_messages'], '[not json')

    def test_public_endpoint_is_read_only(self):
        response = self.client.post('/api/v1/site-settings/', {'site_name': 'Other'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_settings_admin_is_staff_only(self):
        self.assertEqual(self.client.get('/api/v1/settings/').status_code, status.HTTP_401_UNAUTHORIZED)
        self.client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(self.client.get('/api/v1/settings/').status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_create_update_delete_by_key(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/settings/', {
            'key': 'site_description', 'value': 'Exquisite Traditional Indian Fashion',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.patch('/api/v1/settings/site_name/', {'value': 'Dharika Fashion'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/v1/site-settings/').data['site_name'], 'Dharika Fashion')

        log = AuditLog.objects.get(model_name='Setting', action='update')
        self.assertEqual(log.changes, {'value': {'old': 'Dharika', 'new': 'Dharika Fashion'}})

        response = self.client.delete('/api/v1/settings/site_description/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Setting.objects.filter(key='site_description').exists())
        self.assertEqual(self.client.get('/api/v1/settings/missing/').status_code, status.HTTP_404_NOT_FOUND)
