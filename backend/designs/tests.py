"""
Test suite for custom design requests
Tests: submission by customers and guests, saved form clearing, listing, staff status updates
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.designs.models import CustomDesignRequest
from backend.persistence.store import StatePersistence, DatabaseStorage


class CustomDesignRequestTests(TestCase):
    """Test submitting and reviewing custom design requests"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.customer = TestDataFactory.create_user(full_name='Meera Shah')
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.payload = {
            'full_name': 'Meera Shah',
            'email': 'meera@example.com',
            'contact_phone': '9876543210',
            'design_type': 'Lehenga',
            'occasion': 'Wedding',
            'description': 'Pastel lehenga with mirror work',
            'budget': '35000.00',
            'deadline': '2026-12-15',
            'preferred_colors': 'Mint, Ivory',
        }

    def saved_store(self, owner_key):
        store = StatePersistence(DatabaseStorage(owner_key))
        store.save_custom_design_form({'full_name': 'Meera Shah', 'occasion': 'Wedding'})
        store.save_custom_design_step(2)
        store.save_custom_design_image('data:image/png;base64,iVBORw0KGgo=')
        return store

    def test_create_clears_saved_design_form(self):
        store = self.saved_store(f'user:{self.customer.pk}')

        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/custom-designs/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')

        design = CustomDesignRequest.objects.get(pk=response.data['id'])
        self.assertEqual(design.user, self.customer)
        self.assertEqual(design.budget, Decimal('35000.00'))
        self.assertEqual(design.reference_images, ['data:image/png;base64,iVBORw0KGgo='])

        self.assertIsNone(store.load_custom_design_form())
        self.assertIsNone(store.load_custom_design_step())
        self.assertIsNone(store.load_custom_design_image())
        self.assertTrue(AuditLog.objects.filter(model_name='CustomDesignRequest', object_id=str(design.id)).exists())

    def test_posted_images_take_precedence_over_saved_image(self):
        self.saved_store(f'user:{self.customer.pk}')
        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/custom-designs/', {
            **self.payload, 'reference_images': ['https://cdn.example.com/ref-1.jpg'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['reference_images'], ['https://cdn.example.com/ref-1.jpg'])

    def test_guest_create_clears_browser_form(self):
        store = self.saved_store('client:browser-123')
        response = self.client.post('/api/v1/custom-designs/', self.payload, format='json',
                                    HTTP_X_CLIENT_ID='browser-123')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(CustomDesignRequest.objects.get(pk=response.data['id']).user)
        self.assertIsNone(store.load_custom_design_form())

    def test_invalid_request_keeps_saved_form(self):
        store = self.saved_store(f'user:{self.customer.pk}')
        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/custom-designs/', {'full_name': 'Meera Shah'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        self.assertEqual(store.load_custom_design_form(), {'full_name': 'Meera Shah', 'occasion': 'Wedding'})
        self.assertEqual(CustomDesignRequest.objects.count(), 0)

    def test_negative_budget_rejected(self):
        response = self.client.post('/api/v1/custom-designs/', {**self.payload, 'budget': '-1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('budget', response.data)

    def test_list_own_requests(self):
        other = TestDataFactory.create_user()
        CustomDesignRequest.objects.create(user=self.customer, full_name='Meera Shah', email='meera@example.com')
        CustomDesignRequest.objects.create(user=other, full_name='Other', email='other@example.com')

        response = self.client.get('/api/v1/custom-designs/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/custom-designs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['full_name'] for d in response.data], ['Meera Shah'])

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/custom-designs/', {'all': 'true'})
        self.assertEqual(len(response.data), 2)

    def test_staff_status_update(self):
        design = CustomDesignRequest.objects.create(user=self.customer, full_name='Meera Shah', email='meera@example.com')

        self.client.authenticate_user(self.customer)
        response = self.client.patch(f'/api/v1/custom-designs/{design.id}/status/', {'status': 'reviewing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/custom-designs/{design.id}/status/', {'status': 'in_progress'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        design.refresh_from_db()
        self.assertEqual(design.status, 'in_progress')

        response = self.client.patch(f'/api/v1/custom-designs/{design.id}/status/', {'status': 'shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
