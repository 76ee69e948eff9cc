"""
Test suite for catalog
Tests: product listing filters and sort, caching, product detail, staff-only writes
"""
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from backend.catalog.models import Category, Product
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.persistence.store import StatePersistence, DatabaseStorage


class ProductListTests(TestCase):
    """Test the public product listing"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.sarees = TestDataFactory.create_category(name='Sarees')
        self.lehengas = TestDataFactory.create_category(name='Lehengas')
        self.banarasi = TestDataFactory.create_product(
            name='Banarasi Silk Saree', category=self.sarees, price=Decimal('12999.00'),
            sizes=['Free Size'], colors=['Maroon'], is_featured=True,
        )
        self.chiffon = TestDataFactory.create_product(
            name='Chiffon Saree', category=self.sarees, price=Decimal('2499.00'),
            sizes=['Free Size'], colors=['Peach'],
        )
        self.bridal = TestDataFactory.create_product(
            name='Bridal Lehenga', category=self.lehengas, price=Decimal('45999.00'),
            sizes=['S', 'M'], colors=['Red', 'Gold'],
        )
        TestDataFactory.create_product(name='Retired Kurti', is_active=False)

    def names(self, response):
        return [p['name'] for p in response.data['results']]

    def test_lists_active_products_only(self):
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertNotIn('Retired Kurti', self.names(response))

    def test_category_filter(self):
        response = self.client.get('/api/v1/products/', {'category': 'sarees'})
        self.assertEqual(set(self.names(response)), {'Banarasi Silk Saree', 'Chiffon Saree'})

    def test_price_range_and_sort(self):
        response = self.client.get('/api/v1/products/', {'min_price': '2000', 'max_price': '20000', 'sort': 'price_high'})
        self.assertEqual(self.names(response), ['Banarasi Silk Saree', 'Chiffon Saree'])

    def test_size_and_color_filters(self):
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'size': 'M'})), ['Bridal Lehenga'])
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'color': 'gold'})), ['Bridal Lehenga'])

    def test_search_matches_every_word(self):
        response = self.client.get('/api/v1/products/', {'search': 'silk saree'})
        self.assertEqual(self.names(response), ['Banarasi Silk Saree'])

    def test_featured(self):
        response = self.client.get('/api/v1/products/', {'featured': 'true'})
        self.assertEqual(self.names(response), ['Banarasi Silk Saree'])

    def test_price_display(self):
        response = self.client.get('/api/v1/products/', {'search': 'Banarasi'})
        self.assertEqual(response.data['results'][0]['price_display'], '₹12,999')

    def test_pagination(self):
        response = self.client.get('/api/v1/products/', {'sort': 'price_low', 'limit': 2, 'page': 2})
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(self.names(response), ['Bridal Lehenga'])

    def test_cached_until_product_changes(self):
        first = self.client.get('/api/v1/products/')
        self.assertEqual(first['X-Cache'], 'MISS')
        second = self.client.get('/api/v1/products/')
        self.assertEqual(second['X-Cache'], 'HIT')

        TestDataFactory.create_product(name='Anarkali Suit')
        third = self.client.get('/api/v1/products/')
        self.assertEqual(third['X-Cache'], 'MISS')
        self.assertEqual(third.data['count'], 4)

    def test_saved_sort_applies_to_category(self):
        """Test a signed-in shopper's saved sort is used when the query omits one"""
        user = TestDataFactory.create_user()
        store = StatePersistence(DatabaseStorage(f'user:{user.pk}'))
        store.save_sort_filter_state('sarees', {'sort': 'price_low'})

        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/products/', {'category': 'sarees'})
        self.assertEqual(self.names(response), ['Chiffon Saree', 'Banarasi Silk Saree'])

        response = self.client.get('/api/v1/products/', {'category': 'sarees', 'sort': 'price_high'})
        self.assertEqual(self.names(response), ['Banarasi Silk Saree', 'Chiffon Saree'])

    def test_saved_size_and_color_apply_to_category(self):
        user = TestDataFactory.create_user()
        store = StatePersistence(DatabaseStorage(f'user:{user.pk}'))
        store.save_sort_filter_state('lehengas', {'size': 'M', 'color': 'GOLD'})
        TestDataFactory.create_product(
            name='Mirror Work Lehenga', category=self.lehengas, sizes=['L'], colors=['Gold'],
        )

        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/products/', {'category': 'lehengas'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Bridal Lehenga'])

    def test_size_filter_combined_with_other_filters(self):
        response = self.client.get('/api/v1/products/', {'size': 'Free Size', 'color': 'peach', 'max_price': '5000'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Chiffon Saree'])


class ProductDetailTests(TestCase):
    """Test product detail and staff management"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.customer = TestDataFactory.create_user()
        self.category = TestDataFactory.create_category(name='Suits')
        self.product = TestDataFactory.create_product(name='Chanderi Suit Set', category=self.category)

    def test_detail_by_slug(self):
        response = self.client.get(f'/api/v1/products/{self.product.slug}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category_name'], 'Suits')

    def test_inactive_product_hidden_from_customers(self):
        self.product.is_active = False
        self.product.save()
        response = self.client.get(f'/api/v1/products/{self.product.slug}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/products/{self.product.slug}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_customer_cannot_create(self):
        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/products/', {
            'name': 'Organza Saree', 'slug': 'organza-saree', 'price': '5999.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_create_update_delete(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/products/', {
            'name': 'Organza Saree',
            'slug': 'organza-saree',
            'price': '5999.00',
            'category': self.category.id,
            'sizes': ['Free Size'],
            'colors': ['Ivory'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.patch('/api/v1/products/organza-saree/', {'price': '5499.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['price_display'], '₹5,499')

        response = self.client.delete('/api/v1/products/organza-saree/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.get(slug='organza-saree').is_active)


class CategoryListTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_active_categories_with_counts(self):
        sarees = TestDataFactory.create_category(name='Sarees')
        TestDataFactory.create_category(name='Archived', is_active=False)
        TestDataFactory.create_product(category=sarees)
        TestDataFactory.create_product(category=sarees, is_active=False)

        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['name'] for c in response.data], ['Sarees'])
        self.assertEqual(response.data[0]['product_count'], 1)


class SeedCategoriesCommandTests(TestCase):

    def test_seed_is_idempotent(self):
        out = StringIO()
        call_command('seed_categories', stdout=out)
        self.assertIn('Categories Created: 10', out.getvalue())
        self.assertEqual(Category.objects.first().slug, 'sarees')

        out = StringIO()
        call_command('seed_categories', stdout=out)
        self.assertIn('Categories Skipped (already exist): 10', out.getvalue())
        self.assertEqual(Category.objects.count(), 10)
