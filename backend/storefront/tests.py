"""
Test suite for Storefront module
Tests: cart store, session persistence and the public storefront API
"""
from django.contrib.sessions.backends.db import SessionStore
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient
from backend.core.test_utils import TestDataFactory, clear_cache
from backend.orders.models import Order
from .cart import CartStore, MemoryCartStorage, SessionCartStorage

FRESAS = {'id': 1, 'name': 'Fresas', 'price': 1000, 'image_url': None}
MORAS = {'id': 2, 'name': 'Moras', 'price': 500}


class CartStoreTests(SimpleTestCase):
    """Test cart operations and the total invariant"""

    def setUp(self):
        self.cart = CartStore()

    def assertTotalConsistent(self):
        self.assertEqual(self.cart.total, sum(item['price'] * item['quantity'] for item in self.cart.items))

    def test_add_same_item_twice(self):
        self.cart.add_to_cart(FRESAS)
        self.cart.add_to_cart(FRESAS)
        self.assertEqual(len(self.cart.items), 1)
        self.assertEqual(self.cart.items[0]['quantity'], 2)
        self.assertEqual(self.cart.total, 2000)

    def test_add_with_quantity(self):
        self.cart.add_to_cart(FRESAS, 3)
        self.cart.add_to_cart(MORAS, 2)
        self.assertEqual(self.cart.total, 4000)
        self.assertEqual(self.cart.item_count, 5)
        self.assertTotalConsistent()

    def test_invalid_quantity_counts_as_one(self):
        self.cart.add_to_cart(FRESAS, 0)
        self.cart.add_to_cart(MORAS, -4)
        self.cart.add_to_cart(MORAS, None)
        self.assertEqual(self.cart.items[0]['quantity'], 1)
        self.assertEqual(self.cart.items[1]['quantity'], 2)
        self.assertTotalConsistent()

    def test_update_quantity(self):
        self.cart.add_to_cart(FRESAS)
        self.cart.update_quantity(1, 5)
        self.assertEqual(self.cart.total, 5000)

    def test_update_quantity_zero_removes(self):
        self.cart.add_to_cart(FRESAS)
        self.cart.add_to_cart(MORAS)
        self.cart.update_quantity(1, 0)
        self.assertFalse(self.cart.contains(1))
        self.assertEqual(self.cart.total, 500)

    def test_update_unknown_item_is_noop(self):
        self.cart.add_to_cart(FRESAS)
        self.cart.update_quantity(99, 3)
        self.assertEqual(self.cart.total, 1000)

    def test_remove_and_clear(self):
        self.cart.add_to_cart(FRESAS)
        self.cart.add_to_cart(MORAS)
        self.cart.remove_from_cart(2)
        self.assertEqual(self.cart.total, 1000)
        self.cart.clear_cart()
        self.assertEqual(self.cart.items, [])
        self.assertEqual(self.cart.total, 0)

    def test_total_consistent_through_mixed_sequence(self):
        uvas = {'id': 3, 'name': 'Uvas', 'price': 750}
        steps = [
            lambda: self.cart.add_to_cart(FRESAS, 2),
            lambda: self.cart.add_to_cart(MORAS),
            lambda: self.cart.add_to_cart(FRESAS),
            lambda: self.cart.update_quantity(2, 4),
            lambda: self.cart.add_to_cart(uvas, 0),
            lambda: self.cart.remove_from_cart(1),
            lambda: self.cart.update_quantity(99, 7),
            lambda: self.cart.remove_from_cart(99),
            lambda: self.cart.update_quantity(3, -1),
            lambda: self.cart.add_to_cart(FRESAS),
            lambda: self.cart.update_quantity(2, 0),
        ]
        for step in steps:
            step()
            self.assertTotalConsistent()
            ids = [item['id'] for item in self.cart.items]
            self.assertEqual(len(ids), len(set(ids)))
            self.assertTrue(all(item['quantity'] >= 1 for item in self.cart.items))

        self.assertEqual([item['id'] for item in self.cart.items], [1])
        self.assertEqual(self.cart.total, 1000)

    def test_ui_flags(self):
        self.assertTrue(self.cart.toggle_cart())
        self.assertFalse(self.cart.toggle_cart())
        self.cart.set_show_checkout(True)
        self.cart.set_active_category('frutas')
        state = self.cart.state()
        self.assertTrue(state['show_checkout'])
        self.assertEqual(state['active_category'], 'frutas')
        self.cart.clear_active_category()
        self.assertIsNone(self.cart.active_category)

    def test_only_items_and_total_persist(self):
        storage = MemoryCartStorage()
        cart = CartStore(storage)
        cart.add_to_cart(FRESAS, 2)
        cart.toggle_cart()
        self.assertEqual(set(storage.data), {'items', 'total'})

        restored = CartStore(storage)
        self.assertEqual(restored.total, 2000)
        self.assertFalse(restored.is_open)

    def test_total_recomputed_on_load(self):
        storage = MemoryCartStorage({'items': [dict(FRESAS, quantity=2)], 'total': 12345})
        self.assertEqual(CartStore(storage).total, 2000)


class SessionCartStorageTests(TestCase):
    """Test session persistence"""

    @override_settings(CART_STORAGE_KEY='test-cart')
    def test_namespaced_by_organization(self):
        session = SessionStore()
        first = CartStore(SessionCartStorage(session, namespace=1))
        first.add_to_cart(FRESAS)
        second = CartStore(SessionCartStorage(session, namespace=2))
        self.assertEqual(second.items, [])
        self.assertIn('test-cart:1', session)
        self.assertEqual(CartStore(SessionCartStorage(session, namespace=1)).total, 1000)

    def test_clear_removes_entry(self):
        session = SessionStore()
        storage = SessionCartStorage(session, namespace=1)
        CartStore(storage).add_to_cart(FRESAS)
        storage.clear()
        self.assertIsNone(storage.load())


@override_settings(BASE_DOMAIN='example.com', ALLOWED_HOSTS=['*'])
class StorefrontAPITests(TestCase):
    """Test the public storefront endpoints"""

    HOST = 'fresas.example.com'

    def setUp(self):
        clear_cache()
        self.client = APIClient(HTTP_HOST=self.HOST)
        self.organization = TestDataFactory.create_organization(subdomain='fresas')
        self.category = TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')
        self.product = TestDataFactory.create_product(self.organization, name='Fresas', price=1500,
                                                      category=self.category)
        self.hidden = TestDataFactory.create_product(self.organization, name='Moras', category=self.category,
                                                     is_active=False)

    def checkout_data(self):
        return {
            'customer_name': 'Ana Mora',
            'customer_phone': '88887777',
            'provincia': 'San José',
            'canton': 'Escazú',
            'distrito': 'San Rafael',
            'address': '100 m norte de la iglesia',
            'delivery_method': 'correos',
        }

    def test_requires_organization(self):
        client = APIClient(HTTP_HOST='example.com')
        response = client.get('/api/storefront/products/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_products_only_active(self):
        response = self.client.get('/api/storefront/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([product['name'] for product in response.data], ['Fresas'])

    def test_products_of_inactive_category_hidden(self):
        self.category.is_active = False
        self.category.save()
        response = self.client.get('/api/storefront/products/')
        self.assertEqual(response.data, [])

    def test_organization_from_header(self):
        client = APIClient()
        response = client.get('/api/storefront/categories/', HTTP_X_ORGANIZATION_ID=str(self.organization.id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([category['slug'] for category in response.data], ['frutas'])

    def test_content_by_section(self):
        TestDataFactory.create_home_content(self.organization, section='hero', key='title', value='Hola')
        TestDataFactory.create_home_content(self.organization, section='footer', key='copyright')
        response = self.client.get('/api/storefront/content/', {'section': 'hero'})
        self.assertEqual([item['value'] for item in response.data], ['Hola'])

    def test_add_to_cart(self):
        self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id}, format='json')
        response = self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['quantity'], 2)
        self.assertEqual(response.data['total'], 3000)

        response = self.client.get('/api/storefront/cart/')
        self.assertEqual(response.data['item_count'], 2)

    def test_add_inactive_product_rejected(self):
        response = self.client.post('/api/storefront/cart/items/', {'product_id': self.hidden.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_add_product_of_other_organization_rejected(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_organization())
        response = self.client.post('/api/storefront/cart/items/', {'product_id': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_quantity_zero_removes(self):
        self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id, 'quantity': 3}, format='json')
        url = f'/api/storefront/cart/items/{self.product.id}/'
        response = self.client.patch(url, {'quantity': 1}, format='json')
        self.assertEqual(response.data['total'], 1500)
        response = self.client.patch(url, {'quantity': 0}, format='json')
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['total'], 0)

    def test_update_item_not_in_cart(self):
        response = self.client.patch(f'/api/storefront/cart/items/{self.product.id}/', {'quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clear_cart(self):
        self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id}, format='json')
        response = self.client.delete('/api/storefront/cart/')
        self.assertEqual(response.data['items'], [])

    def test_checkout_creates_order_and_empties_cart(self):
        self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id, 'quantity': 2}, format='json')
        response = self.client.post('/api/storefront/checkout/', self.checkout_data(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        order = Order.objects.get(pk=response.data['id'])
        self.assertEqual(order.organization, self.organization)
        self.assertEqual(order.total, 3000)
        self.assertEqual(order.items[0]['name'], 'Fresas')
        self.assertEqual(order.status, 'pending')

        response = self.client.get('/api/storefront/cart/')
        self.assertEqual(response.data['items'], [])

    def test_checkout_empty_cart(self):
        response = self.client.post('/api/storefront/checkout/', self.checkout_data(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_invalid_delivery_method(self):
        self.client.post('/api/storefront/cart/items/', {'product_id': self.product.id}, format='json')
        data = dict(self.checkout_data(), delivery_method='dron')
        response = self.client.post('/api/storefront/checkout/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())
