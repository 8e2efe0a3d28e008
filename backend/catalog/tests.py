"""
Test suite for Catalog module
Tests: Categories, Products, filtering and change tracking
"""
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.deployments.models import PreDeployment
from backend.organizations.models import Role
from .models import Category, Product


class CatalogTestCase(TestCase):
    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, self.staff, role=Role.STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def url(self, endpoint, user=None):
        return org_url(user or self.owner, self.organization, endpoint)


class CategoryAPITests(CatalogTestCase):
    """Test category endpoints"""

    def test_create_category_derives_slug(self):
        data = {'name': 'Frutas Frescas', 'background_color': '#fef3c7'}
        response = self.client.post(self.url('categories/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'frutas-frescas')
        self.assertTrue(Category.objects.filter(organization=self.organization, slug='frutas-frescas').exists())

    def test_duplicate_slug_in_same_organization(self):
        TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')
        response = self.client.post(self.url('categories/'), {'name': 'Frutas'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('slug', response.data)

    def test_same_slug_in_other_organization(self):
        other = TestDataFactory.create_organization()
        TestDataFactory.create_category(other, name='Frutas', slug='frutas')
        response = self.client.post(self.url('categories/'), {'name': 'Frutas'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_only_own_categories(self):
        TestDataFactory.create_category(self.organization)
        TestDataFactory.create_category(TestDataFactory.create_organization())
        response = self.client.get(self.url('categories/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['product_count'], 0)

    def test_staff_can_read_but_not_write(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get(self.url('categories/', self.staff))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(self.url('categories/', self.staff), {'name': 'Verduras'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_category(self):
        category = TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')
        response = self.client.patch(self.url(f'categories/{category.id}/'), {'button_color': '#16a34a'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        category.refresh_from_db()
        self.assertEqual(category.button_color, '#16a34a')
        self.assertEqual(category.slug, 'frutas')

    def test_delete_category_with_products_rejected(self):
        category = TestDataFactory.create_category(self.organization)
        TestDataFactory.create_product(self.organization, category=category)
        response = self.client.delete(self.url(f'categories/{category.id}/'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Category.objects.filter(pk=category.id).exists())

    def test_delete_empty_category(self):
        category = TestDataFactory.create_category(self.organization)
        response = self.client.delete(self.url(f'categories/{category.id}/'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.filter(pk=category.id).exists())
        record = PreDeployment.objects.get(organization=self.organization)
        self.assertEqual(record.trigger_action, 'delete')

    def test_other_organization_category_not_found(self):
        category = TestDataFactory.create_category(TestDataFactory.create_organization())
        response = self.client.get(self.url(f'categories/{category.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @override_settings(CLOUDFRONT_DOMAIN='cdn.example.net')
    def test_image_urls_normalized(self):
        category = TestDataFactory.create_category(self.organization, image1_url='categories/frutas.jpg')
        response = self.client.get(self.url(f'categories/{category.id}/'))
        self.assertEqual(response.data['image1_url'], 'https://cdn.example.net/categories/frutas.jpg')
        self.assertIsNone(response.data['image2_url'])


class ProductAPITests(CatalogTestCase):
    """Test product endpoints"""

    def setUp(self):
        super().setUp()
        self.category = TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')

    def test_create_product(self):
        data = {'name': 'Fresas', 'description': 'Fresas de Poás', 'price': 2500, 'category': self.category.id}
        response = self.client.post(self.url('products/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category_slug'], 'frutas')
        product = Product.objects.get(pk=response.data['id'])
        self.assertEqual(product.organization, self.organization)

    def test_negative_price_rejected(self):
        data = {'name': 'Fresas', 'price': -1, 'category': self.category.id}
        response = self.client.post(self.url('products/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_category_from_other_organization_rejected(self):
        foreign = TestDataFactory.create_category(TestDataFactory.create_organization())
        data = {'name': 'Fresas', 'price': 100, 'category': foreign.id}
        response = self.client.post(self.url('products/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('category', response.data)

    def test_update_product(self):
        product = TestDataFactory.create_product(self.organization, price=1000, category=self.category)
        response = self.client.patch(self.url(f'products/{product.id}/'), {'price': 1200}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.price, 1200)

    def test_delete_product(self):
        product = TestDataFactory.create_product(self.organization, category=self.category)
        response = self.client.delete(self.url(f'products/{product.id}/'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='Product').exists())

    def test_staff_cannot_delete(self):
        product = TestDataFactory.create_product(self.organization, category=self.category)
        self.client.authenticate_user(self.staff)
        response = self.client.delete(self.url(f'products/{product.id}/', self.staff))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductFilterTests(CatalogTestCase):
    """Test product list filters"""

    def setUp(self):
        super().setUp()
        self.frutas = TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')
        self.ropa = TestDataFactory.create_category(self.organization, name='Ropa', slug='ropa')
        TestDataFactory.create_product(self.organization, name='Camisa de algodón roja', price=8000,
                                       category=self.ropa)
        TestDataFactory.create_product(self.organization, name='Fresas', price=2500, category=self.frutas)
        TestDataFactory.create_product(self.organization, name='Moras', price=1800, category=self.frutas,
                                       is_active=False)

    def names(self, params):
        response = self.client.get(self.url('products/'), params)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return sorted(product['name'] for product in response.data)

    def test_search_matches_every_word(self):
        self.assertEqual(self.names({'search': 'camisa roja'}), ['Camisa de algodón roja'])
        self.assertEqual(self.names({'search': 'camisa verde'}), [])

    def test_category_by_slug_or_id(self):
        self.assertEqual(self.names({'category': 'frutas'}), ['Fresas', 'Moras'])
        self.assertEqual(self.names({'category': str(self.ropa.id)}), ['Camisa de algodón roja'])

    def test_active_filter(self):
        self.assertEqual(self.names({'active': 'false'}), ['Moras'])
        self.assertEqual(len(self.names({'active': 'true'})), 2)

    def test_price_range(self):
        self.assertEqual(self.names({'min_price': 2000, 'max_price': 5000}), ['Fresas'])


class CatalogChangeTrackingTests(CatalogTestCase):
    """Catalog writes open or extend the organization's pre-deployment"""

    def test_create_opens_ready_pre_deployment(self):
        response = self.client.post(self.url('categories/'), {'name': 'Frutas'}, format='json')
        record = PreDeployment.objects.get(organization=self.organization)
        self.assertEqual(record.status, PreDeployment.STATUS_READY)
        self.assertEqual(record.trigger_type, 'category')
        self.assertEqual(record.message, 'Categoría creado - listo para publicar')
        self.assertIn(f"category:{response.data['id']}", record.changes)

    def test_consecutive_changes_merge(self):
        response = self.client.post(self.url('categories/'), {'name': 'Frutas'}, format='json')
        data = {'name': 'Fresas', 'price': 2500, 'category': response.data['id']}
        self.client.post(self.url('products/'), data, format='json')

        records = PreDeployment.objects.filter(organization=self.organization)
        self.assertEqual(records.count(), 1)
        self.assertEqual(records[0].message, 'Múltiples cambios pendientes de publicar')
        self.assertEqual(len(records[0].changes), 2)

    def test_failed_write_does_not_trigger(self):
        self.client.post(self.url('products/'), {'name': 'Sin categoría', 'price': 10}, format='json')
        self.assertFalse(PreDeployment.objects.filter(organization=self.organization).exists())
