"""
Test suite for CMS module
Tests: home page content CRUD, bulk upsert and change tracking
"""
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.deployments.models import PreDeployment
from backend.organizations.models import Role
from .models import HomePageContent


class HomePageContentAPITests(TestCase):
    """Test home page content endpoints"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def url(self, endpoint):
        return org_url(self.owner, self.organization, endpoint)

    def test_create_content(self):
        data = {'section': 'hero', 'key': 'title', 'value': 'Fresas frescas de Poás', 'type': 'text'}
        response = self.client.post(self.url('home-content/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(HomePageContent.objects.filter(organization=self.organization, key='title').exists())

        record = PreDeployment.objects.get(organization=self.organization)
        self.assertEqual(record.trigger_type, 'cms')
        self.assertEqual(record.message, 'Contenido creado - listo para publicar')

    def test_duplicate_section_key_rejected(self):
        TestDataFactory.create_home_content(self.organization, section='hero', key='title')
        data = {'section': 'hero', 'key': 'title', 'value': 'Otro'}
        response = self.client.post(self.url('home-content/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_same_key_in_other_organization(self):
        TestDataFactory.create_home_content(TestDataFactory.create_organization(), section='hero', key='title')
        data = {'section': 'hero', 'key': 'title', 'value': 'Hola'}
        response = self.client.post(self.url('home-content/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_by_section(self):
        TestDataFactory.create_home_content(self.organization, section='hero', key='title')
        TestDataFactory.create_home_content(self.organization, section='footer', key='copyright')
        response = self.client.get(self.url('home-content/'), {'section': 'footer'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['key'] for item in response.data], ['copyright'])

    def test_update_content(self):
        content = TestDataFactory.create_home_content(self.organization, section='hero', key='title', value='Hola')
        response = self.client.patch(self.url(f'home-content/{content.id}/'), {'value': 'Bienvenidos'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        content.refresh_from_db()
        self.assertEqual(content.value, 'Bienvenidos')

    def test_delete_content(self):
        content = TestDataFactory.create_home_content(self.organization)
        response = self.client.delete(self.url(f'home-content/{content.id}/'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(HomePageContent.objects.filter(pk=content.id).exists())

    @override_settings(CLOUDFRONT_DOMAIN='cdn.example.net')
    def test_image_value_normalized(self):
        content = TestDataFactory.create_home_content(self.organization, section='hero', key='image',
                                                      value='/cms/hero.jpg', type='image')
        response = self.client.get(self.url(f'home-content/{content.id}/'))
        self.assertEqual(response.data['value'], 'https://cdn.example.net/cms/hero.jpg')

    def test_text_value_untouched(self):
        content = TestDataFactory.create_home_content(self.organization, value='/no/es/imagen')
        response = self.client.get(self.url(f'home-content/{content.id}/'))
        self.assertEqual(response.data['value'], '/no/es/imagen')

    def test_staff_cannot_write(self):
        staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, staff, role=Role.STAFF)
        self.client.authenticate_user(staff)
        data = {'section': 'hero', 'key': 'title', 'value': 'Hola'}
        response = self.client.post(org_url(staff, self.organization, 'home-content/'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class HomePageContentBulkTests(TestCase):
    """Test bulk upsert"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.url = org_url(self.owner, self.organization, 'home-content/bulk/')

    def test_bulk_upsert(self):
        existing = TestDataFactory.create_home_content(self.organization, section='hero', key='title', value='Hola')
        items = [
            {'section': 'hero', 'key': 'title', 'value': 'Bienvenidos'},
            {'section': 'hero', 'key': 'subtitle', 'value': 'Directo de la finca'},
            {'section': 'theme', 'key': 'primary', 'value': '#e11d48', 'type': 'color'},
        ]
        response = self.client.post(self.url, {'items': items}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

        existing.refresh_from_db()
        self.assertEqual(existing.value, 'Bienvenidos')
        self.assertEqual(HomePageContent.objects.filter(organization=self.organization).count(), 3)
        self.assertEqual(HomePageContent.objects.get(organization=self.organization, key='primary').type, 'color')

    def test_bulk_is_one_change(self):
        items = [
            {'section': 'hero', 'key': 'title', 'value': 'Hola'},
            {'section': 'hero', 'key': 'subtitle', 'value': 'Adiós'},
        ]
        self.client.post(self.url, items, format='json')
        record = PreDeployment.objects.get(organization=self.organization)
        self.assertEqual(list(record.changes), ['cms:bulk'])
        self.assertEqual(record.changes['cms:bulk']['changes'], {'hero.title': 'Hola', 'hero.subtitle': 'Adiós'})

    def test_bulk_rejects_empty(self):
        response = self.client.post(self.url, {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_rejects_invalid_item(self):
        response = self.client.post(self.url, {'items': [{'section': 'hero', 'value': 'sin key'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(HomePageContent.objects.filter(organization=self.organization).exists())
