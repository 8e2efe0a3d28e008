"""
Test suite for the core module
Tests: subdomain resolution, API URL building/parsing, image URLs, auth endpoints and audit logs
"""
from django.test import TestCase, SimpleTestCase, RequestFactory, override_settings
from rest_framework import status
from backend.core.api_urls import (
    ApiUrlBuilder, MissingContextError, build_org_api_url, build_user_api_url,
    build_public_api_url, parse_api_url,
)
from backend.core.image_utils import (
    normalize_image_url, extract_s3_key, is_our_image, build_cloudfront_url, get_image_folder,
)
from backend.core.models import AuditLog
from backend.core.subdomain import (
    get_subdomain, is_main_domain, is_subdomain, build_subdomain_url, build_main_domain_url,
    get_request_subdomain, strip_port,
)
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.core.utils import create_audit_log
from backend.organizations.models import Role


class SubdomainTests(SimpleTestCase):
    """Test tenant label extraction from host names"""

    def test_base_domain_is_main_domain(self):
        self.assertIsNone(get_subdomain('example.com', 'example.com'))

    def test_tenant_subdomain(self):
        self.assertEqual(get_subdomain('shop.example.com', 'example.com'), 'shop')

    def test_no_suffix_match(self):
        self.assertIsNone(get_subdomain('notexample.com', 'example.com'))

    def test_localhost_subdomain(self):
        self.assertEqual(get_subdomain('shop.localhost'), 'shop')
        self.assertEqual(get_subdomain('shop.localhost:3000'), 'shop')

    def test_plain_localhost(self):
        self.assertIsNone(get_subdomain('localhost'))
        self.assertIsNone(get_subdomain('localhost:5173'))
        self.assertIsNone(get_subdomain('127.0.0.1'))

    def test_multi_label_base_domain(self):
        self.assertEqual(get_subdomain('mi-tienda.jmarkets.jcampos.dev', 'jmarkets.jcampos.dev'), 'mi-tienda')
        self.assertIsNone(get_subdomain('jmarkets.jcampos.dev', 'jmarkets.jcampos.dev'))
        self.assertIsNone(get_subdomain('other.jcampos.dev', 'jmarkets.jcampos.dev'))

    def test_port_is_ignored(self):
        self.assertEqual(get_subdomain('shop.example.com:8443', 'example.com'), 'shop')

    def test_malformed_input_returns_none(self):
        self.assertIsNone(get_subdomain(None, 'example.com'))
        self.assertIsNone(get_subdomain('', 'example.com'))
        self.assertIsNone(get_subdomain(42, 'example.com'))

    def test_is_main_domain_and_is_subdomain(self):
        self.assertTrue(is_main_domain('example.com', 'example.com'))
        self.assertFalse(is_subdomain('example.com', 'example.com'))
        self.assertTrue(is_subdomain('shop.example.com', 'example.com'))

    def test_strip_port(self):
        self.assertEqual(strip_port('shop.example.com:8000'), 'shop.example.com')
        self.assertEqual(strip_port('[::1]:8000'), '[::1]')
        self.assertEqual(strip_port(''), '')

    def test_build_subdomain_url_production(self):
        url = build_subdomain_url('shop', '/products', current={'protocol': 'https:', 'hostname': 'example.com'},
                                  base_domain='example.com')
        self.assertEqual(url, 'https://shop.example.com/products')

    def test_build_subdomain_url_localhost_keeps_port(self):
        url = build_subdomain_url('shop', '/', current={'protocol': 'http:', 'hostname': 'localhost', 'port': '5173'})
        self.assertEqual(url, 'http://shop.localhost:5173/')

    def test_build_main_domain_url(self):
        self.assertEqual(
            build_main_domain_url('/login', current={'protocol': 'https:', 'hostname': 'shop.example.com'},
                                  base_domain='example.com'),
            'https://example.com/login'
        )
        self.assertEqual(
            build_main_domain_url('/', current={'protocol': 'http:', 'hostname': 'shop.localhost', 'port': '3000'}),
            'http://localhost:3000/'
        )

    @override_settings(BASE_DOMAIN='example.com', ALLOWED_HOSTS=['*'])
    def test_get_request_subdomain(self):
        request = RequestFactory().get('/', HTTP_HOST='shop.example.com')
        self.assertEqual(get_request_subdomain(request), 'shop')


class ApiUrlTests(SimpleTestCase):
    """Test the org-scoped API URL builder and parser"""

    def test_build_org_api_url(self):
        self.assertEqual(build_org_api_url('u1', 'o1', '/products'), '/api/user/u1/organization/o1/products')

    def test_build_org_api_url_adds_leading_slash(self):
        self.assertEqual(build_org_api_url(1, 2, 'products'), '/api/user/1/organization/2/products')

    def test_build_user_and_public_urls(self):
        self.assertEqual(build_user_api_url('u1', '/organizations'), '/api/user/u1/organizations')
        self.assertEqual(build_public_api_url('/deploy'), '/api/deploy')

    def test_parse_round_trip(self):
        parsed = parse_api_url(build_org_api_url('u1', 'o1', '/products'))
        self.assertEqual(parsed, {'user_id': 'u1', 'organization_id': 'o1', 'endpoint': '/products'})

    def test_parse_user_url(self):
        self.assertEqual(parse_api_url('/api/user/u1/organizations'), {'user_id': 'u1', 'endpoint': '/organizations'})

    def test_parse_public_url(self):
        self.assertEqual(parse_api_url('/api/deploy'), {'endpoint': '/deploy'})

    def test_parse_keeps_trailing_newline(self):
        self.assertEqual(parse_api_url(build_public_api_url('/products\n')), {'endpoint': '/products\n'})
        parsed = parse_api_url(build_org_api_url('u1', 'o1', '/orders\n'))
        self.assertEqual(parsed['endpoint'], '/orders\n')

    def test_parse_unrecognized_url(self):
        self.assertEqual(parse_api_url('/health'), {'endpoint': '/health'})

    def test_builder_org_requires_both_ids(self):
        with self.assertRaises(MissingContextError):
            ApiUrlBuilder(user_id='u1').org('/products')

    def test_builder_user_requires_user_id(self):
        with self.assertRaises(MissingContextError):
            ApiUrlBuilder(organization_id='o1').user('/organizations')

    def test_missing_context_is_value_error(self):
        self.assertTrue(issubclass(MissingContextError, ValueError))

    def test_builder_with_context(self):
        builder = ApiUrlBuilder(user_id=5, organization_id=9)
        self.assertEqual(builder.org('/categories/'), '/api/user/5/organization/9/categories/')
        self.assertEqual(builder.user('/memberships/'), '/api/user/5/memberships/')
        self.assertEqual(builder.public('/deploy/'), '/api/deploy/')


@override_settings(CLOUDFRONT_DOMAIN='cdn.example.net')
class ImageUtilsTests(SimpleTestCase):
    """Test CloudFront/S3 image URL normalization"""

    def test_empty_url(self):
        self.assertIsNone(normalize_image_url(None))
        self.assertIsNone(normalize_image_url(''))

    def test_cloudfront_url_unchanged(self):
        url = 'https://cdn.example.net/images/a.jpg'
        self.assertEqual(normalize_image_url(url), url)

    def test_s3_url_rewritten(self):
        url = 'https://bucket.s3.us-east-1.amazonaws.com/images/a.jpg'
        self.assertEqual(normalize_image_url(url), 'https://cdn.example.net/images/a.jpg')

    def test_relative_key(self):
        self.assertEqual(normalize_image_url('/images/a.jpg'), 'https://cdn.example.net/images/a.jpg')
        self.assertEqual(normalize_image_url('images/a.jpg'), 'https://cdn.example.net/images/a.jpg')

    def test_external_url_unchanged(self):
        url = 'https://images.unsplash.com/photo.jpg'
        self.assertEqual(normalize_image_url(url), url)

    def test_extract_s3_key(self):
        self.assertEqual(extract_s3_key('https://cdn.example.net/products/a.jpg'), 'products/a.jpg')
        self.assertEqual(extract_s3_key('https://bucket.s3.us-east-1.amazonaws.com/images/a.jpg'), 'images/a.jpg')
        self.assertIsNone(extract_s3_key('https://images.unsplash.com/photo.jpg'))
        self.assertIsNone(extract_s3_key(None))

    def test_is_our_image(self):
        self.assertTrue(is_our_image('https://cdn.example.net/images/a.jpg'))
        self.assertTrue(is_our_image('https://bucket.s3.us-east-1.amazonaws.com/images/a.jpg'))
        self.assertFalse(is_our_image('https://images.unsplash.com/photo.jpg'))
        self.assertFalse(is_our_image(''))

    def test_build_cloudfront_url_and_folder(self):
        self.assertEqual(build_cloudfront_url('/categories/x.png'), 'https://cdn.example.net/categories/x.png')
        self.assertEqual(get_image_folder('categories/x.png'), 'categories')
        self.assertEqual(get_image_folder('x.png'), 'images')


class AuthAPITests(TestCase):
    """Test registration, login, refresh and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register(self):
        data = {
            'username': 'nuevo',
            'email': 'nuevo@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'Str0ng-pass-123',
        }
        response = self.client.post('/api/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'nuevo')

    def test_register_password_mismatch(self):
        data = {
            'username': 'nuevo',
            'email': 'nuevo@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'different-pass-123',
        }
        response = self.client.post('/api/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_and_refresh(self):
        user = TestDataFactory.create_user(username='ana', password='testpass123')
        response = self.client.post('/api/auth/login/', {'username': 'ana', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], user.id)

        refresh = self.client.post('/api/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(refresh.status_code, status.HTTP_200_OK)
        self.assertIn('access', refresh.data)

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='ana', password='testpass123')
        response = self.client.post('/api/auth/login/', {'username': 'ana', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_memberships(self):
        user = TestDataFactory.create_user()
        organization = TestDataFactory.create_organization(owner=user)
        self.client.authenticate_user(user)

        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['memberships']), 1)
        self.assertEqual(response.data['default_organization']['id'], organization.id)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_health_check(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')


class AuditLogTests(TestCase):
    """Test audit log creation and the organization audit trail"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.client = AuthenticatedAPIClient()

    def test_create_audit_log_requires_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Product'))

    def test_create_audit_log(self):
        log = create_audit_log(action='create', model_name='Product', object_id=3,
                               user=self.owner, organization=self.organization, changes={'price': 10})
        self.assertIsNotNone(log)
        self.assertEqual(log.object_id, '3')
        self.assertEqual(log.organization, self.organization)

    def test_audit_log_list_for_admin(self):
        create_audit_log(action='create', model_name='Product', object_id=1,
                         user=self.owner, organization=self.organization)
        other = TestDataFactory.create_organization()
        create_audit_log(action='create', model_name='Product', object_id=2, organization=other)

        self.client.authenticate_user(self.owner)
        response = self.client.get(org_url(self.owner, self.organization, 'audit-logs/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '1')

    def test_audit_log_list_forbidden_for_staff(self):
        staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, staff, role=Role.STAFF)
        self.client.authenticate_user(staff)
        response = self.client.get(org_url(staff, self.organization, 'audit-logs/'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_log_filter_by_action(self):
        create_audit_log(action='create', model_name='Product', object_id=1, organization=self.organization)
        create_audit_log(action='delete', model_name='Product', object_id=1, organization=self.organization)
        self.client.authenticate_user(self.owner)
        response = self.client.get(org_url(self.owner, self.organization, 'audit-logs/'), {'action': 'delete'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(AuditLog.objects.filter(organization=self.organization).count(), 2)
