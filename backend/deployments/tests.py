"""
Test suite for Deployments module
Tests: pre-deployment lifecycle, publishing, endpoints and the admin banner
"""
import json
import shutil
import tempfile
import threading
from unittest import mock

import requests
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework import status

from backend.core.api_urls import ApiUrlBuilder
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.organizations.models import Role
from .banner import ApiClient, PreDeploymentBanner
from .models import PreDeployment, Deployment, InvalidStatusTransition
from .services import PreDeploymentService, DeploymentService, DeploymentInProgressError


class ExportRootMixin:
    """Point storefront exports at a throwaway directory"""

    def use_temp_export_root(self):
        export_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, export_root, ignore_errors=True)
        override = override_settings(STOREFRONT_EXPORT_ROOT=export_root)
        override.enable()
        self.addCleanup(override.disable)
        return export_root


class PreDeploymentModelTests(TestCase):
    """Test status transitions"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()

    def test_pending_to_ready_to_published(self):
        record = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PENDING)
        record.mark_ready()
        record.mark_published('cms-build-1')
        record.refresh_from_db()
        self.assertEqual(record.status, PreDeployment.STATUS_PUBLISHED)
        self.assertEqual(record.build_id, 'cms-build-1')
        self.assertIsNotNone(record.published_at)

    def test_pending_cannot_be_published(self):
        record = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PENDING)
        with self.assertRaises(InvalidStatusTransition):
            record.mark_published()

    def test_error_is_terminal(self):
        record = TestDataFactory.create_pre_deployment(self.organization)
        record.mark_error('S3 upload failed')
        self.assertEqual(record.error_details, 'S3 upload failed')
        with self.assertRaises(InvalidStatusTransition):
            record.mark_ready()

    def test_published_is_terminal(self):
        record = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PUBLISHED)
        with self.assertRaises(InvalidStatusTransition):
            record.mark_error('late failure')


class PreDeploymentServiceTests(TestCase):
    """Test active-record lookup and change triggering"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()

    def test_no_active_without_records(self):
        self.assertIsNone(PreDeploymentService.get_active(self.organization))
        self.assertIsNone(PreDeploymentService.get_active(None))

    def test_trigger_creates_ready_record(self):
        record = PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=5,
                                              entity_type='Product', changes={'name': 'Fresas'})
        self.assertEqual(record.status, PreDeployment.STATUS_READY)
        self.assertEqual(record.message, 'Producto creado - listo para publicar')
        self.assertEqual(record.entity_id, '5')
        self.assertEqual(record.changes['product:5']['action'], 'create')
        self.assertEqual(record.changes['product:5']['changes'], {'name': 'Fresas'})

    def test_trigger_merges_into_open_record(self):
        first = PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=1)
        second = PreDeploymentService.trigger(self.organization, 'cms', 'update', entity_id='hero.title')
        self.assertEqual(first.id, second.id)
        self.assertEqual(PreDeployment.objects.filter(organization=self.organization).count(), 1)
        second.refresh_from_db()
        self.assertEqual(second.message, PreDeploymentService.MERGED_MESSAGE)
        self.assertEqual(set(second.changes), {'product:1', 'cms:hero.title'})

    def test_same_entity_overwrites_entry(self):
        PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=1)
        record = PreDeploymentService.trigger(self.organization, 'product', 'update', entity_id=1)
        self.assertEqual(len(record.changes), 1)
        self.assertEqual(record.changes['product:1']['action'], 'update')

    def test_trigger_after_error_opens_new_record(self):
        failed = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_ERROR)
        record = PreDeploymentService.trigger(self.organization, 'category', 'delete', entity_id=3)
        self.assertNotEqual(record.id, failed.id)
        self.assertEqual(PreDeploymentService.get_active(self.organization), record)

    def test_error_record_is_active(self):
        failed = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_ERROR)
        self.assertEqual(PreDeploymentService.get_active(self.organization), failed)

    def test_published_newest_hides_older_records(self):
        TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_ERROR)
        TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PUBLISHED)
        self.assertIsNone(PreDeploymentService.get_active(self.organization))

    def test_records_are_scoped_per_organization(self):
        other = TestDataFactory.create_organization()
        PreDeploymentService.trigger(other, 'product', 'create', entity_id=1)
        self.assertIsNone(PreDeploymentService.get_active(self.organization))

    def test_trigger_never_raises(self):
        with mock.patch.object(PreDeployment.objects, 'create', side_effect=RuntimeError('db down')):
            self.assertIsNone(PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=1))


class DeploymentServiceTests(ExportRootMixin, TestCase):
    """Test snapshot export and publishing"""

    def setUp(self):
        clear_cache()
        self.export_root = self.use_temp_export_root()
        self.organization = TestDataFactory.create_organization(slug='fresas-pepe', subdomain='fresas')
        self.category = TestDataFactory.create_category(self.organization, name='Frutas', slug='frutas')
        self.product = TestDataFactory.create_product(self.organization, name='Fresas', price=2500,
                                                      category=self.category)
        TestDataFactory.create_product(self.organization, name='Oculto', category=self.category, is_active=False)
        TestDataFactory.create_home_content(self.organization, section='hero', key='title', value='Hola')

    def test_idle_status_by_default(self):
        self.assertEqual(DeploymentService.get_status(self.organization)['status'], 'idle')

    @override_settings(BASE_DOMAIN='example.com')
    def test_deploy_url(self):
        self.assertEqual(DeploymentService.get_deploy_url(self.organization), 'https://fresas.example.com')
        self.organization.custom_domain = 'www.fresas.cr'
        self.organization.domain_verified = True
        self.assertEqual(DeploymentService.get_deploy_url(self.organization), 'https://www.fresas.cr')

    def test_export_snapshot_writes_active_data(self):
        written = DeploymentService.export_snapshot(self.organization)
        self.assertEqual(sorted(path.name for path in written), ['categories.json', 'cms.json', 'products.json'])

        export_dir = DeploymentService.get_export_dir(self.organization)
        with open(export_dir / 'products.json', encoding='utf-8') as f:
            products = json.load(f)
        self.assertEqual([product['name'] for product in products], ['Fresas'])
        self.assertEqual(products[0]['price'], 2500)
        self.assertTrue(str(export_dir).startswith(self.export_root))

    def test_publish_success_closes_pre_deployment(self):
        record = PreDeploymentService.trigger(self.organization, 'product', 'update', entity_id=self.product.id)
        deployment = DeploymentService.publish(self.organization)

        self.assertEqual(deployment.status, Deployment.STATUS_SUCCESS)
        self.assertEqual(deployment.files_uploaded, 3)
        self.assertTrue(deployment.build_id.startswith('cms-fresas-pepe-'))
        record.refresh_from_db()
        self.assertEqual(record.status, PreDeployment.STATUS_PUBLISHED)
        self.assertEqual(record.build_id, deployment.build_id)
        self.assertIsNone(PreDeploymentService.get_active(self.organization))
        self.assertEqual(DeploymentService.get_status(self.organization)['status'], Deployment.STATUS_SUCCESS)

    def test_publish_pending_record(self):
        record = TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PENDING)
        DeploymentService.publish(self.organization)
        record.refresh_from_db()
        self.assertEqual(record.status, PreDeployment.STATUS_PUBLISHED)

    def test_publish_without_pending_changes(self):
        deployment = DeploymentService.publish(self.organization)
        self.assertEqual(deployment.status, Deployment.STATUS_SUCCESS)

    def test_publish_failure_marks_error(self):
        record = PreDeploymentService.trigger(self.organization, 'product', 'update', entity_id=self.product.id)
        with mock.patch.object(DeploymentService, 'export_snapshot', side_effect=OSError('disk full')):
            deployment = DeploymentService.publish(self.organization)

        self.assertEqual(deployment.status, Deployment.STATUS_ERROR)
        self.assertEqual(deployment.error_details, 'disk full')
        record.refresh_from_db()
        self.assertEqual(record.status, PreDeployment.STATUS_ERROR)
        self.assertEqual(record.error_details, 'disk full')
        self.assertEqual(PreDeploymentService.get_active(self.organization), record)
        self.assertEqual(DeploymentService.get_status(self.organization)['status'], Deployment.STATUS_ERROR)

    def test_publish_rejected_while_in_progress(self):
        DeploymentService.set_status(self.organization, Deployment.STATUS_UPLOADING, 'Uploading...')
        with self.assertRaises(DeploymentInProgressError):
            DeploymentService.publish(self.organization)
        self.assertFalse(Deployment.objects.filter(organization=self.organization).exists())

    def test_concurrent_publish_rejected(self):
        create = Deployment.objects.create
        nested_errors = []

        def create_during_second_publish(**kwargs):
            try:
                DeploymentService.publish(self.organization)
            except DeploymentInProgressError as e:
                nested_errors.append(e)
            return create(**kwargs)

        with mock.patch.object(Deployment.objects, 'create', side_effect=create_during_second_publish):
            deployment = DeploymentService.publish(self.organization)

        self.assertEqual(deployment.status, Deployment.STATUS_SUCCESS)
        self.assertEqual(len(nested_errors), 1)
        self.assertEqual(Deployment.objects.filter(organization=self.organization).count(), 1)

    def test_publish_releases_lock(self):
        DeploymentService.publish(self.organization)
        with mock.patch.object(DeploymentService, 'export_snapshot', side_effect=OSError('disk full')):
            DeploymentService.publish(self.organization)
        deployment = DeploymentService.publish(self.organization)
        self.assertEqual(deployment.status, Deployment.STATUS_SUCCESS)
        self.assertEqual(Deployment.objects.filter(organization=self.organization).count(), 3)

    def test_success_after_failure_clears_active_error(self):
        PreDeploymentService.trigger(self.organization, 'product', 'update', entity_id=self.product.id)
        with mock.patch.object(DeploymentService, 'export_snapshot', side_effect=OSError('disk full')):
            DeploymentService.publish(self.organization)
        self.assertEqual(PreDeploymentService.get_active(self.organization).status, PreDeployment.STATUS_ERROR)

        deployment = DeploymentService.publish(self.organization)
        self.assertEqual(deployment.status, Deployment.STATUS_SUCCESS)
        self.assertIsNone(PreDeploymentService.get_active(self.organization))

        record = PreDeploymentService.trigger(self.organization, 'cms', 'update', entity_id='hero.title')
        self.assertEqual(record.status, PreDeployment.STATUS_READY)
        self.assertEqual(PreDeploymentService.get_active(self.organization), record)


class DeploymentAPITests(ExportRootMixin, TestCase):
    """Test organization-scoped and flat deployment endpoints"""

    def setUp(self):
        clear_cache()
        self.use_temp_export_root()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, self.staff, role=Role.STAFF)
        self.client = AuthenticatedAPIClient()

    def test_active_is_null_without_changes(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get(org_url(self.staff, self.organization, 'pre-deployments/active/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)

    def test_active_record_shape(self):
        PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=1)
        self.client.authenticate_user(self.staff)
        response = self.client.get(org_url(self.staff, self.organization, 'pre-deployments/active/'))
        self.assertEqual(response.data['status'], 'ready')
        self.assertEqual(response.data['triggerType'], 'product')
        self.assertEqual(response.data['triggerAction'], 'create')
        self.assertIsNone(response.data['errorDetails'])

    def test_list_filters_by_status(self):
        TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_PUBLISHED)
        TestDataFactory.create_pre_deployment(self.organization, status=PreDeployment.STATUS_READY)
        self.client.authenticate_user(self.owner)
        response = self.client.get(org_url(self.owner, self.organization, 'pre-deployments/'), {'status': 'ready'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_publish_as_owner(self):
        record = PreDeploymentService.trigger(self.organization, 'product', 'create', entity_id=1)
        self.client.authenticate_user(self.owner)
        response = self.client.post(org_url(self.owner, self.organization, 'deployments/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'success')
        record.refresh_from_db()
        self.assertEqual(record.status, PreDeployment.STATUS_PUBLISHED)
        self.assertTrue(AuditLog.objects.filter(action='publish', organization=self.organization).exists())

    def test_publish_forbidden_for_staff(self):
        self.client.authenticate_user(self.staff)
        response = self.client.post(org_url(self.staff, self.organization, 'deployments/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_publish_conflict(self):
        DeploymentService.set_status(self.organization, Deployment.STATUS_BUILDING, 'Building...')
        self.client.authenticate_user(self.owner)
        response = self.client.post(org_url(self.owner, self.organization, 'deployments/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_publish_failure_returns_500(self):
        self.client.authenticate_user(self.owner)
        with mock.patch.object(DeploymentService, 'export_snapshot', side_effect=OSError('disk full')):
            response = self.client.post(org_url(self.owner, self.organization, 'deployments/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'disk full')

    def test_deployment_status(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get(org_url(self.staff, self.organization, 'deployments/status/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'idle')
        self.assertEqual(response.data['organization_id'], self.organization.id)

    def test_dismiss(self):
        record = TestDataFactory.create_pre_deployment(self.organization)
        self.client.authenticate_user(self.owner)
        response = self.client.delete(org_url(self.owner, self.organization, f'pre-deployments/{record.id}/'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PreDeployment.objects.filter(pk=record.id).exists())
        self.assertTrue(AuditLog.objects.filter(action='dismiss', object_id=str(record.id)).exists())

    def test_dismiss_forbidden_for_staff(self):
        record = TestDataFactory.create_pre_deployment(self.organization)
        self.client.authenticate_user(self.staff)
        response = self.client.delete(org_url(self.staff, self.organization, f'pre-deployments/{record.id}/'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_read_other_organization_record(self):
        other = TestDataFactory.create_organization()
        record = TestDataFactory.create_pre_deployment(other)
        self.client.authenticate_user(self.owner)
        response = self.client.get(org_url(self.owner, self.organization, f'pre-deployments/{record.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_flat_deploy_with_header(self):
        self.client.authenticate_user(self.owner)
        response = self.client.post('/api/deploy/', {}, format='json',
                                    HTTP_X_ORGANIZATION_ID=str(self.organization.id))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get('/api/deploy/status/', HTTP_X_ORGANIZATION_ID=str(self.organization.id))
        self.assertEqual(response.data['status'], 'success')

    def test_flat_deploy_without_organization(self):
        self.client.authenticate_user(self.owner)
        response = self.client.post('/api/deploy/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_flat_active(self):
        PreDeploymentService.trigger(self.organization, 'cms', 'update', entity_id='hero.title')
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/pre-deployments/active/', HTTP_X_ORGANIZATION_ID=str(self.organization.id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Contenido actualizado - listo para publicar')


class ApiClientTests(SimpleTestCase):
    """Test the requests-based client and its query cache"""

    def setUp(self):
        self.session = mock.MagicMock()
        self.session.headers = {}
        self.response = mock.MagicMock(status_code=200, content=b'{"id": 1}')
        self.response.json.return_value = {'id': 1}
        self.session.request.return_value = self.response
        self.client = ApiClient('http://api.test/', session=self.session)

    def test_query_is_cached(self):
        self.assertEqual(self.client.query('/api/x/'), {'id': 1})
        self.client.query('/api/x/')
        self.session.request.assert_called_once_with('GET', 'http://api.test/api/x/', json=None, timeout=10)

    def test_invalidate_forces_refetch(self):
        self.client.query('/api/x/')
        self.client.invalidate('/api/x/')
        self.assertFalse(self.client.is_cached('/api/x/'))
        self.client.query('/api/x/')
        self.assertEqual(self.session.request.call_count, 2)

    def test_empty_response(self):
        self.response.status_code = 204
        self.response.content = b''
        self.assertIsNone(self.client.request('DELETE', '/api/x/'))

    def test_http_error_propagates(self):
        self.response.raise_for_status.side_effect = requests.HTTPError('500 Server Error')
        with self.assertRaises(requests.HTTPError):
            self.client.request('GET', '/api/x/')

    def test_authenticate_sets_bearer_token(self):
        self.response.json.return_value = {'access': 'abc', 'refresh': 'def', 'user': {'id': 3}}
        self.client.authenticate('owner', 'secret')
        self.assertEqual(self.session.headers['Authorization'], 'Bearer abc')


@override_settings(PREDEPLOYMENT_POLL_INTERVAL=5.0)
class PreDeploymentBannerTests(SimpleTestCase):
    """Test banner rendering, actions and polling"""

    READY = {'id': 9, 'status': 'ready', 'message': 'Producto creado - listo para publicar', 'errorDetails': None}

    def setUp(self):
        self.client = mock.MagicMock()
        self.client.query.return_value = dict(self.READY)
        self.client.fetch.return_value = dict(self.READY)
        self.urls = ApiUrlBuilder(user_id=1, organization_id=7)

    def make_banner(self, **kwargs):
        return PreDeploymentBanner(self.client, self.urls, **kwargs)

    def test_default_interval_from_settings(self):
        self.assertEqual(self.make_banner().interval, 5.0)

    def test_interval_must_be_positive(self):
        with self.assertRaises(ValueError):
            self.make_banner(interval=0)

    def test_hidden_while_loading(self):
        self.assertIsNone(self.make_banner().render())

    def test_render_ready_for_admin(self):
        banner = self.make_banner(is_admin=True)
        banner.refresh()
        self.client.query.assert_called_once_with('/api/user/1/organization/7/pre-deployments/active/')
        state = banner.render()
        self.assertEqual(state['status'], 'ready')
        self.assertTrue(state['can_publish'])
        self.assertTrue(state['can_dismiss'])

    def test_non_admin_cannot_publish(self):
        banner = self.make_banner()
        banner.refresh()
        state = banner.render()
        self.assertFalse(state['can_publish'])
        self.assertFalse(state['can_dismiss'])
        self.assertFalse(banner.publish())
        self.client.request.assert_not_called()

    def test_hidden_for_published_or_missing(self):
        banner = self.make_banner(is_admin=True)
        self.client.query.return_value = dict(self.READY, status='published')
        banner.refresh()
        self.assertIsNone(banner.render())

        self.client.query.return_value = None
        banner.refresh()
        self.assertIsNone(banner.render())

    def test_error_state_shows_details(self):
        self.client.query.return_value = dict(self.READY, status='error', errorDetails='disk full')
        banner = self.make_banner(is_admin=True)
        banner.refresh()
        state = banner.render()
        self.assertFalse(state['can_publish'])
        self.assertEqual(state['error_details'], 'disk full')
        self.assertEqual(state['status_text'], 'Error en la preparación de cambios')

    def test_hidden_without_context(self):
        banner = PreDeploymentBanner(self.client, ApiUrlBuilder(user_id=1), is_admin=True)
        self.assertIsNone(banner.refresh())
        self.assertIsNone(banner.render())
        self.client.query.assert_not_called()

    def test_request_failure_leaves_no_record(self):
        self.client.query.side_effect = requests.ConnectionError('offline')
        banner = self.make_banner()
        self.assertIsNone(banner.refresh())
        self.assertFalse(banner.is_loading)
        self.assertIsNone(banner.render())

    def test_publish_invalidates_active_and_status(self):
        banner = self.make_banner(is_admin=True)
        banner.refresh()
        self.assertTrue(banner.publish())
        self.client.request.assert_called_once_with('POST', '/api/user/1/organization/7/deployments/', json={})
        self.client.invalidate.assert_called_once_with(
            '/api/user/1/organization/7/pre-deployments/active/',
            '/api/user/1/organization/7/deployments/status/',
        )
        self.assertFalse(banner.is_publishing)

    def test_publish_failure_clears_flag(self):
        self.client.request.side_effect = requests.HTTPError('500 Server Error')
        banner = self.make_banner(is_admin=True)
        banner.refresh()
        self.assertFalse(banner.publish())
        self.assertFalse(banner.is_publishing)
        self.client.invalidate.assert_not_called()

    def test_dismiss_invalidates_active_only(self):
        banner = self.make_banner(is_admin=True)
        banner.refresh()
        self.assertTrue(banner.dismiss(9))
        self.client.request.assert_called_once_with('DELETE', '/api/user/1/organization/7/pre-deployments/9/')
        self.client.invalidate.assert_called_once_with('/api/user/1/organization/7/pre-deployments/active/')

    def test_on_change_only_when_record_changes(self):
        changes = []
        banner = self.make_banner(on_change=changes.append)
        banner.refresh()
        banner.refresh()
        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0]['id'], 9)

    def test_polling_start_and_stop(self):
        seen = threading.Event()
        banner = self.make_banner(interval=0.01, on_change=lambda state: seen.set())
        with banner:
            self.assertTrue(banner.is_running)
            self.assertTrue(seen.wait(2))
        self.assertFalse(banner.is_running)
        self.client.fetch.assert_called_with('/api/user/1/organization/7/pre-deployments/active/')
