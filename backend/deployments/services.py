"""
Pre-deployment tracking and storefront publishing.

Every catalog or CMS change calls ``PreDeploymentService.trigger`` which
folds the change into the organization's open pre-deployment (or opens a
new one). ``DeploymentService.publish`` exports a static snapshot of the
storefront data and closes the open pre-deployment.
"""
import json
import logging
import time
import uuid
from pathlib import Path

from django.conf import settings
from django.core.cache import cache
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from backend.catalog.models import Category, Product
from backend.catalog.serializers import CategorySerializer, ProductSerializer
from backend.cms.models import HomePageContent
from backend.cms.serializers import HomePageContentSerializer
from backend.core.subdomain import get_base_domain
from .models import PreDeployment, Deployment

logger = logging.getLogger(__name__)

DEPLOYMENT_STATUS_KEY_PREFIX = 'deployment_status:'
DEPLOYMENT_LOCK_KEY_PREFIX = 'deployment_lock:'
# Long enough to outlive any export, short enough to self-heal after a crash
DEPLOYMENT_STATUS_TTL = 60 * 60


class DeploymentInProgressError(ValueError):
    """A publish was requested while another one is still running"""


class PreDeploymentService:
    TYPE_MESSAGES = {
        'product': 'producto',
        'category': 'categoría',
        'cms': 'contenido',
    }
    ACTION_MESSAGES = {
        'create': 'creado',
        'update': 'actualizado',
        'delete': 'eliminado',
    }
    MERGED_MESSAGE = 'Múltiples cambios pendientes de publicar'

    @staticmethod
    def get_active(organization):
        """
        The organization's newest pre-deployment, unless it is already published.

        A successful publish therefore hides every older record, including
        failed ones. A failed record is also hidden once a later deployment
        has succeeded.
        """
        if organization is None:
            return None
        latest = PreDeployment.objects.filter(organization=organization).order_by('-created_at', '-id').first()
        if latest is None or latest.status == PreDeployment.STATUS_PUBLISHED:
            return None
        if latest.status == PreDeployment.STATUS_ERROR and Deployment.objects.filter(
                organization=organization,
                status=Deployment.STATUS_SUCCESS,
                created_at__gte=latest.updated_at).exists():
            return None
        return latest

    @classmethod
    def build_message(cls, trigger_type, action):
        type_message = cls.TYPE_MESSAGES.get(trigger_type, trigger_type)
        action_message = cls.ACTION_MESSAGES.get(action, action)
        return f"{type_message[:1].upper()}{type_message[1:]} {action_message} - listo para publicar"

    @staticmethod
    def build_change_entry(trigger_type, action, entity_type=None, changes=None):
        return {
            'type': trigger_type,
            'action': action,
            'entity_type': entity_type,
            'changes': changes,
            'timestamp': timezone.now().isoformat(),
        }

    @classmethod
    def trigger(cls, organization, trigger_type, action, entity_id=None, entity_type=None, changes=None):
        """
        Record a content change for ``organization``.

        Never raises: a failure here must not undo the change that caused it.
        Returns the pre-deployment that now holds the change, or None on failure.
        """
        try:
            entry_key = f"{trigger_type}:{entity_id if entity_id is not None else 'unknown'}"
            entry = cls.build_change_entry(trigger_type, action, entity_type, changes)

            active = cls.get_active(organization)
            if active is not None and active.status in PreDeployment.OPEN_STATUSES:
                merged = dict(active.changes or {})
                merged[entry_key] = entry
                active.changes = merged
                active.message = cls.MERGED_MESSAGE
                active.save(update_fields=['changes', 'message', 'updated_at'])
                logger.info(f"Updated pre-deployment {active.id} for {organization.slug} with {trigger_type} {action}")
                return active

            pre_deployment = PreDeployment.objects.create(
                organization=organization,
                status=PreDeployment.STATUS_READY,
                trigger_type=trigger_type,
                trigger_action=action,
                entity_id=str(entity_id) if entity_id is not None else None,
                entity_type=entity_type,
                changes={entry_key: entry},
                message=cls.build_message(trigger_type, action),
            )
            logger.info(f"Created pre-deployment {pre_deployment.id} for {organization.slug}")
            return pre_deployment
        except Exception as e:
            logger.error(f"Error triggering pre-deployment: {str(e)}", exc_info=True)
            return None


class DeploymentService:
    @staticmethod
    def get_status_cache_key(organization):
        return f"{DEPLOYMENT_STATUS_KEY_PREFIX}{organization.pk}"

    @staticmethod
    def get_lock_cache_key(organization):
        return f"{DEPLOYMENT_LOCK_KEY_PREFIX}{organization.pk}"

    @classmethod
    def get_status(cls, organization):
        return cache.get(cls.get_status_cache_key(organization)) or {
            'status': 'idle',
            'message': 'Ready to deploy',
            'timestamp': timezone.now().isoformat(),
            'build_id': None,
            'organization_id': organization.pk,
        }

    @classmethod
    def set_status(cls, organization, status, message, build_id=None):
        value = {
            'status': status,
            'message': message,
            'timestamp': timezone.now().isoformat(),
            'build_id': build_id,
            'organization_id': organization.pk,
        }
        cache.set(cls.get_status_cache_key(organization), value, DEPLOYMENT_STATUS_TTL)
        return value

    @staticmethod
    def get_deploy_url(organization):
        if organization.custom_domain and organization.domain_verified:
            return f"https://{organization.custom_domain}"
        if organization.subdomain:
            return f"https://{organization.subdomain}.{get_base_domain()}"
        return f"https://{get_base_domain()}/{organization.slug}"

    @staticmethod
    def get_export_dir(organization):
        return Path(settings.STOREFRONT_EXPORT_ROOT) / organization.slug / 'data'

    @classmethod
    def export_snapshot(cls, organization):
        """Write products.json, categories.json and cms.json; return the written paths"""
        products = Product.objects.select_related('category').filter(organization=organization, is_active=True)
        categories = Category.objects.filter(organization=organization, is_active=True)
        content = HomePageContent.objects.filter(organization=organization, is_active=True)

        payloads = {
            'products.json': ProductSerializer(products, many=True).data,
            'categories.json': CategorySerializer(categories, many=True).data,
            'cms.json': HomePageContentSerializer(content, many=True).data,
        }

        export_dir = cls.get_export_dir(organization)
        export_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for filename, data in payloads.items():
            path = export_dir / filename
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, cls=DjangoJSONEncoder, ensure_ascii=False, indent=2)
            written.append(path)
        logger.info(f"Exported {len(written)} storefront files for {organization.slug} to {export_dir}")
        return written

    @classmethod
    def publish(cls, organization, user=None):
        """
        Publish the organization's storefront.

        Returns the Deployment record; its status is ``success`` or ``error``.
        Raises DeploymentInProgressError when another publish is running.
        """
        build_id = f"cms-{organization.slug}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        lock_key = cls.get_lock_cache_key(organization)
        # cache.add only stores when the key is absent, so one caller wins.
        # None means the cache is unreachable and the error was ignored.
        if cache.add(lock_key, build_id, DEPLOYMENT_STATUS_TTL) is False:
            raise DeploymentInProgressError('A deployment is already in progress for this organization')
        try:
            current = cls.get_status(organization)
            if current['status'] in Deployment.IN_PROGRESS_STATUSES:
                raise DeploymentInProgressError('A deployment is already in progress for this organization')
            return cls.run_publish(organization, build_id, user)
        finally:
            cache.delete(lock_key)

    @classmethod
    def run_publish(cls, organization, build_id, user=None):
        deployment = Deployment.objects.create(
            organization=organization,
            build_id=build_id,
            status=Deployment.STATUS_BUILDING,
            message='Building application...',
            deploy_url=cls.get_deploy_url(organization),
            triggered_by=user if user is not None and user.is_authenticated else None,
        )
        cls.set_status(organization, Deployment.STATUS_BUILDING, deployment.message, build_id)

        active = PreDeploymentService.get_active(organization)
        try:
            deployment.status = Deployment.STATUS_UPLOADING
            deployment.message = 'Exporting storefront data...'
            deployment.save(update_fields=['status', 'message', 'updated_at'])
            cls.set_status(organization, Deployment.STATUS_UPLOADING, deployment.message, build_id)

            written = cls.export_snapshot(organization)

            if active is not None and active.status in PreDeployment.OPEN_STATUSES:
                if active.status == PreDeployment.STATUS_PENDING:
                    active.mark_ready()
                active.mark_published(build_id)

            deployment.status = Deployment.STATUS_SUCCESS
            deployment.message = 'Deployment completed successfully!'
            deployment.files_uploaded = len(written)
            deployment.completed_at = timezone.now()
            deployment.save()
            cls.set_status(organization, Deployment.STATUS_SUCCESS, deployment.message, build_id)
            logger.info(f"Deployment {build_id} for {organization.slug} completed ({len(written)} files)")
        except Exception as e:
            logger.error(f"Deployment {build_id} for {organization.slug} failed: {str(e)}", exc_info=True)
            deployment.status = Deployment.STATUS_ERROR
            deployment.message = 'Deployment failed'
            deployment.error_details = str(e)
            deployment.completed_at = timezone.now()
            deployment.save()
            cls.set_status(organization, Deployment.STATUS_ERROR, str(e), build_id)

            if active is not None:
                active.refresh_from_db()
                if active.status in PreDeployment.OPEN_STATUSES:
                    active.mark_error(str(e))
        return deployment
