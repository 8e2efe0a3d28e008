import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from backend.deployments.services import PreDeploymentService
from backend.organizations.permissions import ORG_ADMIN_OR_READ_PERMISSIONS, ORG_ADMIN_PERMISSIONS
from .models import HomePageContent
from .serializers import HomePageContentSerializer, HomePageContentBulkItemSerializer

logger = logging.getLogger('backend.cms')


def _record_change(request, content, action, changes=None):
    create_audit_log(request=request, action=action, model_name='HomePageContent',
                     object_id=content.pk, object_name=str(content), changes=changes)
    PreDeploymentService.trigger(
        request.organization, 'cms', action,
        entity_id=content.pk, entity_type='homePageContent', changes=changes,
    )


@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def home_content_list_create(request, user_id, org_id):
    """List home page content (optionally by section) or create an entry"""
    organization = request.organization
    if request.method == 'GET':
        queryset = HomePageContent.objects.filter(organization=organization)
        section = request.query_params.get('section')
        if section:
            queryset = queryset.filter(section=section)
        return Response(HomePageContentSerializer(queryset, many=True).data)

    serializer = HomePageContentSerializer(data=request.data, context={'organization': organization})
    if serializer.is_valid():
        content = serializer.save(organization=organization)
        data = HomePageContentSerializer(content).data
        _record_change(request, content, 'create', changes={'value': content.value})
        return Response(data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def home_content_detail(request, user_id, org_id, pk):
    content = get_object_or_404(HomePageContent, pk=pk, organization=request.organization)

    if request.method == 'GET':
        return Response(HomePageContentSerializer(content).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = HomePageContentSerializer(content, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            content = serializer.save()
            _record_change(request, content, 'update', changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        _record_change(request, content, 'delete', changes={'section': content.section, 'key': content.key})
        content.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def home_content_bulk(request, user_id, org_id):
    """
    Upsert a list of ``{section, key, value}`` entries in one request.

    Entries are matched on (section, key); unknown pairs are created. The
    whole batch is folded into a single pre-deployment change.
    """
    organization = request.organization
    items = request.data.get('items') if isinstance(request.data, dict) else request.data
    serializer = HomePageContentBulkItemSerializer(data=items, many=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if not serializer.validated_data:
        return Response({'error': 'No content items provided'}, status=status.HTTP_400_BAD_REQUEST)

    saved = []
    created_count = 0
    with transaction.atomic():
        for item in serializer.validated_data:
            defaults = {'value': item['value']}
            for optional in ('type', 'display_name'):
                if optional in item:
                    defaults[optional] = item[optional]
            content, created = HomePageContent.objects.update_or_create(
                organization=organization, section=item['section'], key=item['key'],
                defaults=defaults,
            )
            created_count += int(created)
            saved.append(content)

    changes = {f"{content.section}.{content.key}": content.value for content in saved}
    create_audit_log(request=request, action='update', model_name='HomePageContent',
                     object_id='bulk', object_name=f'{len(saved)} entries', changes=changes)
    PreDeploymentService.trigger(organization, 'cms', 'update', entity_id='bulk',
                                 entity_type='homePageContent', changes=changes)
    logger.info(f"Bulk CMS update for {organization.slug}: {len(saved)} entries ({created_count} new)")
    return Response(HomePageContentSerializer(saved, many=True).data)
