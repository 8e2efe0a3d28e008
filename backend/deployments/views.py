"""
Pre-deployment and deployment endpoints.

Each view serves both the organization-scoped routes
(``/api/user/<user_id>/organization/<org_id>/...``) and the flat routes
(``/api/deploy/``, ``/api/pre-deployments/...``) where the organization
comes from the ``X-Organization-ID`` header or the host.
"""
import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from backend.organizations.permissions import (
    ORG_MEMBER_PERMISSIONS, ORG_ADMIN_PERMISSIONS, ORG_ADMIN_OR_READ_PERMISSIONS,
)
from .models import PreDeployment, Deployment
from .serializers import PreDeploymentSerializer, DeploymentSerializer
from .services import PreDeploymentService, DeploymentService, DeploymentInProgressError

logger = logging.getLogger('backend.deployments')


def _publish(request):
    organization = request.organization
    try:
        deployment = DeploymentService.publish(organization, user=request.user)
    except DeploymentInProgressError as e:
        return Response({'error': 'Deployment in progress', 'message': str(e)}, status=status.HTTP_409_CONFLICT)

    create_audit_log(request=request, action='publish', model_name='Deployment',
                     object_id=deployment.id, object_name=deployment.build_id,
                     changes={'status': deployment.status})

    data = DeploymentSerializer(deployment).data
    if deployment.status == Deployment.STATUS_ERROR:
        return Response({'error': 'Deployment failed', 'message': deployment.error_details, 'deployment': data},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(data, status=status.HTTP_201_CREATED)


# ==================== PRE-DEPLOYMENTS ====================

@api_view(['GET'])
@permission_classes(ORG_MEMBER_PERMISSIONS)
def pre_deployment_list(request, user_id=None, org_id=None):
    """Recent pre-deployments of the organization, newest first"""
    queryset = PreDeployment.objects.filter(organization=request.organization)
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    serializer = PreDeploymentSerializer(queryset[:50], many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes(ORG_MEMBER_PERMISSIONS)
def pre_deployment_active(request, user_id=None, org_id=None):
    """The open pre-deployment or null"""
    active = PreDeploymentService.get_active(request.organization)
    if active is None:
        return Response(None)
    return Response(PreDeploymentSerializer(active).data)


@api_view(['GET', 'DELETE'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def pre_deployment_detail(request, pk, user_id=None, org_id=None):
    """Retrieve or dismiss a pre-deployment"""
    pre_deployment = get_object_or_404(PreDeployment, pk=pk, organization=request.organization)

    if request.method == 'GET':
        return Response(PreDeploymentSerializer(pre_deployment).data)

    record_id = pre_deployment.id
    message = pre_deployment.message
    pre_deployment.delete()
    create_audit_log(request=request, action='dismiss', model_name='PreDeployment',
                     object_id=record_id, object_name=message)
    logger.info(f"Pre-deployment {record_id} dismissed by user {request.user.pk}")
    return Response(status=status.HTTP_204_NO_CONTENT)


# ==================== DEPLOYMENTS ====================

@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def deployment_list_create(request, user_id=None, org_id=None):
    """Deployment history, or publish the storefront"""
    if request.method == 'GET':
        deployments = Deployment.objects.select_related('triggered_by').filter(organization=request.organization)
        return Response(DeploymentSerializer(deployments[:50], many=True).data)
    return _publish(request)


@api_view(['GET'])
@permission_classes(ORG_MEMBER_PERMISSIONS)
def deployment_status(request, user_id=None, org_id=None):
    return Response(DeploymentService.get_status(request.organization))


@api_view(['POST'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def deploy(request):
    """Publish the storefront of the organization named by header or host"""
    return _publish(request)
