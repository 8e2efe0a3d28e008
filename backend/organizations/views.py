import logging

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from .models import Organization, OrganizationMember, OrganizationInvitation
from .permissions import (
    IsRouteUser, get_request_membership, ORG_ADMIN_PERMISSIONS, ORG_ADMIN_OR_READ_PERMISSIONS,
)
from .serializers import (
    OrganizationSerializer, PublicOrganizationSerializer, OrganizationSettingsSerializer,
    OrganizationMemberSerializer, MembershipSerializer, AddMemberSerializer, MemberRoleSerializer,
    InvitationCreateSerializer, OrganizationInvitationSerializer, PublicInvitationSerializer,
)
from .services import (
    OrganizationError, create_organization, update_organization, update_settings,
    check_slug_available, check_subdomain_available, get_user_organizations,
    get_default_organization, set_default_organization, add_member, update_member_role,
    remove_member, create_invitation, accept_invitation, cancel_invitation, resend_invitation,
)

User = get_user_model()

logger = logging.getLogger('backend.organizations')


# ==================== USER-SCOPED ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsRouteUser])
def user_organization_list_create(request, user_id):
    """List the user's organizations or create a new one owned by the user"""
    if request.method == 'GET':
        organizations = get_user_organizations(request.user)
        return Response(OrganizationSerializer(organizations, many=True).data)

    serializer = OrganizationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        organization = create_organization(request.user, serializer.validated_data)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='Organization',
                     object_id=organization.id, object_name=organization.name,
                     organization=organization)
    return Response(OrganizationSerializer(organization).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRouteUser])
def user_default_organization(request, user_id):
    """The organization the user lands in after login (null when none)"""
    organization = get_default_organization(request.user)
    if organization is None:
        return Response(None)
    return Response(OrganizationSerializer(organization).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsRouteUser])
def user_set_default_organization(request, user_id, organization_id):
    organization = Organization.objects.filter(pk=organization_id).first()
    if organization is None:
        return Response({'error': 'Organization not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        membership = set_default_organization(request.user, organization)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(MembershipSerializer(membership).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRouteUser])
def user_membership_list(request, user_id):
    memberships = (
        OrganizationMember.objects.select_related('organization', 'role')
        .filter(user=request.user)
    )
    return Response(MembershipSerializer(memberships, many=True).data)


# ==================== ORGANIZATION-SCOPED ====================

@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def organization_detail(request, user_id, org_id):
    """Retrieve or update the organization itself"""
    organization = request.organization
    if request.method == 'GET':
        return Response(OrganizationSerializer(organization).data)

    serializer = OrganizationSerializer(organization, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        organization = update_organization(organization, serializer.validated_data)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='update', model_name='Organization',
                     object_id=organization.id, object_name=organization.name,
                     changes=dict(serializer.validated_data))
    return Response(OrganizationSerializer(organization).data)


@api_view(['GET', 'PATCH'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def organization_settings(request, user_id, org_id):
    """Read or merge-update the organization's storefront settings"""
    organization = request.organization
    if request.method == 'GET':
        return Response(organization.settings or {})

    serializer = OrganizationSettingsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    organization = update_settings(organization, serializer.validated_data)
    create_audit_log(request=request, action='settings_update', model_name='Organization',
                     object_id=organization.id, object_name=organization.name,
                     changes=serializer.validated_data)
    return Response(organization.settings)


@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def organization_member_list(request, user_id, org_id):
    """List members, or add an existing user directly with a role"""
    organization = request.organization
    if request.method == 'GET':
        members = (
            OrganizationMember.objects.select_related('user', 'role')
            .filter(organization=organization)
        )
        return Response(OrganizationMemberSerializer(members, many=True).data)

    serializer = AddMemberSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = User.objects.filter(pk=serializer.validated_data['user_id'], is_active=True).first()
    if user is None:
        return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        member = add_member(organization, user, serializer.validated_data['role'],
                            invited_by=request.user, acting_member=get_request_membership(request))
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='OrganizationMember',
                     object_id=member.id, object_name=user.username,
                     changes={'role': member.role.name})
    return Response(OrganizationMemberSerializer(member).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def organization_member_detail(request, user_id, org_id, member_id):
    """Retrieve a member, change their role or remove them"""
    member = (
        OrganizationMember.objects.select_related('user', 'role', 'organization')
        .filter(organization=request.organization, pk=member_id)
        .first()
    )
    if member is None:
        return Response({'error': 'Member not found'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(OrganizationMemberSerializer(member).data)

    acting_member = get_request_membership(request)
    if request.method == 'DELETE':
        try:
            remove_member(member, acting_member=acting_member)
        except OrganizationError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='OrganizationMember',
                         object_id=member_id, object_name=member.user.username)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = MemberRoleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    old_role = member.role.name
    try:
        member = update_member_role(member, serializer.validated_data['role'], acting_member=acting_member)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='update', model_name='OrganizationMember',
                     object_id=member.id, object_name=member.user.username,
                     changes={'role': {'old': old_role, 'new': member.role.name}})
    return Response(OrganizationMemberSerializer(member).data)


def _get_organization_invitation(request, invitation_id):
    return (
        OrganizationInvitation.objects.select_related('role', 'invited_by', 'organization')
        .filter(organization=request.organization, pk=invitation_id)
        .first()
    )


@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def organization_invitation_list_create(request, user_id, org_id):
    organization = request.organization
    if request.method == 'GET':
        invitations = (
            OrganizationInvitation.objects.select_related('role', 'invited_by')
            .filter(organization=organization)
        )
        status_filter = request.query_params.get('status')
        if status_filter:
            invitations = invitations.filter(status=status_filter)
        return Response(OrganizationInvitationSerializer(invitations, many=True).data)

    serializer = InvitationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        invitation = create_invitation(organization, serializer.validated_data['email'],
                                       serializer.validated_data['role'], invited_by=request.user,
                                       acting_member=get_request_membership(request))
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='OrganizationInvitation',
                     object_id=invitation.id, object_name=invitation.email,
                     changes={'role': invitation.role.name})
    return Response(OrganizationInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def organization_invitation_detail(request, user_id, org_id, invitation_id):
    """Retrieve or cancel an invitation"""
    invitation = _get_organization_invitation(request, invitation_id)
    if invitation is None:
        return Response({'error': 'Invitation not found'}, status=status.HTTP_404_NOT_FOUND)
    if request.method == 'GET':
        return Response(OrganizationInvitationSerializer(invitation).data)

    try:
        invitation = cancel_invitation(invitation)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='update', model_name='OrganizationInvitation',
                     object_id=invitation.id, object_name=invitation.email,
                     changes={'status': invitation.status})
    return Response(OrganizationInvitationSerializer(invitation).data)


@api_view(['POST'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def organization_invitation_resend(request, user_id, org_id, invitation_id):
    invitation = _get_organization_invitation(request, invitation_id)
    if invitation is None:
        return Response({'error': 'Invitation not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        invitation = resend_invitation(invitation)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(OrganizationInvitationSerializer(invitation).data)


# ==================== PUBLIC ====================

@api_view(['GET'])
@permission_classes([AllowAny])
def check_slug(request, slug):
    return Response({'slug': slug, 'available': check_slug_available(slug)})


@api_view(['GET'])
@permission_classes([AllowAny])
def check_subdomain(request, subdomain):
    return Response({'subdomain': subdomain, 'available': check_subdomain_available(subdomain)})


@api_view(['GET'])
@permission_classes([AllowAny])
def organization_by_slug(request, slug):
    organization = Organization.objects.filter(slug=slug, is_active=True).first()
    if organization is None:
        return Response({'error': 'Organization not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(PublicOrganizationSerializer(organization).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def organization_by_subdomain(request, subdomain):
    organization = Organization.objects.filter(subdomain__iexact=subdomain, is_active=True).first()
    if organization is None:
        return Response({'error': 'Organization not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(PublicOrganizationSerializer(organization).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def current_organization(request):
    """The tenant resolved for this request's host or header (null on the main domain)"""
    organization = getattr(request, 'organization', None)
    if organization is None:
        return Response(None)
    return Response(PublicOrganizationSerializer(organization).data)


def _get_invitation_by_token(token):
    return (
        OrganizationInvitation.objects.select_related('organization', 'role', 'invited_by')
        .filter(token=token)
        .first()
    )


@api_view(['GET'])
@permission_classes([AllowAny])
def invitation_by_token(request, token):
    """Invitation preview for the join page"""
    invitation = _get_invitation_by_token(token)
    if invitation is None:
        return Response({'error': 'Invitation not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(PublicInvitationSerializer(invitation).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invitation_accept(request, token):
    invitation = _get_invitation_by_token(token)
    if invitation is None:
        return Response({'error': 'Invitation not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        membership = accept_invitation(invitation, request.user)
    except OrganizationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='OrganizationMember',
                     object_id=membership.id, object_name=request.user.username,
                     changes={'role': membership.role.name, 'invitation': invitation.id},
                     organization=invitation.organization)
    return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)
