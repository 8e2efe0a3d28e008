import re

from rest_framework import serializers

from .models import Organization, Role, OrganizationMember, OrganizationInvitation
from .services import get_reserved_subdomains

SUBDOMAIN_RE = re.compile(r'^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$')


class OrganizationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Organization
        fields = ['id', 'name', 'slug', 'subdomain', 'custom_domain', 'domain_verified',
                  'settings', 'plan', 'billing_email', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['domain_verified', 'plan', 'is_active', 'created_at', 'updated_at']
        # availability is checked by the service layer with the reserved list applied
        extra_kwargs = {
            'slug': {'validators': []},
            'subdomain': {'validators': []},
            'custom_domain': {'validators': []},
        }

    def validate_subdomain(self, value):
        if not value:
            return None
        value = value.lower()
        if not SUBDOMAIN_RE.match(value):
            raise serializers.ValidationError('Subdomain may only contain lowercase letters, digits and hyphens')
        if value in get_reserved_subdomains():
            raise serializers.ValidationError('This subdomain is reserved')
        return value

    def validate_custom_domain(self, value):
        return value.lower() if value else None


class PublicOrganizationSerializer(serializers.ModelSerializer):
    """What an anonymous storefront visitor may learn about a tenant"""

    class Meta:
        model = Organization
        fields = ['id', 'name', 'slug', 'subdomain', 'custom_domain', 'settings']


class OrganizationSettingsSerializer(serializers.Serializer):
    theme = serializers.DictField(required=False)
    contact = serializers.DictField(required=False)
    payment = serializers.DictField(required=False)
    shipping = serializers.DictField(required=False)


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'name', 'display_name', 'description', 'is_system']


class OrganizationMemberSerializer(serializers.ModelSerializer):
    role = RoleSerializer(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = OrganizationMember
        fields = ['id', 'user', 'username', 'email', 'role', 'is_default', 'invited_by', 'joined_at']


class MembershipSerializer(serializers.ModelSerializer):
    """A user's view of their own memberships"""
    organization = OrganizationSerializer(read_only=True)
    role = RoleSerializer(read_only=True)

    class Meta:
        model = OrganizationMember
        fields = ['id', 'organization', 'role', 'is_default', 'joined_at']


class AddMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=Role.SYSTEM_ROLE_NAMES, default=Role.STAFF)


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.SYSTEM_ROLE_NAMES)


class InvitationCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=Role.SYSTEM_ROLE_NAMES, default=Role.STAFF)


class OrganizationInvitationSerializer(serializers.ModelSerializer):
    """Invitation as seen by the organization's admins"""
    role = RoleSerializer(read_only=True)
    invited_by_username = serializers.CharField(source='invited_by.username', read_only=True, default=None)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = OrganizationInvitation
        fields = ['id', 'email', 'role', 'token', 'status', 'invited_by', 'invited_by_username',
                  'expires_at', 'is_expired', 'created_at']


class PublicInvitationSerializer(serializers.ModelSerializer):
    """What the invitee sees before accepting"""
    organization = PublicOrganizationSerializer(read_only=True)
    role = serializers.CharField(source='role.name', read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = OrganizationInvitation
        fields = ['email', 'organization', 'role', 'status', 'expires_at', 'is_expired']
