"""
Organization lifecycle: creation with owner membership, slug and subdomain
availability, settings updates, default-organization lookup, member
management and invitations.
"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from backend.core.subdomain import build_main_domain_url
from .models import Organization, Role, OrganizationMember, OrganizationInvitation

logger = logging.getLogger(__name__)


class OrganizationError(ValueError):
    """Business-rule violation while creating or updating an organization"""


def get_reserved_subdomains():
    return [label.lower() for label in getattr(settings, 'RESERVED_SUBDOMAINS', [])]


def check_slug_available(slug, exclude_id=None):
    queryset = Organization.objects.filter(slug=slug)
    if exclude_id:
        queryset = queryset.exclude(pk=exclude_id)
    return not queryset.exists()


def check_subdomain_available(subdomain, exclude_id=None):
    if not subdomain:
        return False
    if subdomain.lower() in get_reserved_subdomains():
        return False
    queryset = Organization.objects.filter(subdomain__iexact=subdomain)
    if exclude_id:
        queryset = queryset.exclude(pk=exclude_id)
    return not queryset.exists()


def get_system_role(name):
    """Fetch a platform-wide role, creating it on first use"""
    role, _ = Role.objects.get_or_create(
        name=name, organization=None,
        defaults={'display_name': name.capitalize(), 'is_system': True},
    )
    return role


@transaction.atomic
def create_organization(owner, data):
    """
    Create an organization and make ``owner`` its owner.

    The membership is flagged as default when it is the user's first one.
    """
    slug = data.get('slug')
    subdomain = data.get('subdomain') or None

    if not check_slug_available(slug):
        raise OrganizationError('El slug ya está en uso')
    if subdomain and not check_subdomain_available(subdomain):
        raise OrganizationError('El subdominio ya está en uso')

    organization = Organization.objects.create(**data)

    is_first = not OrganizationMember.objects.filter(user=owner).exists()
    OrganizationMember.objects.create(
        organization=organization,
        user=owner,
        role=get_system_role(Role.OWNER),
        is_default=is_first,
        invited_by=owner,
    )
    logger.info(f"Organization {organization.slug} created by user {owner.pk}")
    return organization


def update_organization(organization, data):
    slug = data.get('slug')
    subdomain = data.get('subdomain')
    if slug and not check_slug_available(slug, exclude_id=organization.pk):
        raise OrganizationError('El slug ya está en uso')
    if subdomain and not check_subdomain_available(subdomain, exclude_id=organization.pk):
        raise OrganizationError('El subdominio ya está en uso')

    for field, value in data.items():
        setattr(organization, field, value)
    organization.save()
    return organization


def update_settings(organization, new_settings):
    """Shallow-merge ``new_settings`` into the stored settings"""
    merged = dict(organization.settings or {})
    merged.update(new_settings or {})
    organization.settings = merged
    organization.save(update_fields=['settings', 'updated_at'])
    return organization


def get_user_organizations(user):
    return Organization.objects.filter(members__user=user).distinct()


def get_default_organization(user):
    """The membership flagged default, else the oldest membership, else None"""
    membership = (
        OrganizationMember.objects.select_related('organization')
        .filter(user=user)
        .order_by('-is_default', 'joined_at')
        .first()
    )
    return membership.organization if membership else None


def get_membership(user, organization):
    if not user or not user.is_authenticated or organization is None:
        return None
    return (
        OrganizationMember.objects.select_related('role')
        .filter(user=user, organization=organization)
        .first()
    )


# ==================== MEMBERS ====================

def get_assignable_role(name):
    if name not in Role.SYSTEM_ROLE_NAMES:
        raise OrganizationError('Rol no encontrado')
    return get_system_role(name)


def count_owners(organization):
    return OrganizationMember.objects.filter(organization=organization, role__name=Role.OWNER).count()


def _check_owner_change(acting_member, role_names):
    """Only owners may grant, change or revoke the owner role"""
    if acting_member is None or acting_member.role.name == Role.OWNER:
        return
    if Role.OWNER in role_names:
        raise OrganizationError('Solo un propietario puede gestionar propietarios')


def add_member(organization, user, role_name=Role.STAFF, invited_by=None, acting_member=None):
    """
    Add ``user`` to ``organization``.

    The membership becomes the user's default when it is their first one.
    """
    if OrganizationMember.objects.filter(organization=organization, user=user).exists():
        raise OrganizationError('El usuario ya es miembro de esta organización')
    role = get_assignable_role(role_name)
    _check_owner_change(acting_member, [role.name])

    is_first = not OrganizationMember.objects.filter(user=user).exists()
    membership = OrganizationMember.objects.create(
        organization=organization,
        user=user,
        role=role,
        is_default=is_first,
        invited_by=invited_by,
    )
    logger.info(f"User {user.pk} added to {organization.slug} as {role.name}")
    return membership


@transaction.atomic
def update_member_role(member, role_name, acting_member=None):
    role = get_assignable_role(role_name)
    current = member.role.name
    _check_owner_change(acting_member, [current, role.name])

    if current == Role.OWNER and role.name != Role.OWNER and count_owners(member.organization) <= 1:
        raise OrganizationError('No se puede cambiar el rol del único propietario')

    member.role = role
    member.save(update_fields=['role'])
    logger.info(f"Member {member.pk} of {member.organization.slug} changed from {current} to {role.name}")
    return member


@transaction.atomic
def remove_member(member, acting_member=None):
    if member.role.name == Role.OWNER:
        _check_owner_change(acting_member, [Role.OWNER])
        if count_owners(member.organization) <= 1:
            raise OrganizationError('No se puede eliminar al único propietario de la organización')
        if acting_member is not None and acting_member.pk == member.pk:
            raise OrganizationError('No puedes eliminarte a ti mismo siendo el propietario')

    user, was_default = member.user, member.is_default
    organization = member.organization
    member.delete()

    # Keep one default membership while the user still belongs somewhere
    if was_default:
        successor = OrganizationMember.objects.filter(user=user).order_by('joined_at').first()
        if successor is not None:
            successor.is_default = True
            successor.save(update_fields=['is_default'])
    logger.info(f"User {user.pk} removed from {organization.slug}")


@transaction.atomic
def set_default_organization(user, organization):
    membership = OrganizationMember.objects.filter(user=user, organization=organization).first()
    if membership is None:
        raise OrganizationError('No eres miembro de esta organización')
    OrganizationMember.objects.filter(user=user, is_default=True).exclude(pk=membership.pk).update(is_default=False)
    if not membership.is_default:
        membership.is_default = True
        membership.save(update_fields=['is_default'])
    return membership


# ==================== INVITATIONS ====================

def get_invitation_expiry():
    return timezone.now() + timedelta(days=getattr(settings, 'INVITATION_EXPIRY_DAYS', 7))


def get_invitation_url(invitation):
    return build_main_domain_url(f'/join/{invitation.token}')


def send_invitation(invitation):
    """Deliver the invitation link. There is no mail transport yet, so the link is logged."""
    logger.info(
        f"Invitation for {invitation.email} to {invitation.organization.slug}: {get_invitation_url(invitation)}"
    )


def create_invitation(organization, email, role_name=Role.STAFF, invited_by=None, acting_member=None):
    email = email.strip().lower()
    role = get_assignable_role(role_name)
    _check_owner_change(acting_member, [role.name])

    if OrganizationMember.objects.filter(organization=organization, user__email__iexact=email).exists():
        raise OrganizationError('Este usuario ya es miembro de la organización')

    pending = OrganizationInvitation.objects.filter(
        organization=organization, email__iexact=email,
        status=OrganizationInvitation.STATUS_PENDING, expires_at__gt=timezone.now(),
    )
    if pending.exists():
        raise OrganizationError('Ya existe una invitación pendiente para este email')

    invitation = OrganizationInvitation.objects.create(
        organization=organization,
        email=email,
        role=role,
        token=secrets.token_urlsafe(24),
        invited_by=invited_by,
        expires_at=get_invitation_expiry(),
    )
    send_invitation(invitation)
    return invitation


def _require_pending(invitation, message):
    if invitation.status != OrganizationInvitation.STATUS_PENDING:
        raise OrganizationError(message)


def accept_invitation(invitation, user):
    """Join the invited organization. Returns the new membership."""
    _require_pending(invitation, 'Esta invitación ya no es válida')

    if invitation.is_expired:
        invitation.status = OrganizationInvitation.STATUS_EXPIRED
        invitation.save(update_fields=['status'])
        raise OrganizationError('Esta invitación ha expirado')

    if (user.email or '').lower() != invitation.email.lower():
        raise OrganizationError('Esta invitación no es para tu email')

    if OrganizationMember.objects.filter(organization=invitation.organization, user=user).exists():
        invitation.status = OrganizationInvitation.STATUS_ACCEPTED
        invitation.save(update_fields=['status'])
        raise OrganizationError('Ya eres miembro de esta organización')

    with transaction.atomic():
        membership = add_member(invitation.organization, user, invitation.role.name,
                                invited_by=invitation.invited_by)
        invitation.status = OrganizationInvitation.STATUS_ACCEPTED
        invitation.save(update_fields=['status'])
    return membership


def cancel_invitation(invitation):
    _require_pending(invitation, 'Solo se pueden cancelar invitaciones pendientes')
    invitation.status = OrganizationInvitation.STATUS_CANCELLED
    invitation.save(update_fields=['status'])
    return invitation


def resend_invitation(invitation):
    """Send the link again and restart its expiry window"""
    _require_pending(invitation, 'Solo se pueden reenviar invitaciones pendientes')
    invitation.expires_at = get_invitation_expiry()
    invitation.save(update_fields=['expires_at'])
    send_invitation(invitation)
    return invitation


def expire_old_invitations():
    """Mark every pending invitation past its expiry as expired; return how many changed"""
    return OrganizationInvitation.objects.filter(
        status=OrganizationInvitation.STATUS_PENDING, expires_at__lte=timezone.now(),
    ).update(status=OrganizationInvitation.STATUS_EXPIRED)
