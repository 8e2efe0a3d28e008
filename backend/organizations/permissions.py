"""
DRF permission classes for organization-scoped views.

Views use the prebuilt stacks defined at the bottom of this module:

    @permission_classes(ORG_MEMBER_PERMISSIONS)
"""
from rest_framework import exceptions
from rest_framework.permissions import BasePermission, IsAuthenticated

from .services import get_membership


class OrganizationContextRequired(exceptions.APIException):
    status_code = 400
    default_detail = 'Organization context required. Specify it via route, X-Organization-ID header, subdomain or custom domain.'
    default_code = 'organization_required'


def get_request_membership(request):
    """Membership of the requesting user in ``request.organization`` (memoized)"""
    if not hasattr(request, '_organization_membership'):
        request._organization_membership = get_membership(
            request.user, getattr(request, 'organization', None)
        )
    return request._organization_membership


def is_organization_admin(request):
    membership = get_request_membership(request)
    return bool(membership and membership.role.is_admin)


class IsRouteUser(BasePermission):
    """The ``user_id`` in the route must be the authenticated user"""
    message = 'User ID in route does not match authenticated user'

    def has_permission(self, request, view):
        route_user_id = view.kwargs.get('user_id')
        if route_user_id is None:
            return True
        return bool(request.user and request.user.is_authenticated and str(request.user.pk) == str(route_user_id))


class HasOrganizationContext(BasePermission):
    def has_permission(self, request, view):
        if getattr(request, 'organization', None) is None:
            raise OrganizationContextRequired()
        return True


class IsOrganizationMember(HasOrganizationContext):
    message = 'You are not a member of this organization'

    def has_permission(self, request, view):
        super().has_permission(request, view)
        return get_request_membership(request) is not None


class IsOrganizationAdmin(HasOrganizationContext):
    message = 'Admin privileges required for this action'

    def has_permission(self, request, view):
        super().has_permission(request, view)
        return is_organization_admin(request)


class IsOrganizationAdminOrReadOnly(HasOrganizationContext):
    """Members may read, only owners/admins may write"""
    message = 'Admin privileges required for this action'

    def has_permission(self, request, view):
        super().has_permission(request, view)
        membership = get_request_membership(request)
        if membership is None:
            return False
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return True
        return membership.role.is_admin


ORG_MEMBER_PERMISSIONS = [IsAuthenticated, IsRouteUser, IsOrganizationMember]
ORG_ADMIN_PERMISSIONS = [IsAuthenticated, IsRouteUser, IsOrganizationAdmin]
ORG_ADMIN_OR_READ_PERMISSIONS = [IsAuthenticated, IsRouteUser, IsOrganizationAdminOrReadOnly]
