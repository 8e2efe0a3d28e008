"""
Organization context resolution.

The organization for a request is determined from (in priority order):

1. Route parameter ``org_id`` (``/api/user/<user_id>/organization/<org_id>/...``)
2. ``X-Organization-ID`` header (explicit selection)
3. Subdomain of the host (``storename.jmarkets.jcampos.dev``)
4. Custom domain (``www.customstore.com``)
5. ``organizationId`` query parameter (development and API testing)

The middleware only resolves the tenant. Authentication is done by DRF at
view time, so membership and role checks live in
``backend.organizations.permissions``.
"""
import logging

from backend.core.model_cache import (
    get_cached_organization, get_cached_organization_by_subdomain,
    get_cached_organization_by_domain,
)
from backend.core.subdomain import get_subdomain, get_base_domain, strip_port

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = 'HTTP_X_ORGANIZATION_ID'
ORGANIZATION_QUERY_PARAM = 'organizationId'


def get_request_host(request):
    return strip_port(request.META.get('HTTP_HOST') or request.META.get('SERVER_NAME') or '').lower()


def is_platform_host(host, base_domain):
    """True for the base domain itself or any host under it, matched on a label boundary"""
    return host == base_domain or host.endswith(f'.{base_domain}')


def resolve_organization(request, view_kwargs=None):
    """Return ``(organization, source)`` for a request, or ``(None, None)``"""
    view_kwargs = view_kwargs or {}

    route_org_id = view_kwargs.get('org_id')
    if route_org_id is not None:
        # A route that names its organization never falls back to the host
        return get_cached_organization(route_org_id), 'route'

    header_org_id = request.META.get(ORGANIZATION_HEADER)
    if header_org_id:
        organization = get_cached_organization(header_org_id)
        if organization:
            return organization, 'header'

    host = get_request_host(request)
    base_domain = get_base_domain()

    subdomain = get_subdomain(host, base_domain)
    if subdomain and subdomain != 'www':
        organization = get_cached_organization_by_subdomain(subdomain)
        if organization:
            return organization, 'subdomain'

    if host and not is_platform_host(host, base_domain) and host not in ('localhost', '127.0.0.1', 'testserver'):
        organization = get_cached_organization_by_domain(host)
        if organization:
            return organization, 'custom_domain'

    query_org_id = request.GET.get(ORGANIZATION_QUERY_PARAM)
    if query_org_id:
        organization = get_cached_organization(query_org_id)
        if organization:
            return organization, 'query'

    return None, None


class OrganizationContextMiddleware:
    """Attach ``request.organization`` and ``request.organization_source``"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.organization = None
        request.organization_source = None
        return self.get_response(request)

    def process_view(self, request, view_func, view_args, view_kwargs):
        try:
            organization, source = resolve_organization(request, view_kwargs)
        except Exception as e:
            # A broken lookup must not take the request down; views that need
            # an organization answer 400 on their own
            logger.error(f"Error resolving organization context: {str(e)}", exc_info=True)
            organization, source = None, None

        request.organization = organization
        request.organization_source = source
        if organization:
            logger.debug(f"Organization {organization.slug} resolved from {source} for {request.path}")
        return None
