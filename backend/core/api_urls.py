"""
API URL builders for domain-based routing.

URLs follow one of three shapes:

* ``/api/user/{user_id}/organization/{organization_id}/{resource}``
* ``/api/user/{user_id}/{resource}``
* ``/api/{resource}``
"""
import re

ORG_URL_RE = re.compile(r'^/api/user/([^/]+)/organization/([^/]+)(.*)\Z', re.S)
USER_URL_RE = re.compile(r'^/api/user/([^/]+)(.*)\Z', re.S)
PUBLIC_URL_RE = re.compile(r'^/api(.*)\Z', re.S)


class MissingContextError(ValueError):
    """Raised when a context-bound builder lacks an id it needs"""


def clean_endpoint(endpoint):
    """Ensure the endpoint starts with exactly the one leading slash it needs"""
    endpoint = str(endpoint)
    return endpoint if endpoint.startswith('/') else f'/{endpoint}'


def build_org_api_url(user_id, organization_id, endpoint):
    """Build a URL for organization-scoped endpoints, e.g. ``/products``"""
    return f'/api/user/{user_id}/organization/{organization_id}{clean_endpoint(endpoint)}'


def build_user_api_url(user_id, endpoint):
    """Build a URL for user-scoped endpoints, e.g. ``/organizations``"""
    return f'/api/user/{user_id}{clean_endpoint(endpoint)}'


def build_public_api_url(endpoint):
    return f'/api{clean_endpoint(endpoint)}'


class ApiUrlBuilder:
    """URL builder bound to a fixed user/organization context"""

    def __init__(self, user_id=None, organization_id=None):
        self.user_id = user_id
        self.organization_id = organization_id

    def org(self, endpoint):
        if not self.user_id or not self.organization_id:
            raise MissingContextError(
                'user_id and organization_id are required for organization-scoped endpoints'
            )
        return build_org_api_url(self.user_id, self.organization_id, endpoint)

    def user(self, endpoint):
        if not self.user_id:
            raise MissingContextError('user_id is required for user-scoped endpoints')
        return build_user_api_url(self.user_id, endpoint)

    def public(self, endpoint):
        return build_public_api_url(endpoint)

    def __repr__(self):
        return f'ApiUrlBuilder(user_id={self.user_id!r}, organization_id={self.organization_id!r})'


def parse_api_url(url):
    """
    Split an API path back into its context ids and endpoint.

    Returns a dict with ``endpoint`` always present and ``user_id`` /
    ``organization_id`` only when the path carries them.
    """
    match = ORG_URL_RE.match(url)
    if match:
        return {
            'user_id': match.group(1),
            'organization_id': match.group(2),
            'endpoint': match.group(3) or '/',
        }

    match = USER_URL_RE.match(url)
    if match:
        return {
            'user_id': match.group(1),
            'endpoint': match.group(2) or '/',
        }

    match = PUBLIC_URL_RE.match(url)
    if match:
        return {'endpoint': match.group(1) or '/'}

    return {'endpoint': url}
