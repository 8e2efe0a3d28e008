"""
Subdomain detection for the multi-tenant storefront.

Examples (base domain ``jmarkets.jcampos.dev``):

- ``jmarkets.jcampos.dev`` -> None (main domain)
- ``mi-tienda.jmarkets.jcampos.dev`` -> "mi-tienda"
- ``localhost:3000`` -> None
- ``mi-tienda.localhost:3000`` -> "mi-tienda"
"""
from django.conf import settings
from django.core.exceptions import DisallowedHost

LOCAL_HOSTNAMES = ('localhost', '127.0.0.1')


def get_base_domain():
    return getattr(settings, 'BASE_DOMAIN', 'jmarkets.jcampos.dev')


def strip_port(host):
    """Drop a trailing ``:port`` from a host header value"""
    if not host:
        return ''
    if host.startswith('['):
        # IPv6 literal, e.g. [::1]:8000
        return host.split(']')[0] + ']'
    return host.rsplit(':', 1)[0] if host.count(':') == 1 else host


def get_subdomain(hostname, base_domain=None):
    """
    Return the tenant label for ``hostname`` or None for the main domain.

    Never raises; anything that does not look like a tenant host is None.
    """
    if not hostname or not isinstance(hostname, str):
        return None
    base_domain = base_domain or get_base_domain()
    hostname = strip_port(hostname)

    if hostname in LOCAL_HOSTNAMES:
        return None

    if hostname.endswith('.localhost'):
        subdomain = hostname[:-len('.localhost')]
        return subdomain or None

    base_parts = base_domain.split('.')
    host_parts = hostname.split('.')

    if len(host_parts) > len(base_parts):
        split_at = len(host_parts) - len(base_parts)
        if host_parts[split_at:] == base_parts:
            return '.'.join(host_parts[:split_at])

    return None


def is_main_domain(hostname, base_domain=None):
    return get_subdomain(hostname, base_domain) is None


def is_subdomain(hostname, base_domain=None):
    return get_subdomain(hostname, base_domain) is not None


def _split_location(current):
    """Return (protocol, hostname, port) for a location given as a dict"""
    current = current or {}
    protocol = current.get('protocol') or 'https:'
    if not protocol.endswith(':'):
        protocol = f'{protocol}:'
    return protocol, current.get('hostname') or '', current.get('port') or ''


def build_subdomain_url(subdomain, path='/', current=None, base_domain=None):
    """
    Build an absolute URL pointing at ``subdomain``.

    ``current`` describes the page being served: ``{'protocol', 'hostname', 'port'}``.
    Protocol and port are preserved for local development hosts.
    """
    base_domain = base_domain or get_base_domain()
    protocol, hostname, port = _split_location(current)

    if hostname in LOCAL_HOSTNAMES:
        port_part = f':{port}' if port else ''
        return f'{protocol}//{subdomain}.localhost{port_part}{path}'

    return f'{protocol}//{subdomain}.{base_domain}{path}'


def build_main_domain_url(path='/', current=None, base_domain=None):
    """Build an absolute URL on the main (apex) domain"""
    base_domain = base_domain or get_base_domain()
    protocol, hostname, port = _split_location(current)

    if 'localhost' in hostname:
        port_part = f':{port}' if port else ''
        return f'{protocol}//localhost{port_part}{path}'

    return f'{protocol}//{base_domain}{path}'


def location_from_request(request):
    """Describe a Django request the way build_*_url expects it"""
    host = request.get_host()
    hostname = strip_port(host)
    port = host[len(hostname) + 1:] if len(host) > len(hostname) else ''
    return {
        'protocol': 'https:' if request.is_secure() else 'http:',
        'hostname': hostname,
        'port': port,
    }


def get_request_subdomain(request, base_domain=None):
    """Tenant label for the host a request was addressed to"""
    try:
        host = request.get_host()
    except DisallowedHost:
        host = request.META.get('HTTP_HOST', '')
    return get_subdomain(host, base_domain)
