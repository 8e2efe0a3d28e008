"""
Caching for organization lookups performed on every tenant-scoped request.

Organizations are looked up by primary key (route parameters, headers),
by subdomain and by custom domain. Hits are cached; misses are not, so a
newly created tenant is visible immediately.
"""
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete, pre_save
from django.dispatch import receiver
import logging

logger = logging.getLogger(__name__)

# Cache key prefixes
ORGANIZATION_KEY_PREFIX = 'organization:'
ORGANIZATION_SUBDOMAIN_KEY_PREFIX = 'organization_subdomain:'
ORGANIZATION_DOMAIN_KEY_PREFIX = 'organization_domain:'

# Organizations change rarely: 15 minutes
ORGANIZATION_CACHE_TTL = 900


def get_organization_cache_key(organization_id) -> str:
    return f"{ORGANIZATION_KEY_PREFIX}{organization_id}"


def get_organization_subdomain_cache_key(subdomain: str) -> str:
    return f"{ORGANIZATION_SUBDOMAIN_KEY_PREFIX}{subdomain.lower()}"


def get_organization_domain_cache_key(domain: str) -> str:
    return f"{ORGANIZATION_DOMAIN_KEY_PREFIX}{domain.lower()}"


def _cached_lookup(cache_key, **lookup):
    from backend.organizations.models import Organization

    organization = cache.get(cache_key)
    if organization is not None:
        logger.debug(f"Cache hit for {cache_key}")
        return organization

    organization = Organization.objects.filter(is_active=True, **lookup).first()
    if organization is not None:
        cache.set(cache_key, organization, ORGANIZATION_CACHE_TTL)
    return organization


def get_cached_organization(organization_id):
    """Active organization by primary key, or None"""
    try:
        organization_id = int(organization_id)
    except (TypeError, ValueError):
        return None
    return _cached_lookup(get_organization_cache_key(organization_id), pk=organization_id)


def get_cached_organization_by_subdomain(subdomain):
    if not subdomain:
        return None
    return _cached_lookup(get_organization_subdomain_cache_key(subdomain), subdomain__iexact=subdomain)


def get_cached_organization_by_domain(domain):
    if not domain:
        return None
    return _cached_lookup(get_organization_domain_cache_key(domain), custom_domain__iexact=domain)


def invalidate_organization_cache(organization):
    """Drop every cache entry that may point at ``organization``"""
    if not organization:
        return

    keys = [get_organization_cache_key(organization.pk)]
    for subdomain in {organization.subdomain, getattr(organization, '_old_subdomain', None)}:
        if subdomain:
            keys.append(get_organization_subdomain_cache_key(subdomain))
    for domain in {organization.custom_domain, getattr(organization, '_old_custom_domain', None)}:
        if domain:
            keys.append(get_organization_domain_cache_key(domain))

    cache.delete_many(keys)
    logger.debug(f"Invalidated cache for organization: {organization.slug} (ID: {organization.pk})")


# ==================== DJANGO SIGNALS ====================

@receiver(pre_save, sender='organizations.Organization')
def organization_pre_save(sender, instance, **kwargs):
    """Remember the old host names so their cache entries can be dropped"""
    if instance.pk:
        old_instance = sender.objects.filter(pk=instance.pk).only('subdomain', 'custom_domain').first()
        if old_instance:
            instance._old_subdomain = old_instance.subdomain
            instance._old_custom_domain = old_instance.custom_domain


@receiver(post_save, sender='organizations.Organization')
def organization_post_save(sender, instance, **kwargs):
    invalidate_organization_cache(instance)


@receiver(post_delete, sender='organizations.Organization')
def organization_post_delete(sender, instance, **kwargs):
    invalidate_organization_cache(instance)
