"""
URL configuration for the JMarkets storefront backend.

Three URL families share the ``/api/`` prefix:

* ``/api/user/<user_id>/organization/<org_id>/...`` organization-scoped
* ``/api/user/<user_id>/...`` user-scoped
* ``/api/...`` public, auth and host-resolved storefront routes
"""
from django.conf import settings
from django.contrib import admin
from django.urls import path, include, re_path
from django.views.static import serve

from backend.core.views import health_check

admin.site.site_header = "JMarkets Admin Panel"
admin.site.site_title = "JMarkets Admin Portal"
admin.site.index_title = "Bienvenido al panel de JMarkets"

org_scoped_patterns = [
    path('', include('backend.organizations.org_urls')),
    path('', include('backend.catalog.urls')),
    path('', include('backend.cms.urls')),
    path('', include('backend.orders.urls')),
    path('', include('backend.deployments.urls')),
    path('', include('backend.core.org_urls')),
]

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/user/<int:user_id>/organization/<int:org_id>/', include(org_scoped_patterns)),
    path('api/user/<int:user_id>/', include('backend.organizations.user_urls')),
    path('api/', include('backend.core.urls')),
    path('api/', include('backend.organizations.urls')),
    path('api/', include('backend.deployments.flat_urls')),
    path('api/storefront/', include('backend.storefront.urls')),
    path('health/', health_check, name='health'),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
