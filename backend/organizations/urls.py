from django.urls import path
from .views import (
    check_slug, check_subdomain, organization_by_slug, organization_by_subdomain,
    current_organization, invitation_by_token, invitation_accept,
)

urlpatterns = [
    # Public lookup endpoints (availability checks, storefront bootstrap)
    path('organizations/check-slug/<slug:slug>/', check_slug, name='organization-check-slug'),
    path('organizations/check-subdomain/<str:subdomain>/', check_subdomain, name='organization-check-subdomain'),
    path('organizations/by-slug/<slug:slug>/', organization_by_slug, name='organization-by-slug'),
    path('organizations/by-subdomain/<str:subdomain>/', organization_by_subdomain, name='organization-by-subdomain'),
    path('organizations/current/', current_organization, name='organization-current'),

    # Invitation links are opened before the invitee has any organization context
    path('invitations/token/<str:token>/', invitation_by_token, name='invitation-by-token'),
    path('invitations/accept/<str:token>/', invitation_accept, name='invitation-accept'),
]
