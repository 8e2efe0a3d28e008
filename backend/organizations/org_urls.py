from django.urls import path
from .views import (
    organization_detail, organization_settings, organization_member_list, organization_member_detail,
    organization_invitation_list_create, organization_invitation_detail, organization_invitation_resend,
)

urlpatterns = [
    path('', organization_detail, name='organization-detail'),
    path('settings/', organization_settings, name='organization-settings'),
    path('members/', organization_member_list, name='organization-member-list'),
    path('members/<int:member_id>/', organization_member_detail, name='organization-member-detail'),
    path('invitations/', organization_invitation_list_create, name='organization-invitation-list-create'),
    path('invitations/<int:invitation_id>/', organization_invitation_detail, name='organization-invitation-detail'),
    path('invitations/<int:invitation_id>/resend/', organization_invitation_resend,
         name='organization-invitation-resend'),
]
