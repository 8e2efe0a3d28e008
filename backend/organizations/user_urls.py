from django.urls import path
from .views import (
    user_organization_list_create, user_default_organization, user_set_default_organization,
    user_membership_list,
)

urlpatterns = [
    path('organizations/', user_organization_list_create, name='user-organization-list-create'),
    path('organizations/default/', user_default_organization, name='user-default-organization'),
    path('organizations/default/<int:organization_id>/', user_set_default_organization,
         name='user-set-default-organization'),
    path('memberships/', user_membership_list, name='user-membership-list'),
]
