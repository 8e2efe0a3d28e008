from django.urls import path
from .views import (
    pre_deployment_list, pre_deployment_active, pre_deployment_detail,
    deployment_list_create, deployment_status,
)

urlpatterns = [
    # Pre-deployment endpoints
    path('pre-deployments/', pre_deployment_list, name='pre-deployment-list'),
    path('pre-deployments/active/', pre_deployment_active, name='pre-deployment-active'),
    path('pre-deployments/<int:pk>/', pre_deployment_detail, name='pre-deployment-detail'),

    # Deployment endpoints
    path('deployments/', deployment_list_create, name='deployment-list-create'),
    path('deployments/status/', deployment_status, name='deployment-status'),
]
