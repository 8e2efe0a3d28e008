from django.urls import path
from .views import deploy, pre_deployment_active, pre_deployment_detail, deployment_status

# Routes whose organization is resolved from the X-Organization-ID header or the host
urlpatterns = [
    path('deploy/', deploy, name='deploy'),
    path('deploy/status/', deployment_status, name='deploy-status'),
    path('pre-deployments/active/', pre_deployment_active, name='flat-pre-deployment-active'),
    path('pre-deployments/<int:pk>/', pre_deployment_detail, name='flat-pre-deployment-detail'),
]
