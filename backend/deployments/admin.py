from django.contrib import admin
from .models import PreDeployment, Deployment


@admin.register(PreDeployment)
class PreDeploymentAdmin(admin.ModelAdmin):
    list_display = ['organization', 'status', 'trigger_type', 'trigger_action', 'message', 'created_at', 'published_at']
    list_filter = ['status', 'trigger_type', 'trigger_action']
    search_fields = ['organization__name', 'message', 'entity_id']
    readonly_fields = ['created_at', 'updated_at', 'published_at']


@admin.register(Deployment)
class DeploymentAdmin(admin.ModelAdmin):
    list_display = ['build_id', 'organization', 'status', 'files_uploaded', 'triggered_by', 'created_at', 'completed_at']
    list_filter = ['status']
    search_fields = ['build_id', 'organization__name']
    readonly_fields = ['created_at', 'updated_at', 'completed_at']
