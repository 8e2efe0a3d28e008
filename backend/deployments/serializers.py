from rest_framework import serializers
from .models import PreDeployment, Deployment


class PreDeploymentSerializer(serializers.ModelSerializer):
    """Pre-deployment record in the shape the admin banner consumes"""
    triggerType = serializers.CharField(source='trigger_type', read_only=True)
    triggerAction = serializers.CharField(source='trigger_action', read_only=True)
    entityId = serializers.CharField(source='entity_id', read_only=True, allow_null=True)
    entityType = serializers.CharField(source='entity_type', read_only=True, allow_null=True)
    buildId = serializers.CharField(source='build_id', read_only=True, allow_null=True)
    errorDetails = serializers.CharField(source='error_details', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    publishedAt = serializers.DateTimeField(source='published_at', read_only=True, allow_null=True)

    class Meta:
        model = PreDeployment
        fields = ['id', 'status', 'triggerType', 'triggerAction', 'entityId', 'entityType', 'changes',
                  'buildId', 'message', 'errorDetails', 'createdAt', 'updatedAt', 'publishedAt']
        read_only_fields = fields


class DeploymentSerializer(serializers.ModelSerializer):
    triggered_by_username = serializers.CharField(source='triggered_by.username', read_only=True, default=None)

    class Meta:
        model = Deployment
        fields = ['id', 'build_id', 'status', 'message', 'deploy_url', 'error_details', 'files_uploaded',
                  'triggered_by', 'triggered_by_username', 'created_at', 'updated_at', 'completed_at']
        read_only_fields = fields
