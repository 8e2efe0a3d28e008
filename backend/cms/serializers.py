from rest_framework import serializers

from backend.core.image_utils import normalize_image_url
from .models import HomePageContent


class HomePageContentSerializer(serializers.ModelSerializer):
    class Meta:
        model = HomePageContent
        fields = ['id', 'section', 'key', 'value', 'type', 'display_name', 'description',
                  'sort_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        organization = self.instance.organization if self.instance is not None else self.context.get('organization')
        section = attrs.get('section', getattr(self.instance, 'section', None))
        key = attrs.get('key', getattr(self.instance, 'key', None))
        queryset = HomePageContent.objects.filter(organization=organization, section=section, key=key)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError({'key': f'Content {section}.{key} already exists'})
        return attrs

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if data.get('type') == 'image':
            data['value'] = normalize_image_url(data.get('value')) or ''
        return data


class HomePageContentBulkItemSerializer(serializers.Serializer):
    section = serializers.CharField(max_length=100)
    key = serializers.CharField(max_length=100)
    value = serializers.CharField(allow_blank=True)
    type = serializers.ChoiceField(choices=HomePageContent.TYPE_CHOICES, required=False)
    display_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
