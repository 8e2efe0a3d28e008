from django.utils.text import slugify
from rest_framework import serializers

from backend.core.image_utils import normalize_image_url
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(max_length=200, required=False, allow_blank=True)
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'background_color', 'button_color',
                  'image1_url', 'image2_url', 'is_active', 'sort_order', 'product_count',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_organization(self):
        if self.instance is not None and not isinstance(self.instance, (list, tuple)):
            return self.instance.organization
        return self.context.get('organization')

    def validate(self, attrs):
        if not attrs.get('slug'):
            attrs.pop('slug', None)
            if self.instance is None:
                attrs['slug'] = slugify(attrs.get('name', ''))
                if not attrs['slug']:
                    raise serializers.ValidationError({'slug': 'Could not derive a slug from the name'})

        slug = attrs.get('slug')
        if slug:
            queryset = Category.objects.filter(organization=self.get_organization(), slug=slug)
            if self.instance is not None:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError({'slug': 'A category with this slug already exists'})
        return attrs

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['image1_url'] = normalize_image_url(data.get('image1_url'))
        data['image2_url'] = normalize_image_url(data.get('image2_url'))
        return data


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    category_slug = serializers.CharField(source='category.slug', read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'price', 'category', 'category_name', 'category_slug',
                  'image_url', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_organization(self):
        if self.instance is not None and not isinstance(self.instance, (list, tuple)):
            return self.instance.organization
        return self.context.get('organization')

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_category(self, value):
        organization = self.get_organization()
        if organization is not None and value.organization_id != organization.pk:
            raise serializers.ValidationError('Category does not belong to this organization')
        return value

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['image_url'] = normalize_image_url(data.get('image_url'))
        return data
