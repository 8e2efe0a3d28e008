from django.contrib import admin
from django.utils.html import format_html

from backend.core.image_utils import normalize_image_url
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'slug', 'sort_order', 'is_active', 'created_at']
    list_filter = ['organization', 'is_active', 'created_at']
    search_fields = ['name', 'slug']
    ordering = ['organization', 'sort_order', 'name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'category', 'price', 'is_active', 'image_preview', 'created_at']
    list_filter = ['organization', 'is_active', 'category']
    search_fields = ['name', 'description']
    ordering = ['organization', 'name']
    readonly_fields = ['image_preview', 'created_at', 'updated_at']

    def image_preview(self, obj):
        url = normalize_image_url(obj.image_url)
        if not url:
            return '-'
        return format_html('<img src="{}" style="max-height: 60px;" />', url)
    image_preview.short_description = 'Image'
