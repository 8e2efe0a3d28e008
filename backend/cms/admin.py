from django.contrib import admin
from .models import HomePageContent


@admin.register(HomePageContent)
class HomePageContentAdmin(admin.ModelAdmin):
    list_display = ['organization', 'section', 'key', 'type', 'display_name', 'sort_order', 'is_active']
    list_filter = ['organization', 'section', 'type', 'is_active']
    search_fields = ['section', 'key', 'value', 'display_name']
    ordering = ['organization', 'section', 'sort_order']
