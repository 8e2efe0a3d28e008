from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'organization', 'customer_name', 'customer_phone', 'delivery_method', 'total', 'status', 'created_at']
    list_filter = ['organization', 'status', 'delivery_method', 'created_at']
    search_fields = ['customer_name', 'customer_phone', 'address']
    ordering = ['-created_at']
    readonly_fields = ['items', 'total', 'created_at', 'updated_at']
