from rest_framework import serializers
from .models import Order


class OrderSerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(source='get_item_count', read_only=True)
    delivery_method_display = serializers.CharField(source='get_delivery_method_display', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'customer_name', 'customer_phone', 'provincia', 'canton', 'distrito', 'address',
                  'delivery_method', 'delivery_method_display', 'items', 'item_count', 'total', 'status',
                  'created_at', 'updated_at']
        read_only_fields = ['items', 'total', 'status', 'created_at', 'updated_at']


class CheckoutSerializer(serializers.Serializer):
    """Customer details collected by the checkout form"""
    customer_name = serializers.CharField(max_length=200)
    customer_phone = serializers.CharField(max_length=30)
    provincia = serializers.CharField(max_length=100)
    canton = serializers.CharField(max_length=100)
    distrito = serializers.CharField(max_length=100)
    address = serializers.CharField()
    delivery_method = serializers.ChoiceField(choices=Order.DELIVERY_METHOD_CHOICES)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
