from rest_framework import serializers


class CartItemAddSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(required=False, default=1)


class CartItemUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()
