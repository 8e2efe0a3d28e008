from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from backend.organizations.permissions import ORG_MEMBER_PERMISSIONS, ORG_ADMIN_PERMISSIONS
from .models import Order
from .serializers import OrderSerializer, OrderStatusSerializer


@api_view(['GET'])
@permission_classes(ORG_MEMBER_PERMISSIONS)
def order_list(request, user_id, org_id):
    """List storefront orders, newest first"""
    queryset = Order.objects.filter(organization=request.organization)

    status_filter = request.query_params.get('status', None)
    if status_filter:
        queryset = queryset.filter(status=status_filter)

    delivery_filter = request.query_params.get('delivery_method', None)
    if delivery_filter:
        queryset = queryset.filter(delivery_method=delivery_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    return Response(OrderSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes(ORG_MEMBER_PERMISSIONS)
def order_detail(request, user_id, org_id, pk):
    order = get_object_or_404(Order, pk=pk, organization=request.organization)
    return Response(OrderSerializer(order).data)


@api_view(['PATCH'])
@permission_classes(ORG_ADMIN_PERMISSIONS)
def order_update_status(request, user_id, org_id, pk):
    """Move an order through pending/confirmed/shipped/delivered/cancelled"""
    order = get_object_or_404(Order, pk=pk, organization=request.organization)
    serializer = OrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    order.status = serializer.validated_data['status']
    order.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='status_change', model_name='Order',
                     object_id=order.id, object_name=str(order),
                     changes={'status': {'old': old_status, 'new': order.status}})
    return Response(OrderSerializer(order).data)
