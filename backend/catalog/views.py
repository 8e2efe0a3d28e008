import logging

from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from backend.deployments.services import PreDeploymentService
from backend.organizations.permissions import ORG_ADMIN_OR_READ_PERMISSIONS
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer

logger = logging.getLogger('backend.catalog')


def _record_change(request, instance, action, trigger_type, changes=None):
    """Audit the change and fold it into the organization's pre-deployment"""
    model_name = instance.__class__.__name__
    create_audit_log(request=request, action=action, model_name=model_name,
                     object_id=instance.pk, object_name=instance.name, changes=changes)
    PreDeploymentService.trigger(
        request.organization, trigger_type, action,
        entity_id=instance.pk, entity_type=model_name.lower(), changes=changes,
    )


# Category views
@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def category_list_create(request, user_id, org_id):
    """List the organization's categories or create a new one"""
    organization = request.organization
    if request.method == 'GET':
        categories = Category.objects.filter(organization=organization).annotate(product_count=Count('products'))
        active = request.query_params.get('active')
        if active is not None:
            categories = categories.filter(is_active=active.lower() == 'true')
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)

    serializer = CategorySerializer(data=request.data, context={'organization': organization})
    if serializer.is_valid():
        category = serializer.save(organization=organization)
        data = CategorySerializer(category).data
        _record_change(request, category, 'create', 'category', changes=data)
        return Response(data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def category_detail(request, user_id, org_id, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk, organization=request.organization)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            category = serializer.save()
            _record_change(request, category, 'update', 'category', changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_count = category.products.count()
        if product_count:
            return Response({
                'error': 'Category has products',
                'message': f'No se puede eliminar la categoría: tiene {product_count} producto(s) asociados',
            }, status=status.HTTP_400_BAD_REQUEST)
        _record_change(request, category, 'delete', 'category', changes={'name': category.name, 'slug': category.slug})
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def product_list_create(request, user_id, org_id):
    """List the organization's products (filterable) or create a new one"""
    organization = request.organization
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').filter(organization=organization)
        filterset = ProductFilter(request.query_params, queryset=queryset)
        serializer = ProductSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = ProductSerializer(data=request.data, context={'organization': organization})
    if serializer.is_valid():
        product = serializer.save(organization=organization)
        data = ProductSerializer(product).data
        _record_change(request, product, 'create', 'product', changes=data)
        return Response(data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(ORG_ADMIN_OR_READ_PERMISSIONS)
def product_detail(request, user_id, org_id, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk, organization=request.organization)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            product = serializer.save()
            _record_change(request, product, 'update', 'product', changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        _record_change(request, product, 'delete', 'product', changes={'name': product.name, 'price': product.price})
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
