"""
Public storefront API.

The organization comes from the request host (tenant subdomain or custom
domain) or the ``X-Organization-ID`` header. The cart lives in the
visitor's session, one per organization.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from backend.catalog.filters import ProductFilter
from backend.catalog.models import Category, Product
from backend.catalog.serializers import CategorySerializer, ProductSerializer
from backend.cms.models import HomePageContent
from backend.cms.serializers import HomePageContentSerializer
from backend.core.image_utils import normalize_image_url
from backend.core.utils import create_audit_log
from backend.orders.models import Order
from backend.orders.serializers import OrderSerializer, CheckoutSerializer
from backend.organizations.permissions import HasOrganizationContext
from .cart import CartStore, SessionCartStorage
from .serializers import CartItemAddSerializer, CartItemUpdateSerializer

logger = logging.getLogger('backend.storefront')

STOREFRONT_PERMISSIONS = [AllowAny, HasOrganizationContext]


def get_cart(request):
    return CartStore(SessionCartStorage(request.session, namespace=request.organization.pk))


def cart_response(cart, status_code=status.HTTP_200_OK):
    state = cart.state()
    return Response({
        'items': state['items'],
        'total': state['total'],
        'item_count': state['item_count'],
    }, status=status_code)


# ==================== CATALOG ====================

@api_view(['GET'])
@permission_classes(STOREFRONT_PERMISSIONS)
def storefront_products(request):
    """Active products of active categories, filterable like the admin catalog"""
    queryset = Product.objects.select_related('category').filter(
        organization=request.organization, is_active=True, category__is_active=True,
    )
    filterset = ProductFilter(request.query_params, queryset=queryset)
    return Response(ProductSerializer(filterset.qs, many=True).data)


@api_view(['GET'])
@permission_classes(STOREFRONT_PERMISSIONS)
def storefront_categories(request):
    categories = Category.objects.filter(organization=request.organization, is_active=True)
    return Response(CategorySerializer(categories, many=True).data)


@api_view(['GET'])
@permission_classes(STOREFRONT_PERMISSIONS)
def storefront_content(request):
    queryset = HomePageContent.objects.filter(organization=request.organization, is_active=True)
    section = request.query_params.get('section')
    if section:
        queryset = queryset.filter(section=section)
    return Response(HomePageContentSerializer(queryset, many=True).data)


# ==================== CART ====================

@api_view(['GET', 'DELETE'])
@permission_classes(STOREFRONT_PERMISSIONS)
def cart_detail(request):
    """Current cart, or empty it"""
    cart = get_cart(request)
    if request.method == 'DELETE':
        cart.clear_cart()
    return cart_response(cart)


@api_view(['POST'])
@permission_classes(STOREFRONT_PERMISSIONS)
def cart_add_item(request):
    """Add a product from the organization's active catalog"""
    serializer = CartItemAddSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    product = Product.objects.filter(
        pk=serializer.validated_data['product_id'],
        organization=request.organization,
        is_active=True,
    ).first()
    if product is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)

    cart = get_cart(request)
    cart.add_to_cart({
        'id': product.pk,
        'name': product.name,
        'price': product.price,
        'image_url': normalize_image_url(product.image_url),
    }, serializer.validated_data['quantity'])
    return cart_response(cart)


@api_view(['PATCH', 'DELETE'])
@permission_classes(STOREFRONT_PERMISSIONS)
def cart_item_detail(request, product_id):
    """Change a line's quantity (0 removes it) or remove the line"""
    cart = get_cart(request)
    if not cart.contains(product_id):
        return Response({'error': 'Item not in cart'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'DELETE':
        cart.remove_from_cart(product_id)
        return cart_response(cart)

    serializer = CartItemUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    cart.update_quantity(product_id, serializer.validated_data['quantity'])
    return cart_response(cart)


@api_view(['POST'])
@permission_classes(STOREFRONT_PERMISSIONS)
def checkout(request):
    """Turn the cart into an order and empty it"""
    cart = get_cart(request)
    if not cart.items:
        return Response({'error': 'Cart is empty'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    order = Order.objects.create(
        organization=request.organization,
        items=cart.state()['items'],
        total=int(round(cart.total)),
        **serializer.validated_data,
    )
    cart.clear_cart()

    create_audit_log(request=request, action='checkout', model_name='Order',
                     object_id=order.id, object_name=str(order),
                     changes={'total': order.total, 'items': len(order.items)})
    logger.info(f"Order {order.id} placed on {request.organization.slug} ({order.total})")
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
