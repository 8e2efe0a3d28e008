from django.urls import path
from .views import (
    storefront_products, storefront_categories, storefront_content,
    cart_detail, cart_add_item, cart_item_detail, checkout,
)

urlpatterns = [
    path('products/', storefront_products, name='storefront-products'),
    path('categories/', storefront_categories, name='storefront-categories'),
    path('content/', storefront_content, name='storefront-content'),
    path('cart/', cart_detail, name='storefront-cart'),
    path('cart/items/', cart_add_item, name='storefront-cart-add-item'),
    path('cart/items/<int:product_id>/', cart_item_detail, name='storefront-cart-item-detail'),
    path('checkout/', checkout, name='storefront-checkout'),
]
