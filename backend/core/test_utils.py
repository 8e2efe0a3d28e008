"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.organizations.models import Organization, Role, OrganizationMember
from backend.organizations.services import get_system_role
from backend.catalog.models import Category, Product
from backend.cms.models import HomePageContent
from backend.orders.models import Order
from backend.deployments.models import PreDeployment
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_organization(owner=None, name=None, slug=None, subdomain=None, custom_domain=None, **extra):
        """Create an organization; ``owner`` becomes its owner member"""
        if not name:
            name = f'Tienda {TestDataFactory.random_string(6)}'
        if not slug:
            slug = f'tienda-{TestDataFactory.random_string(8)}'
        organization = Organization.objects.create(
            name=name,
            slug=slug,
            subdomain=subdomain,
            custom_domain=custom_domain,
            **extra
        )
        if owner is not None:
            TestDataFactory.add_member(organization, owner, role=Role.OWNER, is_default=True)
        return organization

    @staticmethod
    def add_member(organization, user, role=Role.STAFF, is_default=False):
        """Add ``user`` to ``organization`` with a system role"""
        return OrganizationMember.objects.create(
            organization=organization,
            user=user,
            role=get_system_role(role),
            is_default=is_default
        )

    @staticmethod
    def create_category(organization, name=None, slug=None, **extra):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        if not slug:
            slug = f'category-{TestDataFactory.random_string(8)}'
        return Category.objects.create(
            organization=organization,
            name=name,
            slug=slug,
            description=extra.pop('description', f'Test category {name}'),
            **extra
        )

    @staticmethod
    def create_product(organization, name=None, price=1000, category=None, **extra):
        """Create a test product"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if not category:
            category = TestDataFactory.create_category(organization)
        return Product.objects.create(
            organization=organization,
            name=name,
            description=extra.pop('description', f'Test product {name}'),
            price=price,
            category=category,
            **extra
        )

    @staticmethod
    def create_home_content(organization, section='hero', key=None, value='Bienvenidos', type='text'):
        """Create a home page content entry"""
        if not key:
            key = f'key_{TestDataFactory.random_string(6)}'
        return HomePageContent.objects.create(
            organization=organization,
            section=section,
            key=key,
            value=value,
            type=type,
            display_name=key
        )

    @staticmethod
    def create_order(organization, items=None, status='pending', delivery_method='correos'):
        """Create a storefront order"""
        if items is None:
            items = [{'id': 1, 'name': 'Fresas', 'price': 1500, 'quantity': 2, 'image_url': None}]
        return Order.objects.create(
            organization=organization,
            customer_name='Ana Mora',
            customer_phone='88887777',
            provincia='San José',
            canton='Escazú',
            distrito='San Rafael',
            address='100 m norte de la iglesia',
            delivery_method=delivery_method,
            items=items,
            total=sum(item['price'] * item['quantity'] for item in items),
            status=status
        )

    @staticmethod
    def create_pre_deployment(organization, status=PreDeployment.STATUS_READY, trigger_type='product',
                              trigger_action='update', message='Producto actualizado - listo para publicar',
                              **extra):
        """Create a pre-deployment record directly"""
        return PreDeployment.objects.create(
            organization=organization,
            status=status,
            trigger_type=trigger_type,
            trigger_action=trigger_action,
            message=message,
            **extra
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


def org_url(user, organization, endpoint=''):
    """Organization-scoped API path for tests"""
    return f'/api/user/{user.pk}/organization/{organization.pk}/{endpoint.lstrip("/")}'


def clear_cache():
    """Organization lookups and deployment status live in the cache; reset between tests"""
    cache.clear()
