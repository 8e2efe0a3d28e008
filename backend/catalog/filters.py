import django_filters
from django.db.models import Q

from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Product filters shared by the admin catalog and the storefront"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(method='filter_category', label='Category ID or slug')
    active = django_filters.CharFilter(method='filter_active', label='Active')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['search', 'category', 'active', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        """
        Every word must appear in the name or the description, in any order.

        "camisa roja" matches "Camisa de algodón roja".
        """
        words = value.split() if value else []
        for word in words:
            queryset = queryset.filter(Q(name__icontains=word) | Q(description__icontains=word))
        return queryset

    def filter_category(self, queryset, name, value):
        if not value:
            return queryset
        if value.isdigit():
            return queryset.filter(category_id=int(value))
        return queryset.filter(category__slug=value)

    def filter_active(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        value = str(value).lower()
        if value in ('true', '1', 'yes'):
            return queryset.filter(is_active=True)
        if value in ('false', '0', 'no'):
            return queryset.filter(is_active=False)
        return queryset
