from django.core.validators import MinValueValidator
from django.db import models


class Category(models.Model):
    """Storefront category, displayed as a colored card on the home page"""
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='categories'
    )
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True)
    background_color = models.CharField(max_length=20, blank=True, default='#ffffff')
    button_color = models.CharField(max_length=20, blank=True, default='#000000')
    image1_url = models.CharField(max_length=500, blank=True, null=True)
    image2_url = models.CharField(max_length=500, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['sort_order', 'name']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'slug'], name='uniq_category_slug_per_org'),
        ]


class Product(models.Model):
    """Product master. Prices are whole colones."""
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='products'
    )
    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(blank=True)
    price = models.IntegerField(validators=[MinValueValidator(0)])
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products')
    image_url = models.CharField(max_length=500, blank=True, null=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['name']
