from django.core.validators import MinValueValidator
from django.db import models


class Order(models.Model):
    """Order placed from a storefront checkout"""
    DELIVERY_METHOD_CHOICES = [
        ('correos', 'Correos de Costa Rica'),
        ('uber-flash', 'Uber Flash'),
        ('personal', 'Entrega personal'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]

    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='orders'
    )
    customer_name = models.CharField(max_length=200)
    customer_phone = models.CharField(max_length=30)
    provincia = models.CharField(max_length=100)
    canton = models.CharField(max_length=100)
    distrito = models.CharField(max_length=100)
    address = models.TextField()
    delivery_method = models.CharField(max_length=20, choices=DELIVERY_METHOD_CHOICES)
    # snapshot of the cart lines: [{id, name, price, quantity, image_url}]
    items = models.JSONField(default=list)
    total = models.IntegerField(validators=[MinValueValidator(0)])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Order #{self.pk} - {self.customer_name}"

    def get_item_count(self):
        return sum(int(item.get('quantity', 0)) for item in self.items or [])

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
