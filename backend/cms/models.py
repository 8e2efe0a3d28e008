from django.db import models


class HomePageContent(models.Model):
    """Editable storefront copy, colors and images, addressed by section and key"""
    TYPE_CHOICES = [
        ('text', 'Text'),
        ('textarea', 'Long Text'),
        ('image', 'Image'),
        ('color', 'Color'),
        ('url', 'URL'),
    ]

    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='home_page_content'
    )
    section = models.CharField(max_length=100, db_index=True)  # hero, about, contact, footer...
    key = models.CharField(max_length=100)
    value = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='text')
    display_name = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True, null=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.section}.{self.key}"

    class Meta:
        db_table = 'home_page_content'
        ordering = ['section', 'sort_order', 'key']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'section', 'key'], name='uniq_content_per_org_section_key'),
        ]
