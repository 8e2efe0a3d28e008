from django.conf import settings
from django.db import models
from django.utils import timezone


class InvalidStatusTransition(ValueError):
    """Raised when a pre-deployment is moved out of order"""


class PreDeployment(models.Model):
    """Staged catalog/CMS changes waiting for an explicit publish"""
    STATUS_PENDING = 'pending'
    STATUS_READY = 'ready'
    STATUS_PUBLISHED = 'published'
    STATUS_ERROR = 'error'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_READY, 'Ready'),
        (STATUS_PUBLISHED, 'Published'),
        (STATUS_ERROR, 'Error'),
    ]
    # error and published are terminal; a dismissed record is deleted
    TRANSITIONS = {
        STATUS_PENDING: (STATUS_READY, STATUS_ERROR),
        STATUS_READY: (STATUS_PUBLISHED, STATUS_ERROR),
        STATUS_PUBLISHED: (),
        STATUS_ERROR: (),
    }
    OPEN_STATUSES = (STATUS_PENDING, STATUS_READY)

    TRIGGER_TYPE_CHOICES = [
        ('product', 'Product'),
        ('category', 'Category'),
        ('cms', 'CMS'),
    ]
    TRIGGER_ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
    ]

    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='pre_deployments'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    trigger_type = models.CharField(max_length=20, choices=TRIGGER_TYPE_CHOICES)
    trigger_action = models.CharField(max_length=20, choices=TRIGGER_ACTION_CHOICES)
    entity_id = models.CharField(max_length=100, blank=True, null=True)
    entity_type = models.CharField(max_length=50, blank=True, null=True)
    # {entity_id: {type, action, entity_type, changes, timestamp}}
    changes = models.JSONField(default=dict, blank=True)
    build_id = models.CharField(max_length=100, blank=True, null=True)
    message = models.CharField(max_length=500)
    error_details = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    published_at = models.DateTimeField(blank=True, null=True)

    def __str__(self):
        return f"{self.organization} - {self.message} ({self.status})"

    def _transition(self, new_status):
        if new_status not in self.TRANSITIONS[self.status]:
            raise InvalidStatusTransition(f"Cannot move pre-deployment from {self.status} to {new_status}")
        self.status = new_status

    def mark_ready(self):
        self._transition(self.STATUS_READY)
        self.save(update_fields=['status', 'updated_at'])

    def mark_error(self, error_details):
        self._transition(self.STATUS_ERROR)
        self.error_details = error_details
        self.save(update_fields=['status', 'error_details', 'updated_at'])

    def mark_published(self, build_id=None):
        self._transition(self.STATUS_PUBLISHED)
        self.build_id = build_id or self.build_id
        self.published_at = timezone.now()
        self.save(update_fields=['status', 'build_id', 'published_at', 'updated_at'])

    class Meta:
        db_table = 'pre_deployments'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['organization', '-created_at'], name='pre_deploym_organiz_4c2d1e_idx'),
        ]


class Deployment(models.Model):
    """One publish run of an organization's storefront"""
    STATUS_BUILDING = 'building'
    STATUS_UPLOADING = 'uploading'
    STATUS_SUCCESS = 'success'
    STATUS_ERROR = 'error'
    STATUS_CHOICES = [
        (STATUS_BUILDING, 'Building'),
        (STATUS_UPLOADING, 'Uploading'),
        (STATUS_SUCCESS, 'Success'),
        (STATUS_ERROR, 'Error'),
    ]
    IN_PROGRESS_STATUSES = (STATUS_BUILDING, STATUS_UPLOADING)

    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='deployments'
    )
    build_id = models.CharField(max_length=100, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_BUILDING)
    message = models.CharField(max_length=500, blank=True)
    deploy_url = models.CharField(max_length=500, blank=True)
    error_details = models.TextField(blank=True, null=True)
    files_uploaded = models.IntegerField(default=0)
    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='deployments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    def __str__(self):
        return f"{self.build_id} ({self.status})"

    class Meta:
        db_table = 'deployments'
        ordering = ['-created_at', '-id']
