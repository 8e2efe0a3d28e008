from django.conf import settings
from django.db import models
from django.utils import timezone


class Organization(models.Model):
    """A tenant: one storefront with its own catalog, content and deployments"""
    PLAN_CHOICES = [
        ('free', 'Free'),
        ('pro', 'Pro'),
        ('enterprise', 'Enterprise'),
    ]

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    subdomain = models.CharField(max_length=100, unique=True, null=True, blank=True, db_index=True)
    custom_domain = models.CharField(max_length=255, unique=True, null=True, blank=True)
    domain_verified = models.BooleanField(default=False)
    # theme, contact, payment and shipping configuration
    settings = models.JSONField(default=dict, blank=True)
    plan = models.CharField(max_length=50, choices=PLAN_CHOICES, default='free')
    billing_email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'organizations'
        ordering = ['name']


class Role(models.Model):
    """Membership roles. Roles without an organization are platform-wide system roles."""
    OWNER = 'owner'
    ADMIN = 'admin'
    MANAGER = 'manager'
    STAFF = 'staff'
    ADMIN_ROLES = (OWNER, ADMIN)
    SYSTEM_ROLE_NAMES = (OWNER, ADMIN, MANAGER, STAFF)

    name = models.CharField(max_length=100)
    display_name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_system = models.BooleanField(default=False)
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, null=True, blank=True, related_name='roles'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.display_name

    @property
    def is_admin(self):
        return self.name in self.ADMIN_ROLES

    class Meta:
        db_table = 'roles'
        constraints = [
            models.UniqueConstraint(fields=['organization', 'name'], name='uniq_role_name_per_org'),
        ]


class OrganizationMember(models.Model):
    """Links a user to an organization with a role"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='memberships')
    role = models.ForeignKey(Role, on_delete=models.PROTECT, related_name='members')
    is_default = models.BooleanField(default=False)
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='sent_memberships'
    )
    joined_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} @ {self.organization} ({self.role.name})"

    class Meta:
        db_table = 'organization_members'
        ordering = ['joined_at']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'user'], name='uniq_member_per_org'),
        ]


class OrganizationInvitation(models.Model):
    """A pending offer for an email address to join an organization with a role"""
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_EXPIRED = 'expired'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='invitations')
    email = models.EmailField()
    role = models.ForeignKey(Role, on_delete=models.PROTECT, related_name='invitations')
    token = models.CharField(max_length=100, unique=True)
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='sent_invitations'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.email} -> {self.organization} ({self.status})"

    @property
    def is_expired(self):
        return timezone.now() > self.expires_at

    class Meta:
        db_table = 'organization_invitations'
        ordering = ['-created_at']
