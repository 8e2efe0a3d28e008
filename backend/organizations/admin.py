from django.contrib import admin
from .models import Organization, Role, OrganizationMember, OrganizationInvitation


class OrganizationMemberInline(admin.TabularInline):
    model = OrganizationMember
    fk_name = 'organization'
    extra = 0
    fields = ['user', 'role', 'is_default', 'invited_by', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'subdomain', 'custom_domain', 'plan', 'is_active', 'created_at']
    list_filter = ['plan', 'is_active', 'domain_verified']
    search_fields = ['name', 'slug', 'subdomain', 'custom_domain']
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ['created_at', 'updated_at']
    inlines = [OrganizationMemberInline]


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'organization', 'is_system']
    list_filter = ['is_system']
    search_fields = ['name', 'display_name']


@admin.register(OrganizationMember)
class OrganizationMemberAdmin(admin.ModelAdmin):
    list_display = ['user', 'organization', 'role', 'is_default', 'joined_at']
    list_filter = ['role', 'is_default']
    search_fields = ['user__username', 'user__email', 'organization__name']


@admin.register(OrganizationInvitation)
class OrganizationInvitationAdmin(admin.ModelAdmin):
    list_display = ['email', 'organization', 'role', 'status', 'expires_at', 'created_at']
    list_filter = ['status', 'role']
    search_fields = ['email', 'organization__name']
    readonly_fields = ['token', 'created_at']
