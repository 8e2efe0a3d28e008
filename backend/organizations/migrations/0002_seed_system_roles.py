# Generated manually

from django.db import migrations

SYSTEM_ROLES = [
    ('owner', 'Owner', 'Store owner - full access including billing and member management'),
    ('admin', 'Admin', 'Store administrator - manages catalog, content, orders and publishing'),
    ('manager', 'Manager', 'Store manager - reads everything inside the organization'),
    ('staff', 'Staff', 'Store staff - reads catalog and orders'),
]


def seed_roles(apps, schema_editor):
    Role = apps.get_model('organizations', 'Role')
    for name, display_name, description in SYSTEM_ROLES:
        Role.objects.get_or_create(
            name=name,
            organization=None,
            defaults={'display_name': display_name, 'description': description, 'is_system': True},
        )


def unseed_roles(apps, schema_editor):
    Role = apps.get_model('organizations', 'Role')
    Role.objects.filter(organization=None, is_system=True, name__in=[r[0] for r in SYSTEM_ROLES]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('organizations', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_roles, unseed_roles),
    ]
