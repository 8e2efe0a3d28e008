from django.core.management.base import BaseCommand

from backend.organizations.models import Role

SYSTEM_ROLES = [
    {
        'name': Role.OWNER,
        'display_name': 'Owner',
        'description': 'Store owner - full access including billing and member management',
    },
    {
        'name': Role.ADMIN,
        'display_name': 'Admin',
        'description': 'Store administrator - manages catalog, content, orders and publishing',
    },
    {
        'name': Role.MANAGER,
        'display_name': 'Manager',
        'description': 'Store manager - reads everything inside the organization',
    },
    {
        'name': Role.STAFF,
        'display_name': 'Staff',
        'description': 'Store staff - reads catalog and orders',
    },
]


class Command(BaseCommand):
    help = 'Create the platform-wide membership roles: owner, admin, manager, staff'

    def handle(self, *args, **options):
        created_count = 0
        updated_count = 0

        for role_config in SYSTEM_ROLES:
            role, created = Role.objects.get_or_create(
                name=role_config['name'],
                organization=None,
                defaults={
                    'display_name': role_config['display_name'],
                    'description': role_config['description'],
                    'is_system': True,
                },
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created role: {role.name}'))
                created_count += 1
            else:
                role.display_name = role_config['display_name']
                role.description = role_config['description']
                role.is_system = True
                role.save()
                self.stdout.write(f'  Role already exists: {role.name}')
                updated_count += 1

        self.stdout.write(self.style.SUCCESS(
            f'\nDone. Created: {created_count}, Updated: {updated_count}'
        ))
