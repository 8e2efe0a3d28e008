from django.core.management.base import BaseCommand

from backend.organizations.services import expire_old_invitations


class Command(BaseCommand):
    help = 'Mark pending organization invitations past their expiry date as expired'

    def handle(self, *args, **options):
        expired_count = expire_old_invitations()
        self.stdout.write(self.style.SUCCESS(f'Expired {expired_count} invitation(s)'))
