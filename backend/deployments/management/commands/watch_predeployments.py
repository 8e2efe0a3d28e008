import time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from backend.core.api_urls import ApiUrlBuilder
from backend.deployments.banner import ApiClient, PreDeploymentBanner


class Command(BaseCommand):
    help = 'Poll the active pre-deployment of an organization and print the banner state on every change'

    def add_arguments(self, parser):
        parser.add_argument('--base-url', default='http://127.0.0.1:8000', help='API server base URL')
        parser.add_argument('--username', required=True)
        parser.add_argument('--password', required=True)
        parser.add_argument('--organization', type=int, required=True, help='Organization ID')
        parser.add_argument('--interval', type=float, default=settings.PREDEPLOYMENT_POLL_INTERVAL,
                            help='Seconds between polls')
        parser.add_argument('--duration', type=float, default=0,
                            help='Stop after this many seconds (0 = until interrupted)')
        parser.add_argument('--admin', action='store_true', help='Show admin actions')

    def handle(self, *args, **options):
        client = ApiClient(options['base_url'])
        try:
            login = client.authenticate(options['username'], options['password'])
        except Exception as e:
            raise CommandError(f'Login failed: {str(e)}')

        urls = ApiUrlBuilder(user_id=login['user']['id'], organization_id=options['organization'])
        banner = PreDeploymentBanner(
            client, urls,
            is_admin=options['admin'],
            interval=options['interval'],
            on_change=self.print_state,
        )

        self.stdout.write(f'Watching {urls.org("/pre-deployments/active/")} every {banner.interval}s')
        deadline = time.monotonic() + options['duration'] if options['duration'] else None
        with banner:
            try:
                while deadline is None or time.monotonic() < deadline:
                    time.sleep(0.2)
            except KeyboardInterrupt:
                self.stdout.write('\nStopped.')

    def print_state(self, state):
        if state is None:
            self.stdout.write('  No pending changes')
            return
        style = self.style.ERROR if state['status'] == 'error' else self.style.SUCCESS
        self.stdout.write(style(f"[{state['status']}] {state['message']}"))
        self.stdout.write(f"  {state['status_text']}")
        if state['error_details']:
            self.stdout.write(self.style.ERROR(f"  Error: {state['error_details']}"))
        actions = [name for name, allowed in (('publish', state['can_publish']), ('dismiss', state['can_dismiss'])) if allowed]
        if actions:
            self.stdout.write(f"  Actions: {', '.join(actions)}")
