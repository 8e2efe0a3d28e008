"""
Admin-side pre-deployment banner.

``PreDeploymentBanner`` polls the organization's active pre-deployment on
a fixed interval and exposes what an admin UI needs to show: the record's
status and message, plus publish and dismiss actions for admins.

    client = ApiClient('https://api.jmarkets.jcampos.dev')
    client.authenticate('owner', 'secret')
    urls = ApiUrlBuilder(user_id=1, organization_id=7)
    with PreDeploymentBanner(client, urls, is_admin=True) as banner:
        ...
        banner.render()
"""
import logging
import threading

import requests
from django.conf import settings

from backend.core.api_urls import ApiUrlBuilder

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

STATUS_TEXT = {
    'ready': 'Los cambios están listos para publicar en el sitio web',
    'pending': 'Preparando cambios para publicación...',
    'error': 'Error en la preparación de cambios',
}


class ApiClient:
    """
    Thin ``requests.Session`` wrapper with a per-path query cache.

    ``query`` serves from the cache when it can; ``invalidate`` drops
    entries so the next ``query`` goes back to the server.
    """

    def __init__(self, base_url, session=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self._cache = {}
        self._lock = threading.Lock()

    def authenticate(self, username, password):
        """Log in and keep the bearer token on the session"""
        data = self.request('POST', '/api/auth/login/', json={'username': username, 'password': password})
        self.set_token(data['access'])
        return data

    def set_token(self, access_token):
        self.session.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
        })

    def request(self, method, path, json=None):
        response = self.session.request(method, f"{self.base_url}{path}", json=json, timeout=self.timeout)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def query(self, path):
        with self._lock:
            if path in self._cache:
                return self._cache[path]
        data = self.request('GET', path)
        with self._lock:
            self._cache[path] = data
        return data

    def fetch(self, path):
        """Always go to the server and refresh the cached value"""
        self.invalidate(path)
        return self.query(path)

    def invalidate(self, *paths):
        with self._lock:
            for path in paths:
                self._cache.pop(path, None)

    def is_cached(self, path):
        with self._lock:
            return path in self._cache


class PreDeploymentBanner:
    """
    Polling controller for the pre-deployment banner.

    ``urls`` is an ``ApiUrlBuilder`` bound to the signed-in user and the
    organization being edited. Without both ids the banner stays empty.
    """

    def __init__(self, client, urls, is_admin=False, interval=None, on_change=None):
        self.client = client
        self.urls = urls if urls is not None else ApiUrlBuilder()
        self.is_admin = is_admin
        if interval is None:
            interval = getattr(settings, 'PREDEPLOYMENT_POLL_INTERVAL', DEFAULT_POLL_INTERVAL)
        if interval <= 0:
            raise ValueError('Poll interval must be positive')
        self.interval = interval
        self.on_change = on_change

        self.record = None
        self.is_loading = True
        self.is_publishing = False

        self._stop_event = threading.Event()
        self._thread = None

    # ---- paths ----

    @property
    def has_context(self):
        return bool(self.urls.user_id and self.urls.organization_id)

    @property
    def active_path(self):
        return self.urls.org('/pre-deployments/active/')

    @property
    def deployments_path(self):
        return self.urls.org('/deployments/')

    @property
    def deploy_status_path(self):
        return self.urls.org('/deployments/status/')

    def dismiss_path(self, record_id):
        return self.urls.org(f'/pre-deployments/{record_id}/')

    # ---- state ----

    def refresh(self, force=False):
        """Load the active pre-deployment; a failed request leaves no record"""
        if not self.has_context:
            return None
        try:
            if force:
                record = self.client.fetch(self.active_path)
            else:
                record = self.client.query(self.active_path)
        except requests.RequestException as e:
            logger.warning(f"Failed to load active pre-deployment: {str(e)}")
            record = None

        changed = record != self.record
        self.record = record
        self.is_loading = False
        if changed and self.on_change is not None:
            self.on_change(self.render())
        return record

    def render(self):
        """What the banner shows, or None when it should not be shown"""
        record = self.record
        if self.is_loading or not self.has_context or not record:
            return None
        status = record.get('status')
        if status == 'published':
            return None
        return {
            'id': record.get('id'),
            'status': status,
            'message': record.get('message'),
            'status_text': STATUS_TEXT.get(status, STATUS_TEXT['error']),
            'error_details': record.get('errorDetails'),
            'can_publish': self.is_admin and status == 'ready',
            'can_dismiss': self.is_admin,
            'is_publishing': self.is_publishing,
        }

    # ---- actions ----

    def publish(self):
        """
        Ask the server to publish. Returns True on success.

        A failure only clears ``is_publishing``; the error itself shows up on
        the next poll as ``status: error`` with ``errorDetails``.
        """
        if not self.is_admin or not self.has_context:
            return False
        self.is_publishing = True
        try:
            self.client.request('POST', self.deployments_path, json={})
        except requests.RequestException as e:
            logger.warning(f"Publish failed: {str(e)}")
            return False
        finally:
            self.is_publishing = False

        self.client.invalidate(self.active_path, self.deploy_status_path)
        self.refresh()
        return True

    def dismiss(self, record_id):
        if not self.is_admin or not self.has_context:
            return False
        try:
            self.client.request('DELETE', self.dismiss_path(record_id))
        except requests.RequestException as e:
            logger.warning(f"Dismiss of pre-deployment {record_id} failed: {str(e)}")
            return False

        self.client.invalidate(self.active_path)
        self.refresh()
        return True

    # ---- polling ----

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll, name='predeployment-poller', daemon=True)
        self._thread.start()

    def stop(self, timeout=None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _poll(self):
        while not self._stop_event.is_set():
            self.refresh(force=True)
            self._stop_event.wait(self.interval)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
