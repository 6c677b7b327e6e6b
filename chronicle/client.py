"""
chronicle/client.py: Python client for the Campaign Chronicle API

    client = ChronicleClient('https://chronicle.example.com', token_provider=get_token)
    campaigns = client.list_campaigns()
    client.create_character(campaign_id, {'name': 'Mira', 'type': 'NPC'})

Every request:
  - carries "Authorization: Bearer <token>" from token_provider()
  - times out after `timeout` seconds (ApiError status 408)
  - is retried with exponential backoff (2, 4, 8... seconds) when the failure
    looks transient: connection errors and 5xx responses. 4xx responses,
    401 included, are raised straight away.

Successful {"success": true, "data": ...} envelopes are unwrapped to their
data. Failure envelopes become ApiError(message, status, errors).
"""

import logging
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_RETRY_ATTEMPTS = 3


class ApiError(Exception):
    """Raised for any failed API call. status is the HTTP status (or 0 when
    the server couldn't be reached); errors holds server field errors."""

    def __init__(self, message, status=0, errors=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or {}

    @property
    def is_retryable(self):
        # Network failures (status 0) and server errors may go away on retry
        return self.status == 0 or self.status >= 500

    def __repr__(self):
        return f'<ApiError {self.status} {self.message}>'


def _buffer_files(files):
    """Read file objects into bytes so every retry sends the whole upload."""
    if not files:
        return files
    buffered = {}
    for field, value in files.items():
        if isinstance(value, tuple):
            content = value[1]
            if hasattr(content, 'read'):
                content = content.read()
            buffered[field] = (value[0], content) + value[2:]
        elif hasattr(value, 'read'):
            buffered[field] = (getattr(value, 'name', field), value.read())
        else:
            buffered[field] = value
    return buffered


class ChronicleClient:
    def __init__(self, base_url, token_provider=None, timeout=DEFAULT_TIMEOUT,
                 retry_attempts=DEFAULT_RETRY_ATTEMPTS, session=None, sleep=time.sleep):
        self.base_url = base_url.rstrip('/')
        self.token_provider = token_provider
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.session = session or requests.Session()
        self.session.headers.setdefault('Accept', 'application/json')
        self._sleep = sleep

    def close(self):
        """Abort keep-alive connections; in-flight retries stop at the next attempt."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def build_url(self, path):
        if path.startswith(('http://', 'https://')):
            return path
        if not path.startswith('/'):
            path = '/' + path
        if not path.startswith('/api/') and path not in ('/api', '/health'):
            path = '/api' + path
        return self.base_url + path

    def _auth_headers(self):
        if self.token_provider is None:
            raise ApiError('No authentication token provider configured', 401)
        try:
            token = self.token_provider()
        except Exception as e:
            raise ApiError(f'Could not obtain an access token: {e}', 401)
        if not token:
            raise ApiError('No access token available', 401)
        return {'Authorization': f'Bearer {token}'}

    @staticmethod
    def _parse(response):
        """Unwrap a response, or raise ApiError for a failure."""
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if response.status_code >= 400:
            if isinstance(body, dict):
                message = body.get('message') or body.get('error') or response.reason
                raise ApiError(message, response.status_code, body.get('errors'))
            raise ApiError(response.reason or f'HTTP {response.status_code}', response.status_code)

        if isinstance(body, dict) and 'success' in body:
            if not body['success']:
                raise ApiError(body.get('message') or 'Request failed', response.status_code,
                               body.get('errors'))
            return body.get('data')
        if body is None and response.content:
            return response.text
        return body

    def _send(self, method, url, json=None, params=None, files=None, data=None, stream=False):
        headers = self._auth_headers()
        # With files, requests builds the multipart body and its Content-Type
        if files is None and json is not None:
            headers['Content-Type'] = 'application/json'
        try:
            return self.session.request(
                method, url, headers=headers, json=json if files is None else None,
                params=params, files=files, data=data if files is not None else None,
                timeout=self.timeout, stream=stream,
            )
        except requests.Timeout:
            raise ApiError('Request timeout', 408)
        except requests.ConnectionError as e:
            raise ApiError(f'Could not connect to {self.base_url}: {e}', 0)

    def request(self, method, path, json=None, params=None, files=None, data=None, raw=False):
        url = self.build_url(path)
        files = _buffer_files(files)
        attempt = 1
        while True:
            try:
                response = self._send(method, url, json=json, params=params, files=files, data=data)
                if raw:
                    if response.status_code >= 400:
                        self._parse(response)
                    return response
                return self._parse(response)
            except ApiError as e:
                # Timeouts and client errors surface immediately
                if e.status == 408 or not e.is_retryable or attempt >= self.retry_attempts:
                    raise
                delay = 2 ** attempt
                logger.warning('%s %s failed (%s), retrying in %ss (attempt %s/%s)',
                               method, url, e.status, delay, attempt, self.retry_attempts)
                self._sleep(delay)
                attempt += 1

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None, files=None, data=None):
        return self.request('POST', path, json=json, files=files, data=data)

    def put(self, path, json=None, files=None, data=None):
        return self.request('PUT', path, json=json, files=files, data=data)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def delete(self, path, json=None):
        return self.request('DELETE', path, json=json)

    def download(self, path, params=None):
        """Raw bytes of a non-JSON endpoint (CSV exports, map images)."""
        return self.request('GET', path, params=params, raw=True).content

    def health_check(self):
        try:
            response = self.session.get(self.build_url('/health'), timeout=self.timeout)
        except requests.RequestException:
            return False
        return response.status_code == 200

    # --- Convenience wrappers -------------------------------------------------

    def current_user(self):
        return self.get('/auth/current-user')

    def verify_user(self):
        return self.post('/auth/verify-user')

    def list_campaigns(self, **params):
        return self.get('/campaigns', params=params)

    def create_campaign(self, data):
        return self.post('/campaigns', json=data)

    def get_campaign(self, campaign_id):
        return self.get(f'/campaigns/{campaign_id}')

    def update_campaign(self, campaign_id, data):
        return self.put(f'/campaigns/{campaign_id}', json=data)

    def delete_campaign(self, campaign_id):
        return self.delete(f'/campaigns/{campaign_id}')

    def list_entities(self, campaign_id, collection, **params):
        """collection: characters, locations, items, notes, relationships, timeline, quests, maps"""
        return self.get(f'/campaigns/{campaign_id}/{collection}', params=params)

    def create_entity(self, campaign_id, collection, data):
        return self.post(f'/campaigns/{campaign_id}/{collection}', json=data)

    def create_character(self, campaign_id, data):
        return self.create_entity(campaign_id, 'characters', data)

    def create_location(self, campaign_id, data):
        return self.create_entity(campaign_id, 'locations', data)

    def create_item(self, campaign_id, data):
        return self.create_entity(campaign_id, 'items', data)

    def create_note(self, campaign_id, data):
        return self.create_entity(campaign_id, 'notes', data)

    def create_relationship(self, campaign_id, data):
        return self.create_entity(campaign_id, 'relationships', data)

    def create_timeline_event(self, campaign_id, data):
        return self.create_entity(campaign_id, 'timeline', data)

    def upload_map(self, campaign_id, fields, image_file, filename):
        return self.post(f'/campaigns/{campaign_id}/maps', data=fields,
                         files={'image': (filename, image_file)})

    def search(self, campaign_id, q, types=None):
        params = {'q': q}
        if types:
            params['types'] = ','.join(types)
        return self.get(f'/campaigns/{campaign_id}/search', params=params)

    def roll_dice(self, campaign_id, expression, **options):
        return self.post(f'/campaigns/{campaign_id}/dice-rolls',
                         json=dict(options, expression=expression))

    def export_campaign(self, campaign_id, include_stats=False):
        params = {'include_stats': 'true'} if include_stats else None
        return self.get(f'/campaigns/{campaign_id}/export', params=params)

    def export_csv(self, campaign_id, entity_type):
        return self.download(f'/campaigns/{campaign_id}/export/csv/{entity_type}').decode('utf-8')

    def import_campaign(self, export_data):
        return self.post('/import', json=export_data)
