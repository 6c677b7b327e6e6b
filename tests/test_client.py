import io
import json

import pytest
import requests

from chronicle.client import ApiError, ChronicleClient


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, reason='OK'):
        self.status_code = status_code
        self.reason = reason
        if body is not None:
            self.content = json.dumps(body).encode('utf-8')
        else:
            self.content = (text or '').encode('utf-8')
        self.text = self.content.decode('utf-8')

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url, **kwargs):
        return self.request('GET', url, **kwargs)

    def close(self):
        self.closed = True


def make_client(*responses, token='tok', retry_attempts=3):
    session = FakeSession(*responses)
    sleeps = []
    client = ChronicleClient('https://api.example.com/', token_provider=lambda: token,
                             retry_attempts=retry_attempts, session=session, sleep=sleeps.append)
    return client, session, sleeps


def test_unwraps_success_envelope():
    client, session, _ = make_client(
        FakeResponse(200, {'success': True, 'message': 'ok', 'data': [{'id': 'c1'}]}))
    assert client.list_campaigns() == [{'id': 'c1'}]
    method, url, kwargs = session.calls[0]
    assert (method, url) == ('GET', 'https://api.example.com/api/campaigns')
    assert kwargs['headers']['Authorization'] == 'Bearer tok'
    assert kwargs['timeout'] == 30


def test_build_url():
    client, _, _ = make_client()
    assert client.build_url('campaigns') == 'https://api.example.com/api/campaigns'
    assert client.build_url('/api/campaigns') == 'https://api.example.com/api/campaigns'
    assert client.build_url('/health') == 'https://api.example.com/health'


def test_failure_envelope_raises_with_field_errors():
    client, _, sleeps = make_client(FakeResponse(422, {
        'success': False, 'message': 'Validation failed', 'errors': {'name': ['required']},
    }, reason='Unprocessable Entity'))
    with pytest.raises(ApiError) as excinfo:
        client.create_campaign({})
    assert excinfo.value.status == 422
    assert excinfo.value.errors == {'name': ['required']}
    assert sleeps == []


def test_not_found_is_not_retried():
    client, session, sleeps = make_client(FakeResponse(404, {'success': False, 'message': 'Campaign not found'}))
    with pytest.raises(ApiError) as excinfo:
        client.get_campaign('missing')
    assert excinfo.value.status == 404
    assert str(excinfo.value) == 'Campaign not found'
    assert len(session.calls) == 1
    assert sleeps == []


def test_server_errors_retried_with_backoff():
    client, session, sleeps = make_client(
        FakeResponse(500, {'success': False, 'message': 'boom'}),
        FakeResponse(503, text='', reason='Service Unavailable'),
        FakeResponse(200, {'success': True, 'data': {'id': 'c1'}}),
    )
    assert client.get_campaign('c1') == {'id': 'c1'}
    assert len(session.calls) == 3
    assert sleeps == [2, 4]


def test_gives_up_after_retry_attempts():
    client, session, sleeps = make_client(*[FakeResponse(500, {'message': 'boom'})] * 3)
    with pytest.raises(ApiError) as excinfo:
        client.list_campaigns()
    assert excinfo.value.status == 500
    assert len(session.calls) == 3
    assert sleeps == [2, 4]


def test_connection_errors_are_retried():
    client, session, _ = make_client(
        requests.ConnectionError('refused'),
        FakeResponse(200, {'success': True, 'data': []}),
    )
    assert client.list_campaigns() == []
    assert len(session.calls) == 2


def test_timeout_is_408_and_not_retried():
    client, session, sleeps = make_client(requests.Timeout('slow'))
    with pytest.raises(ApiError) as excinfo:
        client.list_campaigns()
    assert excinfo.value.status == 408
    assert len(session.calls) == 1
    assert sleeps == []


def test_missing_token_provider():
    client = ChronicleClient('https://api.example.com', session=FakeSession())
    with pytest.raises(ApiError) as excinfo:
        client.list_campaigns()
    assert excinfo.value.status == 401


def test_empty_token_is_unauthorized():
    client, session, _ = make_client(token='')
    with pytest.raises(ApiError) as excinfo:
        client.list_campaigns()
    assert excinfo.value.status == 401
    assert session.calls == []


def test_upload_sends_multipart_without_json_content_type():
    client, session, _ = make_client(FakeResponse(201, {'success': True, 'data': {'id': 'm1'}}))
    client.upload_map('c1', {'name': 'World'}, b'PNG', 'world.png')
    _, url, kwargs = session.calls[0]
    assert url.endswith('/api/campaigns/c1/maps')
    assert 'Content-Type' not in kwargs['headers']
    assert kwargs['files'] == {'image': ('world.png', b'PNG')}
    assert kwargs['data'] == {'name': 'World'}
    assert kwargs['json'] is None


def test_export_csv_returns_text():
    client, _, _ = make_client(FakeResponse(200, text='ID,Name\n1,Mira\n'))
    assert client.export_csv('c1', 'characters') == 'ID,Name\n1,Mira\n'


def test_context_manager_closes_session():
    client, session, _ = make_client()
    with client:
        pass
    assert session.closed is True


def test_upload_retry_resends_the_whole_file():
    client, session, _ = make_client(
        FakeResponse(500, {'success': False, 'message': 'boom'}),
        FakeResponse(201, {'success': True, 'data': {'id': 'm1'}}),
    )
    assert client.upload_map('c1', {'name': 'World'}, io.BytesIO(b'PNGDATA'), 'world.png') == {'id': 'm1'}
    sent = [kwargs['files']['image'][1] for _, _, kwargs in session.calls]
    assert sent == [b'PNGDATA', b'PNGDATA']
