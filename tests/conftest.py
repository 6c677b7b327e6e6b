import time

import pytest
from jose import jwt

from chronicle import create_app, db as _db
from config import Config

TEST_SECRET = 'test-shared-secret'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AUTH_PROVIDER = 'shared_secret'
    AUTH_SHARED_SECRET = TEST_SECRET
    AUTH_AUDIENCE = None
    AUTH_ISSUER = None
    RATELIMIT_ENABLED = False
    LOG_JSON = False
    LOG_LEVEL = 'WARNING'
    CORS_ORIGINS = ['http://localhost:3000']


def make_token(sub='auth0|alice', email='alice@example.com', nickname='alice',
               expires_in=3600, secret=TEST_SECRET, **extra):
    claims = {'sub': sub, 'email': email, 'nickname': nickname,
              'exp': int(time.time()) + expires_in}
    claims.update(extra)
    return jwt.encode(claims, secret, algorithm='HS256')


def auth_header(**kwargs):
    return {'Authorization': f'Bearer {make_token(**kwargs)}'}


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(_Config)
    with app.app_context():
        _db.create_all()
    # Requests push their own app context, so each gets a fresh session
    yield app
    with app.app_context():
        _db.drop_all()


@pytest.fixture
def db(app):
    with app.app_context():
        yield _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def alice():
    return auth_header()


@pytest.fixture
def bob():
    return auth_header(sub='auth0|bob', email='bob@example.com', nickname='bob')


@pytest.fixture
def campaign(client, alice):
    resp = client.post('/api/campaigns', json={'name': 'Curse of the Ash King',
                                               'description': 'A grim low-magic sandbox'},
                       headers=alice)
    assert resp.status_code == 201
    return resp.get_json()['data']


@pytest.fixture
def create(client, alice):
    """POST to /api/campaigns/<id>/<collection> as alice and return the created row."""
    def _create(campaign_id, collection, payload, headers=None):
        resp = client.post(f'/api/campaigns/{campaign_id}/{collection}', json=payload,
                           headers=headers or alice)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['data']
    return _create
