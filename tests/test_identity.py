import base64
import time

import pytest
from jose import jwt

from chronicle.identity import (
    InvalidTokenError, JWKSIdentityProvider, SharedSecretIdentityProvider,
    build_identity_provider, provision_user,
)
from chronicle.models import User

DOMAIN = 'tenant.example.com'
AUDIENCE = 'https://chronicle-api'


def _claims(**extra):
    claims = {'sub': 'auth0|alice', 'exp': int(time.time()) + 300}
    claims.update(extra)
    return claims


# ============================================================================
# SHARED SECRET
# ============================================================================

def test_shared_secret_accepts_valid_token():
    provider = SharedSecretIdentityProvider('s3cret')
    token = jwt.encode(_claims(email='a@example.com'), 's3cret', algorithm='HS256')
    assert provider.verify_token(token)['email'] == 'a@example.com'


@pytest.mark.parametrize('token', [
    jwt.encode(_claims(), 'other', algorithm='HS256'),
    jwt.encode(_claims(exp=int(time.time()) - 10), 's3cret', algorithm='HS256'),
    jwt.encode({'exp': int(time.time()) + 300}, 's3cret', algorithm='HS256'),
    'not-a-jwt',
])
def test_shared_secret_rejects(token):
    with pytest.raises(InvalidTokenError):
        SharedSecretIdentityProvider('s3cret').verify_token(token)


def test_shared_secret_checks_audience_when_configured():
    provider = SharedSecretIdentityProvider('s3cret', audience=AUDIENCE)
    good = jwt.encode(_claims(aud=AUDIENCE), 's3cret', algorithm='HS256')
    bad = jwt.encode(_claims(aud='someone-else'), 's3cret', algorithm='HS256')
    assert provider.verify_token(good)['sub'] == 'auth0|alice'
    with pytest.raises(InvalidTokenError):
        provider.verify_token(bad)


def test_build_identity_provider():
    provider = build_identity_provider({'AUTH_PROVIDER': 'shared_secret', 'AUTH_SHARED_SECRET': 'x'})
    assert isinstance(provider, SharedSecretIdentityProvider)
    provider = build_identity_provider({'AUTH_PROVIDER': 'jwks', 'AUTH_DOMAIN': DOMAIN})
    assert isinstance(provider, JWKSIdentityProvider)
    assert provider.jwks_url == f'https://{DOMAIN}/.well-known/jwks.json'
    with pytest.raises(ValueError):
        build_identity_provider({'AUTH_PROVIDER': 'ldap'})


# ============================================================================
# JWKS
# ============================================================================

def _oct_key(kid, secret):
    k = base64.urlsafe_b64encode(secret.encode()).rstrip(b'=').decode()
    return {'kty': 'oct', 'kid': kid, 'k': k, 'alg': 'HS256'}


class FakeJWKSResponse:
    def __init__(self, document):
        self.document = document

    def raise_for_status(self):
        pass

    def json(self):
        return self.document


class FakeJWKSSession:
    def __init__(self, *documents):
        self.documents = list(documents)
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return FakeJWKSResponse(self.documents.pop(0) if len(self.documents) > 1 else self.documents[0])


def _jwks_provider(session):
    # HMAC "oct" keys keep the test free of RSA key generation; lookup and
    # caching work the same for any key type
    return JWKSIdentityProvider(DOMAIN, AUDIENCE, algorithms=('HS256',), session=session)


def _signed(kid, secret, **claims):
    return jwt.encode(_claims(aud=AUDIENCE, iss=f'https://{DOMAIN}/', **claims), secret,
                      algorithm='HS256', headers={'kid': kid})


def test_jwks_verifies_and_caches_keys():
    session = FakeJWKSSession({'keys': [_oct_key('k1', 'one')]})
    provider = _jwks_provider(session)
    assert provider.verify_token(_signed('k1', 'one'))['sub'] == 'auth0|alice'
    provider.verify_token(_signed('k1', 'one'))
    assert session.urls == [f'https://{DOMAIN}/.well-known/jwks.json']


def test_jwks_refetches_after_key_rotation():
    session = FakeJWKSSession({'keys': [_oct_key('k1', 'one')]},
                              {'keys': [_oct_key('k2', 'two')]})
    provider = _jwks_provider(session)
    provider.verify_token(_signed('k1', 'one'))
    assert provider.verify_token(_signed('k2', 'two'))['sub'] == 'auth0|alice'
    assert len(session.urls) == 2


def test_jwks_unknown_key_rejected():
    provider = _jwks_provider(FakeJWKSSession({'keys': [_oct_key('k1', 'one')]}))
    with pytest.raises(InvalidTokenError):
        provider.verify_token(_signed('nope', 'one'))


def test_jwks_wrong_issuer_rejected():
    provider = _jwks_provider(FakeJWKSSession({'keys': [_oct_key('k1', 'one')]}))
    token = jwt.encode(_claims(aud=AUDIENCE, iss='https://evil.example/'), 'one',
                       algorithm='HS256', headers={'kid': 'k1'})
    with pytest.raises(InvalidTokenError):
        provider.verify_token(token)


def test_jwks_without_domain_rejects_everything():
    provider = JWKSIdentityProvider('', None)
    with pytest.raises(InvalidTokenError):
        provider.verify_token(_signed('k1', 'one'))


# ============================================================================
# USER PROVISIONING
# ============================================================================

def test_provision_creates_user_once(db):
    user = provision_user({'sub': 'auth0|1', 'email': 'mira@example.com', 'nickname': 'mira'})
    assert user.username == 'mira'
    again = provision_user({'sub': 'auth0|1', 'email': 'changed@example.com'})
    assert again.id == user.id
    assert again.email == 'mira@example.com'
    assert User.query.count() == 1


def test_provision_makes_username_unique(db):
    provision_user({'sub': 'auth0|1', 'nickname': 'mira'})
    second = provision_user({'sub': 'auth0|2', 'nickname': 'mira'})
    third = provision_user({'sub': 'auth0|3', 'email': 'mira@elsewhere.example'})
    assert second.username == 'mira-2'
    assert third.username == 'mira-3'


def test_provision_drops_email_held_by_someone_else(db):
    provision_user({'sub': 'auth0|1', 'email': 'shared@example.com'})
    other = provision_user({'sub': 'auth0|2', 'email': 'shared@example.com'})
    assert other.email is None


def test_update_profile(db):
    provision_user({'sub': 'auth0|1', 'nickname': 'mira'})
    user = provision_user({'sub': 'auth0|1', 'name': 'Mira Vale', 'email_verified': True},
                          update_profile=True)
    assert user.display_name == 'Mira Vale'
    assert user.is_verified is True
