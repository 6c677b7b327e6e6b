"""
chronicle/identity.py: Delegated authentication

The API never sees passwords. Every request carries a bearer token issued by
an external identity provider; this module answers two questions about it:

  verify_token(token)     is the token genuine, and what are its claims?
  provision_user(claims)  which local User row does it belong to?

Two providers are available, picked by the AUTH_PROVIDER config value:
  - JWKSIdentityProvider (jwks): RS256 tokens checked against the
    provider's published signing keys
  - SharedSecretIdentityProvider (shared_secret): HS256 tokens signed with
    a local secret, for development and tests

Request handlers only talk to the IdentityProvider interface, so swapping
providers never touches route code.
"""

import re
import time

import requests
from flask import current_app
from jose import JWTError, jwt

from chronicle import db
from chronicle.models import User


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be verified."""
    pass


class IdentityProvider:
    def verify_token(self, token):
        """Return the token's claims dict, or raise InvalidTokenError."""
        raise NotImplementedError


def _check_subject(claims):
    if not claims.get('sub'):
        raise InvalidTokenError('Token has no subject claim')
    return claims


class SharedSecretIdentityProvider(IdentityProvider):
    def __init__(self, secret, audience=None, issuer=None, algorithms=('HS256',)):
        if not secret:
            raise ValueError('A shared secret is required')
        self.secret = secret
        self.audience = audience or None
        self.issuer = issuer or None
        self.algorithms = list(algorithms)

    def verify_token(self, token):
        try:
            claims = jwt.decode(
                token, self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={'verify_aud': self.audience is not None},
            )
        except JWTError as e:
            raise InvalidTokenError(str(e))
        return _check_subject(claims)


class JWKSIdentityProvider(IdentityProvider):
    def __init__(self, domain, audience, issuer=None, algorithms=('RS256',),
                 cache_seconds=3600, session=None):
        self.domain = domain
        self.audience = audience or None
        self.issuer = issuer or (f'https://{domain}/' if domain else None)
        self.algorithms = list(algorithms)
        self.cache_seconds = cache_seconds
        self.session = session or requests.Session()
        self._jwks = None
        self._fetched_at = 0.0

    @property
    def jwks_url(self):
        return f'https://{self.domain}/.well-known/jwks.json'

    def _get_jwks(self, force=False):
        fresh = time.monotonic() - self._fetched_at < self.cache_seconds
        if self._jwks is not None and fresh and not force:
            return self._jwks
        try:
            resp = self.session.get(self.jwks_url, timeout=10)
            resp.raise_for_status()
            self._jwks = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise InvalidTokenError(f'Could not fetch signing keys: {e}')
        self._fetched_at = time.monotonic()
        return self._jwks

    @staticmethod
    def _find_key(jwks, kid):
        for key in jwks.get('keys', []):
            if key.get('kid') == kid:
                return key
        return None

    def verify_token(self, token):
        if not self.domain:
            raise InvalidTokenError('Identity provider is not configured')
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise InvalidTokenError('Malformed token header')

        kid = header.get('kid')
        key = self._find_key(self._get_jwks(), kid)
        if key is None:
            # The provider may have rotated its keys since the last fetch
            key = self._find_key(self._get_jwks(force=True), kid)
        if key is None:
            raise InvalidTokenError('No signing key matches the token')

        try:
            claims = jwt.decode(
                token, key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={'verify_aud': self.audience is not None},
            )
        except JWTError as e:
            raise InvalidTokenError(str(e))
        return _check_subject(claims)


def build_identity_provider(config):
    """Create the provider named by config['AUTH_PROVIDER']."""
    kind = config.get('AUTH_PROVIDER', 'jwks')
    if kind == 'shared_secret':
        return SharedSecretIdentityProvider(
            config.get('AUTH_SHARED_SECRET'),
            audience=config.get('AUTH_AUDIENCE'),
            issuer=config.get('AUTH_ISSUER'),
        )
    if kind == 'jwks':
        return JWKSIdentityProvider(
            config.get('AUTH_DOMAIN'),
            config.get('AUTH_AUDIENCE'),
            issuer=config.get('AUTH_ISSUER'),
            algorithms=config.get('AUTH_ALGORITHMS') or ['RS256'],
            cache_seconds=config.get('AUTH_JWKS_CACHE_SECONDS', 3600),
        )
    raise ValueError(f'Unknown AUTH_PROVIDER: {kind}')


def _base_username(claims):
    raw = claims.get('nickname') or (claims.get('email') or '').split('@')[0] or 'user'
    cleaned = re.sub(r'[^A-Za-z0-9_.-]', '', raw)[:70]
    return cleaned or 'user'


def _unique_username(claims):
    base = _base_username(claims)
    candidate = base
    suffix = 1
    while User.query.filter_by(username=candidate).first():
        suffix += 1
        candidate = f'{base}-{suffix}'
    return candidate


def _available_email(email, user=None):
    """Emails are unique; drop one that already belongs to someone else."""
    if not email:
        return None
    holder = User.query.filter_by(email=email).first()
    if holder and holder is not user:
        return None
    return email


def provision_user(claims, update_profile=False):
    """Find or create the local User for a verified token's claims.

    New subjects get a row on their first request. With update_profile=True
    an existing row is refreshed from the claims (email, display name,
    verification flag), which is what POST /api/auth/verify-user does.
    """
    subject = claims['sub']
    user = User.query.filter_by(auth_subject=subject).first()

    if user is None:
        user = User(
            auth_subject=subject,
            username=_unique_username(claims),
            email=_available_email(claims.get('email')),
            display_name=claims.get('name') or claims.get('nickname'),
            is_verified=bool(claims.get('email_verified')),
        )
        db.session.add(user)
        db.session.commit()
        current_app.logger.info(f'Provisioned user {user.username} for subject {subject}')
        return user

    if update_profile:
        user.email = _available_email(claims.get('email'), user) or user.email
        user.display_name = claims.get('name') or claims.get('nickname') or user.display_name
        if 'email_verified' in claims:
            user.is_verified = bool(claims['email_verified'])
        db.session.commit()
    return user
