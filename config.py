import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_list(name, default=''):
    """Split a comma-separated environment variable into a list of strings."""
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(',') if part.strip()]


class Config:
    # Flask only uses the secret key for signing; the API itself is stateless
    # (bearer tokens), but a dev-only fallback keeps local runs painless.
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY and os.environ.get('FLASK_ENV') != 'development':
        import warnings
        warnings.warn('SECRET_KEY not set, using insecure default. Set SECRET_KEY env var in production!')
        SECRET_KEY = 'dev-secret-key-not-for-production'
    elif not SECRET_KEY:
        SECRET_KEY = 'dev-secret-key-not-for-production'

    # In Docker, DATABASE_URL points to the real database (MySQL/Postgres).
    # Locally, falls back to a SQLite file in the instance/ folder.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'chronicle.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Map images are stored on disk; only the filename goes in the database
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'instance', 'uploads')
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

    # Maximum upload size (16 MB)
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # Identity provider settings.
    # AUTH_PROVIDER=jwks verifies RS256 tokens against https://<AUTH_DOMAIN>/.well-known/jwks.json
    # AUTH_PROVIDER=shared_secret verifies HS256 tokens signed with AUTH_SHARED_SECRET (dev only)
    AUTH_PROVIDER = os.environ.get('AUTH_PROVIDER', 'jwks')
    AUTH_DOMAIN = os.environ.get('AUTH_DOMAIN', '')
    AUTH_AUDIENCE = os.environ.get('AUTH_AUDIENCE', '')
    AUTH_ISSUER = os.environ.get('AUTH_ISSUER') or (
        f"https://{os.environ['AUTH_DOMAIN']}/" if os.environ.get('AUTH_DOMAIN') else '')
    AUTH_ALGORITHMS = _env_list('AUTH_ALGORITHMS', 'RS256')
    AUTH_SHARED_SECRET = os.environ.get('AUTH_SHARED_SECRET', '')
    # How long a fetched JWKS document is reused before refetching (seconds)
    AUTH_JWKS_CACHE_SECONDS = int(os.environ.get('AUTH_JWKS_CACHE_SECONDS', '3600'))

    # Origins allowed to call the API from a browser
    CORS_ORIGINS = _env_list('CORS_ORIGINS', 'http://localhost:3000')

    # LOG_JSON=0 switches to plain text logs for local development
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_JSON = os.environ.get('LOG_JSON', '1') not in ('0', 'false', 'False')

    # Rate limiting for the provisioning and import endpoints
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', '1') not in ('0', 'false', 'False')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # Version string written into export envelopes
    EXPORT_VERSION = '1.0.0'
    EXPORTER_NAME = 'Campaign Chronicle'
