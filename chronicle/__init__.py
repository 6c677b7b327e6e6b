from flask import Flask, current_app, g, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from config import Config
import os
import uuid

# App version, reported by the health check and written into exports
APP_VERSION = '1.0.0'

# Create the database object here, but don't attach it to an app yet
db = SQLAlchemy()

# Schema changes go through Alembic migrations (flask db upgrade)
migrate = Migrate()

# Login manager: resolves the caller from the Authorization header on every
# request. There are no session cookies; each request stands alone.
login_manager = LoginManager()

# Rate limiter: protects user provisioning and imports from hammering.
limiter = Limiter(key_func=get_remote_address, default_limits=[])


def save_upload(file):
    """Save an uploaded image file to the uploads folder.

    Validates the file extension, generates a unique filename (UUID + original
    extension) to avoid collisions, then writes the file to UPLOAD_FOLDER.
    Returns the new filename string, or None if the file is missing/invalid.
    """
    if not file or not file.filename:
        return None
    if '.' not in file.filename:
        return None
    ext = file.filename.rsplit('.', 1)[1].lower()
    if ext not in current_app.config.get('ALLOWED_EXTENSIONS', set()):
        return None
    filename = f"{uuid.uuid4().hex}.{ext}"
    file.save(os.path.join(current_app.config['UPLOAD_FOLDER'], filename))
    return filename


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    from chronicle.logging_config import setup_logging, init_request_logging
    setup_logging(app.config.get('LOG_LEVEL', 'INFO'), app.config.get('LOG_JSON', True))
    init_request_logging(app)

    # Attach the database and migration engine to this app instance
    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)
    login_manager.session_protection = None
    limiter.init_app(app)

    from chronicle.identity import build_identity_provider
    app.extensions['identity_provider'] = build_identity_provider(app.config)

    @login_manager.request_loader
    def load_user_from_request(req):
        from chronicle.identity import InvalidTokenError, provision_user
        header = req.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        token = header[len('Bearer '):].strip()
        provider = current_app.extensions['identity_provider']
        try:
            claims = provider.verify_token(token)
        except InvalidTokenError as e:
            current_app.logger.info(f'Rejected bearer token: {e}')
            return None
        g.token_claims = claims
        return provision_user(claims)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Authentication required'}), 401

    from chronicle.errors import register_error_handlers
    register_error_handlers(app)

    # Browser front end runs on another origin; answer CORS for the configured ones
    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get('Origin')
        if origin and origin in app.config.get('CORS_ORIGINS', []):
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type, X-Request-ID'
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
            response.headers['Vary'] = 'Origin'
        return response

    # Ensure the uploads directory exists when the app starts
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Register Blueprints: each Blueprint is a group of related routes
    from chronicle.routes.main import main_bp
    from chronicle.routes.auth import auth_bp
    from chronicle.routes.campaigns import campaigns_bp
    from chronicle.routes.characters import characters_bp
    from chronicle.routes.locations import locations_bp
    from chronicle.routes.items import items_bp
    from chronicle.routes.notes import notes_bp
    from chronicle.routes.relationships import relationships_bp
    from chronicle.routes.timeline import timeline_bp
    from chronicle.routes.quests import quests_bp
    from chronicle.routes.maps import maps_bp
    from chronicle.routes.dice import dice_bp
    from chronicle.routes.search import search_bp
    from chronicle.routes.export import export_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(campaigns_bp)
    app.register_blueprint(characters_bp)
    app.register_blueprint(locations_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(notes_bp)
    app.register_blueprint(relationships_bp)
    app.register_blueprint(timeline_bp)
    app.register_blueprint(quests_bp)
    app.register_blueprint(maps_bp)
    app.register_blueprint(dice_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(export_bp)

    return app
