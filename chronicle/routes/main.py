from datetime import datetime
from flask import Blueprint, jsonify
from sqlalchemy import text
from chronicle import db, APP_VERSION

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
@main_bp.route('/api/health')
def health():
    """Liveness check for load balancers. No authentication."""
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except Exception as e:
        # Report, don't raise: the process is alive even if the database isn't
        db.session.rollback()
        database = f'error: {e.__class__.__name__}'
    status = 'ok' if database == 'ok' else 'degraded'
    return jsonify({
        'status': status,
        'version': APP_VERSION,
        'database': database,
        'timestamp': datetime.utcnow().isoformat() + 'Z',
    }), 200 if status == 'ok' else 503
