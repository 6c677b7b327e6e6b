from flask import Blueprint, current_app, g
from flask_login import login_required, current_user
from chronicle import limiter
from chronicle.identity import provision_user
from chronicle.routes.helpers import ok

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/verify-user', methods=['POST'])
@limiter.limit('30 per minute')
@login_required
def verify_user():
    """Called by the front end right after sign-in: refresh the local user
    record from the token's profile claims."""
    user = provision_user(g.token_claims, update_profile=True)
    current_app.logger.info(f'Verified user {user.username}')
    return ok(user.to_dict(), 'User verified')


@auth_bp.route('/current-user')
@login_required
def get_current_user():
    return ok(current_user.to_dict())


@auth_bp.route('/validate-session')
@login_required
def validate_session():
    claims = g.get('token_claims') or {}
    return ok({
        'valid': True,
        'user': current_user.to_dict(),
        'token': {
            'subject': claims.get('sub'),
            'issuer': claims.get('iss'),
            'audience': claims.get('aud'),
            'expires_at': claims.get('exp'),
        },
    }, 'Session is valid')
