"""Error types raised by route handlers and services, and the Flask handlers
that turn them into the JSON failure envelope:

    {"success": false, "message": "...", "errors": {"field": ["..."]}}
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    """Base class for errors that map directly onto an HTTP response."""
    status_code = 400
    default_message = 'Bad request'

    def __init__(self, message=None, status_code=None, errors=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class BadRequest(APIError):
    status_code = 400
    default_message = 'Bad request'


class Unauthorized(APIError):
    status_code = 401
    default_message = 'Authentication required'


class NotFound(APIError):
    status_code = 404
    default_message = 'Resource not found'


class ValidationFailed(APIError):
    """Raised with the field -> [messages] map produced by chronicle.validation."""
    status_code = 422
    default_message = 'Validation failed'

    def __init__(self, errors, message=None):
        super().__init__(message, errors=errors)


def error_response(message, status_code, errors=None):
    body = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return jsonify(body), status_code


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(e):
        return error_response(e.message, e.status_code, e.errors)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        # 404 for unknown URLs, 405 for wrong methods, 413 for oversized uploads
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error('Unhandled exception', exc_info=e)
        return error_response('Internal server error', 500)
