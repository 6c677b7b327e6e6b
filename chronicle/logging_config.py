import json
import logging
import sys
import time
import uuid

from flask import g, has_request_context, request


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record):
        payload = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
        }
        if getattr(record, 'request_id', None):
            payload['request_id'] = record.request_id
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload)


class RequestIdFilter(logging.Filter):
    """Copy the current request's id onto every record logged during it."""

    def filter(self, record):
        if has_request_context():
            record.request_id = g.get('request_id')
        else:
            record.request_id = None
        return True


def setup_logging(level='INFO', json_output=True):
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s'))
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)
    # Clear existing handlers to avoid duplicate lines on app re-creation
    root.handlers.clear()
    root.addHandler(handler)


def init_request_logging(app):
    """Tag each request with an id (X-Request-ID) and write one access log line."""
    logger = logging.getLogger('chronicle.access')

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        response.headers['X-Request-ID'] = g.get('request_id', '')
        started = g.get('request_started')
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info('%s %s %s %.1fms', request.method, request.path,
                    response.status_code, elapsed_ms)
        return response
