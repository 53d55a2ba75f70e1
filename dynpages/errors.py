import logging
from flask import jsonify, current_app
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from .models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status = 500
    message = 'Internal server error'

    def __init__(self, message: str | None = None, details=None, headers: dict | None = None, **extra):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details
        self.headers = headers or {}
        self.extra = extra

    def to_dict(self):
        body = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        body.update(self.extra)
        return body


class ValidationFailed(ApiError):
    status = 400
    message = 'Validation failed'


class Unauthorized(ApiError):
    status = 401
    message = 'Unauthorized'


class LimitReached(ApiError):
    status = 403
    message = 'Limit reached'


class NotFound(ApiError):
    status = 404
    message = 'Not found'


class RateLimited(ApiError):
    status = 429
    message = 'Rate limit exceeded'

    def __init__(self, retry_after: int, limit: int | None = None, reset_at: float | None = None):
        headers = {'Retry-After': str(retry_after), 'X-RateLimit-Remaining': '0'}
        if limit is not None:
            headers['X-RateLimit-Limit'] = str(limit)
        if reset_at is not None:
            headers['X-RateLimit-Reset'] = str(int(reset_at))
        super().__init__(headers=headers, retryAfter=retry_after)
        self.retry_after = retry_after


class UpstreamFailed(ApiError):
    status = 502
    message = 'Failed to execute webhook'


class UpstreamTimeout(ApiError):
    status = 504
    message = 'Webhook request timeout'


def _field_errors(exc: ValidationError):
    out = {}
    for err in exc.errors():
        field = '.'.join(str(p) for p in err.get('loc', ())) or '_'
        out.setdefault(field, []).append(err.get('msg'))
    return out


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        if e.status >= 500:
            logger.warning('%s: %s', type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status, e.headers

    @app.errorhandler(ValidationError)
    def handle_validation(e: ValidationError):
        return jsonify({'error': 'Invalid input', 'details': _field_errors(e)}), 400

    @app.errorhandler(HTTPException)
    def handle_http(e: HTTPException):
        return jsonify({'error': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        db.session.rollback()
        logger.exception('Unhandled error on request')
        body = {'error': 'Internal server error'}
        if not current_app.config.get('IS_PRODUCTION'):
            body['details'] = str(e)
        return jsonify(body), 500
