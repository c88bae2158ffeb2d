from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message, status_code=None, code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    code = "validation"


class AdmissionError(AppError):
    """The entity exists but is in the wrong state for the operation."""

    code = "admission"


class SignatureError(AppError):
    code = "signature"


class AuthenticationError(AppError):
    status_code = 401
    code = "authentication"


class RateLimitError(AppError):
    status_code = 429
    code = "rate_limited"


class UpstreamError(AppError):
    status_code = 500
    code = "upstream"


class ConfigurationError(AppError):
    status_code = 500
    code = "configuration"


def _error_response(message, status_code, code=None):
    body = {"success": False, "error": message}
    if code:
        body["code"] = code
    return jsonify(body), status_code


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return _error_response(err.message, err.status_code, err.code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        from app.extensions import db

        db.session.rollback()
        return _error_response("Conflict. Resource already exists.", 409, "conflict")

    @app.errorhandler(400)
    def bad_request(_err):
        return _error_response("Bad request", 400)

    @app.errorhandler(401)
    def unauthorized(_err):
        return _error_response("Unauthorized", 401)

    @app.errorhandler(403)
    def forbidden(_err):
        return _error_response("Forbidden", 403)

    @app.errorhandler(404)
    def not_found(_err):
        return _error_response("Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return _error_response("Method not allowed", 405)

    @app.errorhandler(429)
    def too_many_requests(_err):
        return _error_response("Too many requests. Slow down.", 429, "rate_limited")

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return _error_response("Internal server error", 500)
