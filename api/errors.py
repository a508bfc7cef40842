from flask import jsonify
from werkzeug.exceptions import HTTPException, TooManyRequests
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.tokens import AuthError

logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
}


def error_response(message: str, status: int, details: dict | None = None, **extra):
    """Uniform error envelope: error holds the human readable message, code the category."""
    payload = {"error": message, "code": ERROR_CODES.get(status, "ERROR"), "status": status}
    if details:
        payload["details"] = details
    payload.update(extra)
    return jsonify(payload), status


def register_error_handlers(app):
    # Marshmallow validation errors: caller must fix the input
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response("Invalid input", 400, details=err.messages)

    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        return error_response(err.message, err.status)

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # the raw database message is logged, never returned
        logger.warning("Integrity error: %s", getattr(err, "orig", err))
        lower_msg = str(getattr(err, "orig", err)).lower()
        if "unique constraint" in lower_msg or "unique violation" in lower_msg:
            return error_response("Unique constraint violated.", 409)
        return error_response("Integrity error.", 400)

    @app.errorhandler(TooManyRequests)
    def handle_rate_limited(err: TooManyRequests):
        retry_after = int(err.retry_after or 0)
        response, status = error_response(err.description, 429, retryAfter=retry_after)
        response.headers["Retry-After"] = str(retry_after)
        return response, status

    # Werkzeug HTTPExceptions (abort(...)) map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.description, err.code or 400)

    # 500 Internal Error (catch-all): full detail in the server log, generic message to the caller
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        return error_response("An unexpected error occurred", 500)
