import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from cvbuilder.databases import AccessDeniedError, DatabaseError, NotFoundError
from cvbuilder.services.cv_transforms import CVValidationError, format_validation_errors, now_iso

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_response(code, message, status, details=None, headers=None):
    """JSON error envelope: ``{"error": {code, message, details?, timestamp}}``."""
    error = {"code": code, "message": message, "timestamp": now_iso()}
    if details is not None:
        error["details"] = details
    response = jsonify({"error": error})
    response.status_code = status
    if headers:
        response.headers.update(headers)
    return response


def ai_rate_limited_response(result):
    """429 for a model-API rate limit, passing its back-off on as Retry-After."""
    retry_after = result.get("retryAfter") or 60
    return error_response(
        "RATE_LIMIT_EXCEEDED",
        result.get("error") or "Rate limit exceeded. Please try again later.",
        429,
        details={"retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return error_response("VALIDATION_ERROR", "Invalid request data", 400, format_validation_errors(e))

    @app.errorhandler(CVValidationError)
    def handle_cv_validation_error(e):
        return error_response("VALIDATION_ERROR", str(e), 400, e.errors)

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return error_response("NOT_FOUND", f"{e.resource} not found", 404)

    @app.errorhandler(AccessDeniedError)
    def handle_access_denied(e):
        return error_response("FORBIDDEN", "Access denied", 403)

    @app.errorhandler(DatabaseError)
    def handle_database_error(e):
        logger.error(f"❌ Unhandled database error: {e}")
        return error_response("INTERNAL_ERROR", "A database error occurred", 500)

    @app.errorhandler(429)
    def handle_rate_limit(e):
        return error_response(
            "RATE_LIMIT_EXCEEDED",
            "Too many requests. Please try again later.",
            429,
            details={"limit": str(e.description)},
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        code = _HTTP_CODES.get(e.code, "HTTP_ERROR")
        return error_response(code, e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"❌ Unhandled error: {e}")
        return error_response("INTERNAL_ERROR", "An internal server error occurred", 500)
