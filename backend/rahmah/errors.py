# Overview: Maps domain exceptions to JSON error responses; hides diagnostics in production.

from flask import current_app, jsonify

from .services.auth_service import PasswordValidationError
from .services.permission_service import PermissionDeniedError
from .services.tenant_service import TenantAccessError
from .validation import ConflictError, NotFoundError, ValidationError


class AuthenticationError(Exception):
    """Raised when credentials are missing or invalid."""
    pass


# Order matters only for subclasses; these are all siblings
ERROR_STATUS = (
    (ValidationError, 400),
    (PasswordValidationError, 400),
    (AuthenticationError, 401),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (TenantAccessError, 404),
    (ConflictError, 409),
)

DOMAIN_ERRORS = tuple(cls for cls, _ in ERROR_STATUS)


def domain_error_response(e: Exception):
    for cls, status in ERROR_STATUS:
        if isinstance(e, cls):
            return jsonify({"error": str(e)}), status
    return internal_error_response(e, "Unhandled error")


def internal_error_response(e: Exception, log_message: str):
    """Log with traceback; add detail/type to the body outside production."""
    current_app.logger.exception(log_message)
    body = {"error": "Internal server error"}
    if current_app.config.get("APP_ENV") != "production":
        body["detail"] = str(e)
        body["type"] = type(e).__name__
    return jsonify(body), 500
