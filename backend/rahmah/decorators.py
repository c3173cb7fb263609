# Overview: Request decorators for API routes; staff bearer sessions, role gates and applicant magic links.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Role
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


APPLICANT_TOKEN_HEADER = "X-Applicant-Token"


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _applicant_token() -> str | None:
    return request.headers.get(APPLICANT_TOKEN_HEADER) or request.args.get("token") or None


def _load_staff_context():
    """
    Resolve the bearer session into g.

    Returns an error response tuple, or None on success.
    """
    token = _bearer_token()
    if not token:
        return jsonify({"error": "Authentication required"}), 401

    context = session_service.validate_session(token)
    if not context:
        return jsonify({"error": "Invalid or expired token"}), 401

    # MULTI-TENANT: every staff session acts inside exactly one tenant
    if not context.tenant_id and context.user.role != Role.SUPER_ADMIN:
        permission_service.log_security_event(
            user_id=context.user.id,
            event_type="TENANT_CONTEXT_MISSING",
            success=False,
            reason="Session missing tenant_id",
        )
        return jsonify({"error": "Invalid session: missing tenant context"}), 401

    g.current_user = context.user
    g.tenant_id = context.tenant_id
    g.session_context = context
    g.actor = context.actor()
    return None


def _load_applicant_context(token: str):
    applicant = session_service.validate_applicant_token(token)
    if not applicant:
        return jsonify({"error": "Invalid or expired link"}), 401

    g.applicant = applicant
    g.tenant_id = applicant.tenant_id
    g.actor = session_service.applicant_actor(applicant)
    return None


def require_auth(f):
    """
    Require a staff session and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant the session acts in (None only for super_admin)
    - g.session_context: The full SessionContext object
    - g.actor: ActorContext passed explicitly into services

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account or tenant deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        error = _load_staff_context()
        if error:
            return error
        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles, action: str | None = None):
    """
    Require the staff user's role to be one of `roles`.

    Denials are logged as ROLE_DENIED security events.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = g.get("actor")
            if actor is None or actor.is_applicant:
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_role(actor, roles, action=action)
            except PermissionDeniedError as e:
                return jsonify({"error": str(e)}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_applicant_token(f):
    """
    Require a valid applicant magic-link token.

    The token is read from the X-Applicant-Token header or the `token`
    query parameter. Sets g.applicant and g.actor (role "applicant").
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _applicant_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        error = _load_applicant_context(token)
        if error:
            return error
        return f(*args, **kwargs)

    return decorated_function


def require_staff_or_applicant(f):
    """Staff bearer session when present, otherwise an applicant magic link."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if _bearer_token():
            error = _load_staff_context()
        elif _applicant_token():
            error = _load_applicant_context(_applicant_token())
        else:
            error = (jsonify({"error": "Authentication required"}), 401)

        if error:
            return error
        return f(*args, **kwargs)

    return decorated_function
