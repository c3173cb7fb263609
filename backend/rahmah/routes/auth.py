# Overview: Flask API routes for staff login, logout and the current session.

# backend/rahmah/routes/auth.py
"""
Staff Authentication API routes

- Login issues an opaque bearer token (stored hashed)
- Failed logins are recorded as security events
- Logout revokes the presented token
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..errors import internal_error_response
from ..decorators import require_auth
from ..permissions import allowed_statuses


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a staff user and create a session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                reason="Invalid credentials",
                resource=str(email).strip().lower()[:255],
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "tenantId": session.tenant_id,
            "message": "Login successful",
        }), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 401
    except Exception as e:
        return internal_error_response(e, "Failed to login user")


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception as e:
        return internal_error_response(e, "Failed to logout user")


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, the tenant the session acts in, and the case statuses the role may set."""
    tenant = g.current_user.tenant
    return jsonify({
        "user": g.current_user.to_dict(),
        "tenantId": g.tenant_id,
        "tenant": tenant.to_dict() if tenant else None,
        "allowedStatuses": allowed_statuses(g.current_user.role),
    })
