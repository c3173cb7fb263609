# Overview: Flask API routes for tenant administration; staff users and historical case import.

# backend/rahmah/routes/admin.py
"""
Admin routes for a tenant's staff and data.

Provides endpoints for:
- User management (list, create, update)
- Bulk import of historical cases
- First-password setup for invited staff (token-authenticated, no session)

Everything except setup-password requires an admin session and is scoped to the
session's tenant.
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..models import User
from ..services import auth_service, session_service, permission_service, import_service
from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import Role, ASSIGNABLE_ROLES
from ..validation import ValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _get_user_in_current_tenant(user_id: int) -> User | None:
    return db.session.query(User).filter_by(id=user_id, tenant_id=g.tenant_id).first()


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_roles(Role.ADMIN, action="view users")
def list_users():
    """
    List users in the tenant.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    - role: filter by role
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    role = request.args.get("role")

    query = db.session.query(User).filter(User.tenant_id == g.tenant_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.name).all()
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.post("/users")
@require_auth
@require_roles(Role.ADMIN, action="create users")
def create_user():
    """
    Create a staff user in the caller's tenant.

    Request body:
    - name, email, password: str (required)
    - role: admin | caseworker | approver | treasurer (required)
    """
    try:
        data = request.get_json(silent=True) or {}
        name = data.get("name")
        email = data.get("email")
        password = data.get("password")
        role = data.get("role")

        if not all([name, email, password, role]):
            return jsonify({"error": "name, email, password and role required"}), 400
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ASSIGNABLE_ROLES)}")

        user = auth_service.create_user(name, email, password, role, tenant_id=g.tenant_id)

        permission_service.log_security_event(
            user_id=g.current_user.id,
            event_type="USER_CREATED",
            success=True,
            resource=f"/api/admin/users/{user.id}",
            action="CREATE",
            tenant_id=g.tenant_id,
        )

        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create user")


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_roles(Role.ADMIN, action="update users")
def update_user(user_id: int):
    """
    Update name, role, isActive or emailOnNewMessage.

    Deactivation and role changes revoke the user's live sessions.
    """
    user = _get_user_in_current_tenant(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    try:
        data = request.get_json(silent=True) or {}
        previous_role = user.role
        was_active = user.is_active

        auth_service.update_user(user, data)

        if user.role != previous_role or (was_active and not user.is_active):
            session_service.revoke_all_user_sessions(user.id, reason="Role or status changed by admin")

        return jsonify({"user": user.to_dict(), "message": "User updated successfully"})

    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update user")


# =============================================================================
# HISTORICAL CASE IMPORT
# =============================================================================

@admin_bp.post("/import-cases")
@require_auth
@require_roles(Role.ADMIN, action="import cases")
def import_cases():
    """
    Import historical cases. No emails are sent for imported cases.

    Body: a JSON array of cases, or {"cases": [...]}.
    Returns {successful, failed, errors}.
    """
    try:
        result = import_service.import_cases(g.actor, request.get_json(silent=True))
        return jsonify(result)
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to import cases")


@admin_bp.get("/import-cases/template")
@require_auth
@require_roles(Role.ADMIN, action="import cases")
def import_template():
    return jsonify({"cases": import_service.IMPORT_TEMPLATE})


# =============================================================================
# INVITED STAFF: FIRST PASSWORD
# =============================================================================

@admin_bp.get("/setup-password")
def verify_invite():
    """Check an invite token before showing the set-password form. No session needed."""
    token = request.args.get("token")
    if not token:
        return jsonify({"error": "Token is required"}), 400
    try:
        user = auth_service.verify_invite(token)
        return jsonify({"valid": True, "user": {"name": user.name, "email": user.email}})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@admin_bp.post("/setup-password")
def setup_password():
    """
    Set the first password of an invited user.

    Request body:
    - token: str (from the invite link)
    - password: str (same strength rules as any staff password)
    """
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    password = data.get("password")
    if not token or not password:
        return jsonify({"error": "Token and password are required"}), 400

    try:
        auth_service.accept_invite(token, password)
        return jsonify({"message": "Password set successfully. You can now log in."})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to set password")
