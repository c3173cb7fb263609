# Overview: Flask API routes for tenants; super_admin management and the public tenant picker.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import Role, STAFF_ROLES
from ..services import tenant_service, tenant_admin_service


tenants_bp = Blueprint("tenants", __name__, url_prefix="/api/tenants")
public_tenants_bp = Blueprint("public_tenants", __name__, url_prefix="/api/public/tenants")


@tenants_bp.get("")
@require_auth
@require_roles(Role.SUPER_ADMIN, action="list tenants")
def list_tenants_route():
    tenants = tenant_service.list_tenants()
    return jsonify({"tenants": [t.to_dict() for t in tenants]})


@tenants_bp.post("")
@require_auth
@require_roles(Role.SUPER_ADMIN, action="create tenants")
def create_tenant_route():
    """
    Body: name (required), slug (defaults from name), email, phone, brandColor,
    adminName + adminEmail (optional together: first admin, invited by email).
    """
    try:
        tenant, admin = tenant_admin_service.onboard_tenant(g.actor, request.get_json(silent=True))
        body = tenant.to_dict()
        if admin:
            body["admin"] = admin.to_dict()
        return jsonify(body), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create tenant")


@tenants_bp.get("/available")
@require_auth
@require_roles(*STAFF_ROLES, action="list share targets")
def available_tenants_route():
    """Other active tenants, for choosing who to share a case with."""
    tenants = tenant_admin_service.list_share_targets(g.actor)
    return jsonify({"tenants": [{"id": t.id, "name": t.name, "slug": t.slug} for t in tenants]})


@tenants_bp.get("/<int:tenant_id>")
@require_auth
@require_roles(Role.SUPER_ADMIN, Role.ADMIN, action="view tenant")
def get_tenant_route(tenant_id: int):
    try:
        return jsonify(tenant_admin_service.get_tenant(g.actor, tenant_id).to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@tenants_bp.patch("/<int:tenant_id>")
@require_auth
@require_roles(Role.SUPER_ADMIN, action="update tenants")
def update_tenant_route(tenant_id: int):
    """Body: any of name, slug, email, phone, brandColor, isActive."""
    try:
        tenant = tenant_admin_service.update_tenant(g.actor, tenant_id, request.get_json(silent=True))
        return jsonify(tenant.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update tenant")


@tenants_bp.delete("/<int:tenant_id>")
@require_auth
@require_roles(Role.SUPER_ADMIN, action="delete tenants")
def delete_tenant_route(tenant_id: int):
    try:
        tenant_admin_service.delete_tenant(g.actor, tenant_id)
        return jsonify({"message": "Tenant and all associated data deleted"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to delete tenant")


@public_tenants_bp.get("")
def public_tenants_route():
    """Active tenants for the intake form's organization picker."""
    return jsonify({"tenants": [t.to_public_dict() for t in tenant_service.list_active_tenants()]})
