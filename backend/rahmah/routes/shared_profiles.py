# Overview: Flask API routes for read-only case sharing between tenants.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import Role, STAFF_ROLES
from ..services import sharing_service


shared_profiles_bp = Blueprint("shared_profiles", __name__, url_prefix="/api/shared-profiles")


@shared_profiles_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES, action="view shared profiles")
def list_shared_profiles_route():
    """
    Query params:
    - direction: incoming (default, shared with us) | outgoing (shared by us)
    """
    try:
        shares = sharing_service.list_shares(g.actor, request.args.get("direction", "incoming"))
        return jsonify({"sharedProfiles": [s.to_dict() for s in shares]})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@shared_profiles_bp.post("")
@require_auth
@require_roles(Role.ADMIN, action="share profiles")
def share_profile_route():
    """Body: applicantId (id or caseId), toTenantId, note."""
    try:
        share = sharing_service.share_case(g.actor, request.get_json(silent=True))
        return jsonify({"message": "Profile shared successfully", "sharedProfile": share.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to share profile")


@shared_profiles_bp.get("/<int:share_id>")
@require_auth
@require_roles(*STAFF_ROLES, action="view shared profiles")
def get_shared_profile_route(share_id: int):
    try:
        return jsonify(sharing_service.open_share(g.actor, share_id))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@shared_profiles_bp.delete("/<int:share_id>")
@require_auth
@require_roles(Role.ADMIN, action="revoke shared profiles")
def revoke_shared_profile_route(share_id: int):
    try:
        sharing_service.revoke_share(g.actor, share_id)
        return jsonify({"message": "Shared profile access revoked"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
