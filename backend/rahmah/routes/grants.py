# Overview: Flask API routes for grants and grant payment documents.

"""
Grant Routes

POST /api/grants upserts the grant for a case. Field rights follow the
case field table; a grant status may be set by a role exactly when that
role may set the same case status. Legacy names amountGranted / notes are
accepted on input only.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import STAFF_ROLES, GRANT_WRITE_ROLES, PAYMENT_ROLES, PAYMENT_DOCUMENT_READ_ROLES
from ..services import grant_service


grants_bp = Blueprint("grants", __name__, url_prefix="/api/grants")


@grants_bp.post("")
@require_auth
@require_roles(*GRANT_WRITE_ROLES, action="save grants")
def upsert_grant_route():
    """
    Create or update the grant for applicantId.

    Returns 201 when a grant was created, 200 when updated.
    """
    try:
        grant, created = grant_service.upsert_grant(g.actor, request.get_json(silent=True))
        return jsonify(grant.to_dict()), 201 if created else 200
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to save grant")


@grants_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES, action="view grants")
def list_grants_route():
    """
    Query params:
    - applicantId: restrict to one case (id or CASE-...)

    Returns {items, total, totalGranted}.
    """
    try:
        return jsonify(grant_service.list_grants(g.actor, request.args.get("applicantId")))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@grants_bp.post("/<int:grant_id>/payment-documents")
@require_auth
@require_roles(*PAYMENT_ROLES, action="upload payment documents")
def add_payment_documents_route(grant_id: int):
    try:
        documents, errors = grant_service.add_payment_documents(
            g.actor, grant_id, request.files.getlist("files")
        )
        return jsonify({
            "documents": [d.to_dict() for d in documents],
            "uploadErrors": errors,
        }), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to upload payment documents")


@grants_bp.get("/<int:grant_id>/payment-documents")
@require_auth
@require_roles(*PAYMENT_DOCUMENT_READ_ROLES, action="view payment documents")
def list_payment_documents_route(grant_id: int):
    try:
        documents = grant_service.list_payment_documents(g.actor, grant_id)
        return jsonify({"documents": [d.to_dict() for d in documents]})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@grants_bp.delete("/<int:grant_id>/payment-documents/<int:document_id>")
@require_auth
@require_roles(*PAYMENT_ROLES, action="delete payment documents")
def delete_payment_document_route(grant_id: int, document_id: int):
    try:
        grant_service.delete_payment_document(g.actor, grant_id, document_id)
        return jsonify({"message": "Payment document deleted"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to delete payment document")
