# Overview: Flask API routes for cases (applicants): public intake, staff list/detail/update/delete, documents.

"""
Case Routes

Public:
- POST /api/applicants                      intake (multipart or JSON)
- GET  /api/applicants/check-email          {exists}
- POST /api/applicants/request-login-link   always 200

Staff (bearer session):
- GET/PUT/DELETE /api/applicants/<ref>      <ref> is the numeric id or CASE-...
- POST/DELETE    /api/applicants/<ref>/documents
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles, require_staff_or_applicant
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import Role, STAFF_ROLES, DOCUMENT_WRITE_ROLES
from ..services import case_service


applicants_bp = Blueprint("applicants", __name__, url_prefix="/api/applicants")


def _intake_payload() -> tuple[dict, list]:
    """Multipart forms carry files under "documents"; JSON bodies carry none."""
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict(), request.files.getlist("documents")
    return request.get_json(silent=True) or {}, []


@applicants_bp.post("")
def intake_route():
    """
    Submit a new application.

    Returns 201 with the case plus uploadErrors (files that were skipped).
    """
    try:
        payload, uploads = _intake_payload()
        applicant, upload_errors = case_service.intake(payload, uploads)
        data = applicant.to_dict()
        data["uploadErrors"] = upload_errors
        return jsonify(data), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create application")


@applicants_bp.get("/check-email")
def check_email_route():
    try:
        exists = case_service.check_email_exists(request.args.get("email"))
        return jsonify({"exists": exists})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@applicants_bp.post("/request-login-link")
def request_login_link_route():
    """
    Email a fresh portal link.

    Answers 200 whether or not the address is known.
    """
    data = request.get_json(silent=True) or {}
    try:
        case_service.request_login_link(data.get("email"))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to issue login link")

    return jsonify({"message": "If an application exists for this email, a login link has been sent"}), 200


@applicants_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES, action="list cases")
def list_cases_route():
    """
    List cases in the caller's tenant.

    Query params:
    - status: exact case status
    - q: name / email / phone / caseId substring
    - page, limit: pagination (limit default 25, max 100)
    """
    try:
        result = case_service.list_cases(
            g.actor,
            status=request.args.get("status"),
            q=request.args.get("q"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result)
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@applicants_bp.get("/<ref>")
@require_auth
@require_roles(*STAFF_ROLES, action="view cases")
def get_case_route(ref: str):
    try:
        return jsonify(case_service.get_case(g.actor, ref))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@applicants_bp.put("/<ref>")
@require_auth
@require_roles(*STAFF_ROLES, action="update cases")
def update_case_route(ref: str):
    """
    Update a case.

    Body may carry case fields, a status and grant fields (top level or
    nested under "grant"). Everything is permission checked before any
    write, and committed together.
    """
    try:
        payload = request.get_json(silent=True)
        applicant = case_service.update_case(g.actor, ref, payload)
        return jsonify(case_service.case_detail(applicant))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update case")


@applicants_bp.delete("/<ref>")
@require_auth
@require_roles(Role.ADMIN, action="delete cases")
def delete_case_route(ref: str):
    try:
        case_service.delete_case(g.actor, ref)
        return jsonify({"message": "Case deleted"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to delete case")


@applicants_bp.post("/<ref>/documents")
@require_staff_or_applicant
def add_documents_route(ref: str):
    """
    Append files (multipart "documents") to a case.

    Staff need caseworker or admin; an applicant may only upload to their own case.
    """
    if not g.actor.is_applicant and g.actor.role not in DOCUMENT_WRITE_ROLES:
        return jsonify({"error": "Only caseworkers and admins can upload case documents"}), 403

    try:
        documents, errors = case_service.add_documents(g.actor, ref, request.files.getlist("documents"))
        return jsonify({
            "documents": [d.to_dict() for d in documents],
            "uploadErrors": errors,
        }), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to upload documents")


@applicants_bp.delete("/<ref>/documents/<int:document_id>")
@require_auth
@require_roles(*DOCUMENT_WRITE_ROLES, action="delete case documents")
def delete_document_route(ref: str, document_id: int):
    try:
        case_service.delete_document(g.actor, ref, document_id)
        return jsonify({"message": "Document deleted"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to delete document")
