# Overview: Flask API routes for case notes; approval notes carry the approver's recommended amount.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import NOTE_READ_ROLES, NOTE_WRITE_ROLES
from ..services import note_service
from ..validation import parse_bool


notes_bp = Blueprint("notes", __name__, url_prefix="/api/cases")


@notes_bp.get("/<case_ref>/notes")
@require_auth
@require_roles(*NOTE_READ_ROLES, action="view case notes")
def list_notes_route(case_ref: str):
    """
    Notes for a case, newest first.

    Query params:
    - includeInternal: false to return applicant-visible notes only
    """
    include_internal = parse_bool(request.args.get("includeInternal", "true"))
    try:
        notes = note_service.list_notes(g.actor, case_ref, include_internal=include_internal)
        return jsonify({"notes": [n.to_dict() for n in notes], "total": len(notes)})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@notes_bp.post("/<case_ref>/notes")
@require_auth
@require_roles(*NOTE_WRITE_ROLES, action="create case notes")
def create_note_route(case_ref: str):
    try:
        note = note_service.create_note(g.actor, case_ref, request.get_json(silent=True))
        return jsonify(note.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create note")


@notes_bp.patch("/<case_ref>/notes/<int:note_id>")
@require_auth
@require_roles(*NOTE_WRITE_ROLES, action="edit case notes")
def update_note_route(case_ref: str, note_id: int):
    try:
        note = note_service.update_note(g.actor, case_ref, note_id, request.get_json(silent=True))
        return jsonify(note.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update note")


@notes_bp.delete("/<case_ref>/notes/<int:note_id>")
@require_auth
@require_roles(*NOTE_WRITE_ROLES, action="delete case notes")
def delete_note_route(case_ref: str, note_id: int):
    try:
        note_service.delete_note(g.actor, case_ref, note_id)
        return jsonify({"message": "Note deleted"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to delete note")
