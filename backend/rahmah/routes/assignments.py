# Overview: Flask API routes for case assignments.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import Role
from ..services import assignment_service


assignments_bp = Blueprint("assignments", __name__, url_prefix="/api/case-assignments")


@assignments_bp.post("")
@require_auth
@require_roles(Role.ADMIN, action="assign cases")
def create_assignment_route():
    """
    Body: applicantId (or caseId), assignedTo, priority, assignmentNotes.

    The caseworker is emailed about the new assignment.
    """
    try:
        assignment = assignment_service.create_assignment(g.actor, request.get_json(silent=True))
        return jsonify(assignment.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create assignment")


@assignments_bp.get("")
@require_auth
@require_roles(Role.ADMIN, Role.CASEWORKER, action="view assignments")
def list_assignments_route():
    assignments = assignment_service.list_assignments(g.actor, request.args.get("status"))
    return jsonify({"assignments": [a.to_dict() for a in assignments]})


@assignments_bp.post("/<int:assignment_id>/accept")
@require_auth
@require_roles(Role.CASEWORKER, action="accept assignments")
def accept_assignment_route(assignment_id: int):
    try:
        assignment = assignment_service.accept_assignment(g.actor, assignment_id)
        return jsonify(assignment.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to accept assignment")
