# Overview: Service-layer operations for caseworker assignments; admins assign, the assignee accepts.

from flask import current_app

from ..extensions import db
from ..models import CaseAssignment, User
from ..permissions import ActorContext, ASSIGNMENT_PRIORITIES, Role
from ..validation import ValidationError, parse_int, require_choice
from . import notification_service, permission_service
from .tenant_service import require_applicant_in_tenant, require_in_tenant
from rahmah.time_utils import utcnow


def create_assignment(ctx: ActorContext, payload: dict) -> CaseAssignment:
    """
    Assign a case to a caseworker (admin only).

    The assignee must be an active caseworker of the caller's tenant.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    permission_service.require_role(ctx, (Role.ADMIN,), action="assign cases")

    case_ref = payload.get("applicantId") or payload.get("caseId")
    if case_ref in (None, ""):
        raise ValidationError("applicantId is required")
    assignee_id = parse_int(payload.get("assignedTo"), "assignedTo")
    if assignee_id is None:
        raise ValidationError("assignedTo is required")

    applicant = require_applicant_in_tenant(case_ref, ctx.tenant_id)
    assignee = require_in_tenant(db.session.get(User, assignee_id), ctx.tenant_id, "User")
    if assignee.role != Role.CASEWORKER or not assignee.is_active:
        raise ValidationError("Cases can only be assigned to active caseworkers")

    priority = require_choice(payload.get("priority") or "medium", ASSIGNMENT_PRIORITIES, "priority")
    notes = (payload.get("assignmentNotes") or "").strip() or None

    try:
        assignment = CaseAssignment(
            tenant_id=ctx.tenant_id,
            applicant=applicant,
            case_id=applicant.case_id,
            assigned_to_id=assignee.id,
            assigned_by_id=ctx.user_id,
            status="pending",
            priority=priority,
            assignment_notes=notes,
        )
        db.session.add(assignment)

        queued = notification_service.enqueue(
            "case_assignment",
            assignee.email,
            f"New Case Assigned: {applicant.case_id}",
            {
                "caseworker_name": assignee.name,
                "assigned_by": ctx.name,
                "case": {
                    "id": applicant.id,
                    "case_id": applicant.case_id,
                    "full_name": applicant.full_name,
                    "status": applicant.status,
                },
                "priority": priority,
                "assignment_notes": notes,
            },
            tenant_id=ctx.tenant_id,
            applicant_id=applicant.id,
        )
        if queued is not None:
            assignment.notification_sent_at = utcnow()

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Case %s assigned to user %s", applicant.case_id, assignee.id)
    return assignment


def list_assignments(ctx: ActorContext, status: str | None = None) -> list[CaseAssignment]:
    """Admins see the tenant's assignments; caseworkers only their own."""
    query = db.session.query(CaseAssignment).filter(CaseAssignment.tenant_id == ctx.tenant_id)
    if ctx.role == Role.CASEWORKER:
        query = query.filter(CaseAssignment.assigned_to_id == ctx.user_id)
    if status:
        query = query.filter(CaseAssignment.status == status)
    return query.order_by(CaseAssignment.created_at.desc(), CaseAssignment.id.desc()).all()


def accept_assignment(ctx: ActorContext, assignment_id: int) -> CaseAssignment:
    assignment = require_in_tenant(db.session.get(CaseAssignment, assignment_id), ctx.tenant_id, "Assignment")

    if assignment.assigned_to_id != ctx.user_id:
        permission_service.deny(ctx, "ROLE_DENIED", "Only the assigned caseworker may accept this assignment")

    if assignment.status not in ("pending", "accepted"):
        raise ValidationError(f"Assignment is already {assignment.status}")

    assignment.status = "active"
    assignment.accepted_at = utcnow()
    db.session.commit()
    return assignment
