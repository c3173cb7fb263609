# Overview: Service-layer operations for case status transitions; decides who is notified and with what.

"""
Case Status Side Effects

WHY: A status change is one user action but fans out to several audiences.
This module is the single place that decides, for a transition already
permitted by the role tables, which emails are queued and what they carry.

RULES (only when the status actually changes):
- -> Approved by an approver: every active treasurer in the tenant is told
  payment is required, with the latest approval-note amount and the five
  most recent approval notes
- -> Approved / Rejected: the applicant (if they have an email) gets a
  status email; the Approved variant carries the latest approval-note amount
  when one exists and omits the amount block otherwise
- -> Rejected: caseworkers with an active assignment on the case get the
  rejection with notes from the last 24 hours (max 10); with no active
  assignment every active caseworker in the tenant is told instead

TRANSACTIONS: functions here only add outbox rows to the session. The caller
owns the commit, so notifications and the state change land together.
"""

from datetime import timedelta

from ..extensions import db
from ..models import Applicant, CaseAssignment, CaseNote, User
from ..permissions import ActorContext, ACTIVE_ASSIGNMENT_STATUSES, CaseStatus, Role
from . import notification_service
from rahmah.time_utils import utcnow
from rahmah.validation import amount_to_json


RECENT_APPROVAL_NOTES = 5
REJECTION_NOTE_WINDOW = timedelta(hours=24)
REJECTION_NOTE_LIMIT = 10


def _approval_notes_query(applicant_id: int):
    return (
        db.session.query(CaseNote)
        .filter(
            CaseNote.applicant_id == applicant_id,
            CaseNote.note_type == "approval_note",
        )
        .order_by(CaseNote.created_at.desc(), CaseNote.id.desc())
    )


def latest_approval_note(applicant_id: int) -> CaseNote | None:
    """Most recent approval note that carries an amount; ties go to the later id."""
    return (
        _approval_notes_query(applicant_id)
        .filter(CaseNote.approval_amount.isnot(None))
        .first()
    )


def recent_approval_notes(applicant_id: int, limit: int = RECENT_APPROVAL_NOTES) -> list[CaseNote]:
    return _approval_notes_query(applicant_id).limit(limit).all()


def recent_case_notes(applicant_id: int) -> list[CaseNote]:
    since = utcnow() - REJECTION_NOTE_WINDOW
    return (
        db.session.query(CaseNote)
        .filter(CaseNote.applicant_id == applicant_id, CaseNote.created_at >= since)
        .order_by(CaseNote.created_at.desc(), CaseNote.id.desc())
        .limit(REJECTION_NOTE_LIMIT)
        .all()
    )


def active_users(tenant_id: int, role: str) -> list[User]:
    return (
        db.session.query(User)
        .filter_by(tenant_id=tenant_id, role=role, is_active=True)
        .order_by(User.id)
        .all()
    )


def assigned_caseworkers(applicant_id: int) -> list[User]:
    """Active caseworkers holding an active assignment on the case."""
    return (
        db.session.query(User)
        .join(CaseAssignment, CaseAssignment.assigned_to_id == User.id)
        .filter(
            CaseAssignment.applicant_id == applicant_id,
            CaseAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
            User.role == Role.CASEWORKER,
            User.is_active.is_(True),
        )
        .distinct()
        .order_by(User.id)
        .all()
    )


def _note_view(note: CaseNote) -> dict:
    return {
        "author": note.author_name,
        "title": note.title,
        "content": note.content,
        "note_type": note.note_type,
        "amount": amount_to_json(note.approval_amount),
        "created_at": note.created_at,
    }


def _case_view(applicant: Applicant) -> dict:
    return {
        "id": applicant.id,
        "case_id": applicant.case_id,
        "first_name": applicant.first_name,
        "full_name": applicant.full_name,
        "amount_requested": amount_to_json(applicant.amount_requested),
        "status": applicant.status,
    }


def notify_treasurers_payment_required(ctx: ActorContext, applicant: Applicant) -> list:
    note = latest_approval_note(applicant.id)
    treasurers = active_users(applicant.tenant_id, Role.TREASURER)
    return notification_service.enqueue_many(
        "treasurer_payment_required",
        [t.email for t in treasurers],
        f"Case Approved - Payment Required ({applicant.case_id})",
        {
            "case": _case_view(applicant),
            "approver_name": ctx.name,
            "approval_amount": amount_to_json(note.approval_amount) if note else None,
            "approval_notes": [_note_view(n) for n in recent_approval_notes(applicant.id)],
        },
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
    )


def notify_applicant_status(applicant: Applicant, status: str):
    if not applicant.email:
        return None

    approved = status == CaseStatus.APPROVED
    note = latest_approval_note(applicant.id) if approved else None
    template = "status_approved" if approved else "status_rejected"
    subject = (
        "Your Rahmah Application - Approved"
        if approved else "Your Rahmah Application - Update"
    )
    return notification_service.enqueue(
        template,
        applicant.email,
        subject,
        {
            "case": _case_view(applicant),
            "approval_amount": amount_to_json(note.approval_amount) if note else None,
        },
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
    )


def notify_caseworkers_rejected(ctx: ActorContext, applicant: Applicant) -> list:
    recipients = assigned_caseworkers(applicant.id)
    if not recipients:
        recipients = active_users(applicant.tenant_id, Role.CASEWORKER)

    return notification_service.enqueue_many(
        "caseworker_case_rejected",
        [u.email for u in recipients],
        f"Case Rejected ({applicant.case_id})",
        {
            "case": _case_view(applicant),
            "rejected_by": ctx.name,
            "recent_notes": [_note_view(n) for n in recent_case_notes(applicant.id)],
        },
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
    )


def apply_status_side_effects(
    ctx: ActorContext,
    applicant: Applicant,
    previous_status: str | None,
    new_status: str,
) -> None:
    """
    Queue every notification owed for `previous_status -> new_status`.

    Call after the new status is set on `applicant` and before commit.
    """
    if previous_status == new_status:
        return

    if new_status == CaseStatus.APPROVED and ctx.role == Role.APPROVER:
        notify_treasurers_payment_required(ctx, applicant)

    if new_status in (CaseStatus.APPROVED, CaseStatus.REJECTED):
        notify_applicant_status(applicant, new_status)

    if new_status == CaseStatus.REJECTED:
        notify_caseworkers_rejected(ctx, applicant)
