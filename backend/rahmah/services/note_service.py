# Overview: Service-layer operations for case notes; approval notes carry the authoritative approved amount.

from ..extensions import db
from ..models import CaseNote
from ..permissions import ActorContext, NOTE_PRIORITIES, NOTE_TYPES, Role
from ..validation import NotFoundError, ValidationError, parse_amount, parse_bool, require_choice
from . import permission_service
from .tenant_service import require_applicant_in_tenant
from rahmah.time_utils import utcnow


APPROVAL_NOTE = "approval_note"
EDITABLE_FIELDS = {"title", "content", "priority", "isResolved", "approvalAmount"}


def _clean_title(value) -> str | None:
    if value in (None, ""):
        return None
    title = str(value).strip()
    if len(title) > 255:
        raise ValidationError("title exceeds max length 255")
    return title or None


def _clean_content(value) -> str:
    content = str(value).strip() if value is not None else ""
    if not content:
        raise ValidationError("content is required")
    return content


def list_notes(ctx: ActorContext, case_ref, include_internal: bool = True) -> list[CaseNote]:
    """Notes for a case, newest first."""
    applicant = require_applicant_in_tenant(case_ref, ctx.tenant_id)
    query = db.session.query(CaseNote).filter(CaseNote.applicant_id == applicant.id)
    if not include_internal:
        query = query.filter(CaseNote.is_internal.is_(False))
    return query.order_by(CaseNote.created_at.desc(), CaseNote.id.desc()).all()


def create_note(ctx: ActorContext, case_ref, payload: dict) -> CaseNote:
    """
    Append a note to a case.

    approval_note is reserved for approvers and is the only type that may
    carry approvalAmount.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    applicant = require_applicant_in_tenant(case_ref, ctx.tenant_id)

    note_type = require_choice(payload.get("noteType") or "internal_note", NOTE_TYPES, "noteType")
    if note_type == APPROVAL_NOTE:
        permission_service.require_role(ctx, (Role.APPROVER,), action="create approval notes")

    amount = None
    if payload.get("approvalAmount") not in (None, ""):
        if note_type != APPROVAL_NOTE:
            raise ValidationError("approvalAmount is only allowed on approval notes")
        amount = parse_amount(payload["approvalAmount"], "approvalAmount")

    note = CaseNote(
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
        author_id=ctx.user_id,
        author_name=ctx.name or ctx.email or "Staff",
        author_email=ctx.email,
        author_role=ctx.role,
        title=_clean_title(payload.get("title")),
        content=_clean_content(payload.get("content")),
        note_type=note_type,
        is_internal=parse_bool(payload.get("isInternal", True)),
        priority=require_choice(payload.get("priority") or "medium", NOTE_PRIORITIES, "priority"),
        approval_amount=amount,
    )
    db.session.add(note)
    db.session.commit()
    return note


def _load_note(ctx: ActorContext, case_ref, note_id: int) -> CaseNote:
    applicant = require_applicant_in_tenant(case_ref, ctx.tenant_id)
    note = db.session.query(CaseNote).filter_by(id=note_id, applicant_id=applicant.id).first()
    if not note:
        raise NotFoundError("Note not found")
    return note


def update_note(ctx: ActorContext, case_ref, note_id: int, payload: dict) -> CaseNote:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    note = _load_note(ctx, case_ref, note_id)
    permission_service.require_author_or_admin(ctx, note.author_id, "edit this note")

    unknown = sorted(set(payload) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    if "approvalAmount" in payload and note.note_type != APPROVAL_NOTE:
        raise ValidationError("approvalAmount is only allowed on approval notes")

    changes = {}
    if "title" in payload:
        changes["title"] = _clean_title(payload["title"])
    if "content" in payload:
        changes["content"] = _clean_content(payload["content"])
    if "priority" in payload:
        changes["priority"] = require_choice(payload["priority"], NOTE_PRIORITIES, "priority")
    if "approvalAmount" in payload:
        changes["approval_amount"] = parse_amount(payload["approvalAmount"], "approvalAmount")

    for column, value in changes.items():
        setattr(note, column, value)
    if "isResolved" in payload:
        resolved = parse_bool(payload["isResolved"])
        if resolved and not note.is_resolved:
            note.resolved_at = utcnow()
            note.resolved_by_id = ctx.user_id
        elif not resolved:
            note.resolved_at = None
            note.resolved_by_id = None
        note.is_resolved = resolved

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return note


def delete_note(ctx: ActorContext, case_ref, note_id: int) -> None:
    note = _load_note(ctx, case_ref, note_id)
    permission_service.require_author_or_admin(ctx, note.author_id, "delete this note")
    db.session.delete(note)
    db.session.commit()
