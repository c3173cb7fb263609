# Overview: Service-layer operations for grants; upsert with field permissions, case status sync and payment proofs.

"""
Grant Upsert

One grant per case, created lazily on the first staff grant action and then
updated in place.

- Creation needs grantedAmount or numberOfMonths (either alone is enough)
- status defaults to Pending on creation when omitted or not a grant status;
  on update an omitted / unknown status leaves the stored status alone
- Legacy payload names (amountGranted, notes) are accepted and mapped to the
  canonical names; only canonical names are ever stored or returned
- A grant that ends up Approved pulls its case to Approved, with the same
  side effects as a direct status change
- Field rights follow the role tables; a supplied status is allowed exactly
  when the role may set the same case status
"""

from decimal import Decimal

from ..extensions import db
from ..models import Applicant, Grant, GrantPaymentDocument
from ..permissions import (
    ActorContext,
    CaseStatus,
    GRANT_FIELDS,
    GRANT_FIELD_ALIASES,
    GRANT_STATUSES,
)
from ..validation import NotFoundError, ValidationError, parse_amount, parse_bool, parse_int, amount_to_json
from . import notification_service, permission_service, storage_service, workflow_service
from .tenant_service import require_applicant_in_tenant, require_grant_in_tenant


def canonicalize_grant_fields(payload: dict) -> dict:
    """
    Pick grant fields out of a payload under their canonical names.

    When a legacy name and its canonical counterpart are both present the
    canonical value wins; the legacy key never survives.
    """
    fields = {}
    for legacy, canonical in GRANT_FIELD_ALIASES.items():
        if legacy in payload:
            fields[canonical] = payload[legacy]
    for name in GRANT_FIELDS:
        if name in payload:
            fields[name] = payload[name]
    return fields


def parse_grant_fields(fields: dict) -> dict:
    """Canonical API names -> validated column values."""
    parsed = {}
    if "grantedAmount" in fields:
        parsed["granted_amount"] = parse_amount(fields["grantedAmount"], "grantedAmount")
    if "numberOfMonths" in fields:
        months = parse_int(fields["numberOfMonths"], "numberOfMonths")
        if months is not None and months < 1:
            raise ValidationError("numberOfMonths must be >= 1")
        parsed["number_of_months"] = months
    if "remarks" in fields:
        remarks = fields["remarks"]
        parsed["remarks"] = str(remarks).strip() if remarks not in (None, "") else None
    return parsed


def find_grant(applicant_id: int) -> Grant | None:
    """The case's grant; the newest wins if historical data holds several."""
    return (
        db.session.query(Grant)
        .filter_by(applicant_id=applicant_id)
        .order_by(Grant.id.desc())
        .first()
    )


def apply_grant_fields(
    ctx: ActorContext,
    applicant: Applicant,
    fields: dict,
    status: str | None = None,
) -> tuple[Grant, bool, str | None]:
    """
    Create or update the case's grant inside the current transaction.

    `fields` are parsed column values; `status` is a valid grant status or None.
    Returns (grant, created, previous_status).
    """
    grant = find_grant(applicant.id)
    created = grant is None

    if created:
        if fields.get("granted_amount") is None and fields.get("number_of_months") is None:
            raise ValidationError("Either grantedAmount or numberOfMonths is required")
        grant = Grant(
            tenant_id=applicant.tenant_id,
            applicant=applicant,
            status=status or CaseStatus.PENDING,
            created_by_id=ctx.user_id,
        )
        db.session.add(grant)
        previous_status = None
    else:
        previous_status = grant.status
        if status:
            grant.status = status

    for column, value in fields.items():
        setattr(grant, column, value)
    grant.updated_by_id = ctx.user_id

    return grant, created, previous_status


def sync_case_to_grant(ctx: ActorContext, applicant: Applicant, grant: Grant) -> bool:
    """Pull the case to Approved when its grant is Approved. Returns True if it moved."""
    if grant.status != CaseStatus.APPROVED or applicant.status == CaseStatus.APPROVED:
        return False

    previous = applicant.status
    applicant.status = CaseStatus.APPROVED
    workflow_service.apply_status_side_effects(ctx, applicant, previous, CaseStatus.APPROVED)
    return True


def notify_grant_status(applicant: Applicant, grant: Grant):
    return notification_service.enqueue(
        "grant_status",
        applicant.email,
        f"Your Rahmah Grant - {grant.status}",
        {
            "case": {"case_id": applicant.case_id, "first_name": applicant.first_name},
            "grant": {
                "status": grant.status,
                "granted_amount": amount_to_json(grant.granted_amount),
                "number_of_months": grant.number_of_months,
                "remarks": grant.remarks,
            },
        },
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
    )


def upsert_grant(ctx: ActorContext, payload: dict) -> tuple[Grant, bool]:
    """
    POST /api/grants.

    Returns (grant, created). Raises ValidationError, PermissionDeniedError
    or TenantAccessError before anything is written.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    applicant_ref = payload.get("applicantId")
    if applicant_ref in (None, ""):
        raise ValidationError("applicantId is required")
    applicant = require_applicant_in_tenant(applicant_ref, ctx.tenant_id)

    raw_fields = canonicalize_grant_fields(payload)
    raw_status = payload.get("status")
    status = raw_status if raw_status in GRANT_STATUSES else None
    skip_email = parse_bool(payload.get("skipEmail", False))

    permission_service.require_case_update(ctx, grant_fields=raw_fields.keys())
    if status:
        permission_service.require_grant_status(ctx, status)

    fields = parse_grant_fields(raw_fields)

    try:
        grant, created, previous_status = apply_grant_fields(ctx, applicant, fields, status)
        case_moved = sync_case_to_grant(ctx, applicant, grant)

        status_changed = created or grant.status != previous_status
        if status_changed and not case_moved and not skip_email and not applicant.is_old_case:
            notify_grant_status(applicant, grant)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return grant, created


def list_grants(ctx: ActorContext, applicant_ref=None) -> dict:
    query = db.session.query(Grant).filter(Grant.tenant_id == ctx.tenant_id)
    if applicant_ref not in (None, ""):
        applicant = require_applicant_in_tenant(applicant_ref, ctx.tenant_id)
        query = query.filter(Grant.applicant_id == applicant.id)

    grants = query.order_by(Grant.created_at.desc(), Grant.id.desc()).all()
    total_granted = sum((g.granted_amount or Decimal("0") for g in grants), Decimal("0"))
    return {
        "items": [g.to_dict() for g in grants],
        "total": len(grants),
        "totalGranted": amount_to_json(total_granted),
    }


# -- PAYMENT DOCUMENTS --

def add_payment_documents(ctx: ActorContext, grant_id: int, uploads) -> tuple[list[GrantPaymentDocument], list[str]]:
    """Attach proof-of-payment files; invalid files are reported, not fatal."""
    grant = require_grant_in_tenant(grant_id, ctx.tenant_id)
    uploads = [u for u in uploads if u and u.filename]
    if not uploads:
        raise ValidationError("At least one file is required")

    stored, errors = storage_service.store_uploads(uploads)
    documents = []
    for item in stored:
        doc = GrantPaymentDocument(
            grant=grant,
            filename=item.stored_name,
            original_name=item.original_name,
            mime_type=item.mime_type,
            size=item.size,
            url=item.url,
            uploaded_by_id=ctx.user_id,
        )
        db.session.add(doc)
        documents.append(doc)

    db.session.commit()
    return documents, errors


def list_payment_documents(ctx: ActorContext, grant_id: int) -> list[GrantPaymentDocument]:
    grant = require_grant_in_tenant(grant_id, ctx.tenant_id)
    return list(grant.payment_documents)


def delete_payment_document(ctx: ActorContext, grant_id: int, document_id: int) -> None:
    grant = require_grant_in_tenant(grant_id, ctx.tenant_id)
    doc = db.session.query(GrantPaymentDocument).filter_by(id=document_id, grant_id=grant.id).first()
    if not doc:
        raise NotFoundError("Payment document not found")

    stored_name = doc.filename
    db.session.delete(doc)
    db.session.commit()
    storage_service.delete_stored(stored_name)
