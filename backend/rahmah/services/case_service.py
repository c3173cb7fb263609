# Overview: Service-layer operations for cases; intake, role-gated updates, listing, documents and magic links.

"""
Case Workflow Service

INTAKE (public):
- Tenant resolved from tenantSlug (DEFAULT_TENANT_SLUG when absent)
- caseId = CASE-<YYYYMMDD>-<6 chars [0-9A-Z]>, regenerated until unused
- A present email must not belong to any existing case (ConflictError)
- skipEmail / isOldCase: stored as is_old_case and no email is queued
- Otherwise the applicant gets a confirmation with a portal magic link and
  ADMIN_EMAIL plus the tenant address get a summary

UPDATE (staff, PUT):
- Permission decision first, on exactly what the body asks to change:
  status, case-data fields, and grant fields (top level or nested `grant`)
- Then validation, then the mutation, grant upsert, status mirror onto the
  grant and side-effect outbox rows, committed together

Read-only echoes in a PUT body (id, caseId, documents, timestamps...) are
accepted and ignored so clients can send back what they fetched.
"""

import json
import secrets
import string

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Applicant,
    CaseDocument,
    DocumentAudit,
    GrantPaymentDocument,
    PaymentRecord,
)
from ..permissions import (
    ActorContext,
    CASE_STATUSES,
    GRANT_FIELDS,
    GRANT_FIELD_ALIASES,
    GRANT_STATUSES,
    CaseStatus,
    Role,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_bool,
    parse_int,
    require_choice,
    validate_payload,
)
from . import grant_service, notification_service, permission_service, session_service, storage_service, workflow_service
from .auth_service import normalize_email
from .tenant_service import TenantAccessError, get_tenant_by_slug, require_applicant_in_tenant
from rahmah.time_utils import utcnow


CASE_ID_ALPHABET = string.digits + string.ascii_uppercase
CASE_ID_SUFFIX_LENGTH = 6

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


CASE_FIELD_MAP = {
    "firstName": "first_name",
    "lastName": "last_name",
    "streetAddress": "street_address",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "gender": "gender",
    "dateOfBirth": "date_of_birth",
    "mobilePhone": "mobile_phone",
    "homePhone": "home_phone",
    "email": "email",
    "legalStatus": "legal_status",
    "referredBy": "referred_by",
    "referrerPhone": "referrer_phone",
    "employmentStatus": "employment_status",
    "dependentsInfo": "dependents_info",
    "totalMonthlyIncome": "total_monthly_income",
    "incomeSources": "income_sources",
    "rentMortgage": "rent_mortgage",
    "utilities": "utilities",
    "food": "food",
    "otherExpenses": "other_expenses",
    "totalDebts": "total_debts",
    "requestType": "request_type",
    "amountRequested": "amount_requested",
    "whyApplying": "why_applying",
    "circumstances": "circumstances",
    "previousZakat": "previous_zakat",
    "zakatResourceSource": "zakat_resource_source",
    "reference1": "reference1",
    "reference2": "reference2",
}

INTAKE_POLICY = ModelValidationPolicy(
    writable_fields=set(CASE_FIELD_MAP),
    field_map=CASE_FIELD_MAP,
    required_on_create={"firstName", "lastName", "mobilePhone"},
    ignored_fields={"tenantSlug", "skipEmail", "isOldCase", "documents", "status"},
)

UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(CASE_FIELD_MAP),
    field_map=CASE_FIELD_MAP,
    ignored_fields={
        "id", "caseId", "tenantId", "documents", "isOldCase",
        "createdAt", "updatedAt", "status", "grant", "skipEmail",
    },
)

REFERENCE_KEYS = ("fullName", "phoneNumber", "email", "relationship")


# -- HELPERS --

def _random_suffix() -> str:
    return "".join(secrets.choice(CASE_ID_ALPHABET) for _ in range(CASE_ID_SUFFIX_LENGTH))


def generate_case_id() -> str:
    """CASE-YYYYMMDD-XXXXXX not present on any existing case (all tenants)."""
    date_part = utcnow().strftime("%Y%m%d")
    while True:
        candidate = f"CASE-{date_part}-{_random_suffix()}"
        taken = db.session.query(Applicant.id).filter_by(case_id=candidate).first()
        if not taken:
            return candidate


def _parse_reference(value, name: str):
    if value in (None, ""):
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValidationError(f"{name} must be a JSON object")
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object")
    return {k: value.get(k) for k in REFERENCE_KEYS if value.get(k) not in (None, "")}


def prepare_case_payload(payload: dict) -> dict:
    """Normalize references and email before column validation."""
    data = dict(payload)
    for name in ("reference1", "reference2"):
        if name in data:
            data[name] = _parse_reference(data[name], name)
    if "email" in data:
        data["email"] = normalize_email(data["email"]) if data["email"] not in (None, "") else None
    return data


def email_taken(email: str | None, exclude_id: int | None = None) -> bool:
    if not email:
        return False
    query = db.session.query(Applicant.id).filter(Applicant.email == email)
    if exclude_id is not None:
        query = query.filter(Applicant.id != exclude_id)
    return query.first() is not None


def _audit_document(applicant: Applicant, name: str, action: str, ctx: ActorContext | None) -> None:
    is_staff = ctx is not None and not ctx.is_applicant
    db.session.add(DocumentAudit(
        tenant_id=applicant.tenant_id,
        applicant_id=applicant.id,
        document_name=name,
        action=action,
        actor_type="caseworker" if is_staff else "applicant",
        actor_user_id=ctx.user_id if is_staff else None,
    ))


def _attach_documents(applicant: Applicant, stored, ctx: ActorContext | None) -> list[CaseDocument]:
    is_staff = ctx is not None and not ctx.is_applicant
    documents = []
    for item in stored:
        doc = CaseDocument(
            filename=item.stored_name,
            original_name=item.original_name,
            mime_type=item.mime_type,
            size=item.size,
            url=item.url,
            uploaded_by="caseworker" if is_staff else "applicant",
        )
        applicant.documents.append(doc)
        _audit_document(applicant, item.original_name, "uploaded", ctx)
        documents.append(doc)
    return documents


def _discard_files(stored) -> None:
    for item in stored:
        storage_service.delete_stored(item.stored_name)


def _summary_view(applicant: Applicant) -> dict:
    return {
        "id": applicant.id,
        "case_id": applicant.case_id,
        "first_name": applicant.first_name,
        "full_name": applicant.full_name,
        "email": applicant.email,
        "mobile_phone": applicant.mobile_phone,
        "request_type": applicant.request_type,
        "amount_requested": applicant.amount_requested,
        "document_count": len(applicant.documents),
    }


# -- INTAKE --

def _queue_intake_notifications(applicant: Applicant, tenant) -> None:
    case = _summary_view(applicant)

    if applicant.email:
        token = session_service.issue_applicant_token(applicant)
        notification_service.enqueue(
            "intake_confirmation",
            applicant.email,
            "Your Rahmah Application Was Received",
            {
                "case": case,
                "tenant_name": tenant.name,
                "portal_url": session_service.portal_url(token),
            },
            tenant_id=tenant.id,
            applicant_id=applicant.id,
        )

    base_url = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    notification_service.enqueue_many(
        "intake_admin",
        [current_app.config.get("ADMIN_EMAIL"), tenant.email],
        f"New Application: {applicant.case_id}",
        {
            "case": case,
            "tenant_name": tenant.name,
            "case_url": f"{base_url}/admin/cases/{applicant.id}",
        },
        tenant_id=tenant.id,
        applicant_id=applicant.id,
    )


def intake(payload: dict, uploads=()) -> tuple[Applicant, list[str]]:
    """
    Create a case from a public submission.

    Returns (applicant, upload_errors). Invalid files are skipped and
    reported; they never fail the submission.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    tenant = get_tenant_by_slug(payload.get("tenantSlug"))
    silent = parse_bool(payload.get("skipEmail", False)) or parse_bool(payload.get("isOldCase", False))

    data = prepare_case_payload(payload)
    patch = validate_payload(model=Applicant, payload=data, policy=INTAKE_POLICY, partial=False)

    if email_taken(patch.get("email")):
        raise ConflictError("An application with this email already exists")

    stored, upload_errors = storage_service.store_uploads(uploads)

    try:
        applicant = Applicant(
            tenant_id=tenant.id,
            case_id=generate_case_id(),
            status=CaseStatus.PENDING,
            is_old_case=silent,
            **patch,
        )
        db.session.add(applicant)
        db.session.flush()

        _attach_documents(applicant, stored, None)

        if not silent:
            _queue_intake_notifications(applicant, tenant)

        db.session.commit()
    except Exception:
        db.session.rollback()
        _discard_files(stored)
        raise

    current_app.logger.info("Case %s created for tenant %s", applicant.case_id, tenant.slug)
    return applicant, upload_errors


def check_email_exists(email: str | None) -> bool:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")
    return email_taken(email)


# -- READS --

def list_cases(ctx: ActorContext, status=None, q=None, page=None, limit=None) -> dict:
    page = parse_int(page, "page") or 1
    limit = parse_int(limit, "limit") or DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("page must be >= 1")
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    query = db.session.query(Applicant).filter(Applicant.tenant_id == ctx.tenant_id)

    if status:
        require_choice(status, CASE_STATUSES, "status")
        query = query.filter(Applicant.status == status)

    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            Applicant.first_name.ilike(pattern),
            Applicant.last_name.ilike(pattern),
            Applicant.email.ilike(pattern),
            Applicant.mobile_phone.ilike(pattern),
            Applicant.case_id.ilike(pattern),
        ))

    total = query.count()
    items = (
        query.order_by(Applicant.created_at.desc(), Applicant.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [a.to_summary_dict() for a in items],
        "total": total,
        "page": page,
        "limit": limit,
    }


def case_detail(applicant: Applicant) -> dict:
    data = applicant.to_dict()
    grant = grant_service.find_grant(applicant.id)
    data["grant"] = grant.to_dict() if grant else None
    return data


def get_case(ctx: ActorContext, ref) -> dict:
    return case_detail(require_applicant_in_tenant(ref, ctx.tenant_id))


def portal_summary(applicant: Applicant) -> dict:
    """What an applicant sees about their own case: no staff identities, no internal notes."""
    audits = (
        db.session.query(DocumentAudit)
        .filter_by(applicant_id=applicant.id)
        .order_by(DocumentAudit.created_at.desc(), DocumentAudit.id.desc())
        .all()
    )
    return {
        "case": applicant.to_dict(),
        "documentAudit": [a.to_dict() for a in audits],
    }


# -- UPDATE --

def _split_grant_fields(body: dict) -> dict:
    """Pop grant fields (top level or nested `grant`) off a case body; nested wins."""
    top_level = {}
    for key in list(GRANT_FIELDS) + list(GRANT_FIELD_ALIASES):
        if key in body:
            top_level[key] = body.pop(key)

    nested = body.pop("grant", None)
    if nested is not None and not isinstance(nested, dict):
        raise ValidationError("grant must be an object")

    fields = grant_service.canonicalize_grant_fields(top_level)
    fields.update(grant_service.canonicalize_grant_fields(nested or {}))
    return fields


def update_case(ctx: ActorContext, ref, payload: dict) -> Applicant:
    """
    Apply a staff PUT to a case.

    Raises TenantAccessError, ValidationError (400), PermissionDeniedError
    (403) or ConflictError (409); nothing is persisted on error.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    applicant = require_applicant_in_tenant(ref, ctx.tenant_id)

    body = dict(payload)
    grant_fields = _split_grant_fields(body)
    status = body.get("status")
    if status is not None:
        require_choice(status, CASE_STATUSES, "status")

    case_fields = [k for k in body if k not in UPDATE_POLICY.ignored_fields]

    permission_service.require_case_update(
        ctx,
        status=status,
        case_fields=case_fields,
        grant_fields=grant_fields.keys(),
    )

    data = prepare_case_payload(body)
    patch = validate_payload(model=Applicant, payload=data, policy=UPDATE_POLICY, partial=True)
    parsed_grant = grant_service.parse_grant_fields(grant_fields)

    if email_taken(patch.get("email"), exclude_id=applicant.id):
        raise ConflictError("Another application already uses this email")

    try:
        for column, value in patch.items():
            setattr(applicant, column, value)

        previous_status = applicant.status
        if status is not None:
            applicant.status = status

        if grant_fields:
            grant, _, _ = grant_service.apply_grant_fields(ctx, applicant, parsed_grant)
        else:
            grant = grant_service.find_grant(applicant.id)

        if grant is not None and applicant.status != previous_status and applicant.status in GRANT_STATUSES:
            grant.status = applicant.status
            grant.updated_by_id = ctx.user_id

        workflow_service.apply_status_side_effects(ctx, applicant, previous_status, applicant.status)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if status is not None and status != previous_status:
        current_app.logger.info(
            "Case %s status %s -> %s by user %s", applicant.case_id, previous_status, status, ctx.user_id
        )
    return applicant


# -- DELETE --

def stored_files(applicant: Applicant) -> list[str]:
    """Stored names of every file uploaded against a case."""
    names = [d.filename for d in applicant.documents]
    for grant in applicant.grants:
        names.extend(d.filename for d in grant.payment_documents)
        names.extend(p.proof_filename for p in grant.payments if p.proof_filename)
    return names


def delete_case(ctx: ActorContext, ref) -> None:
    """Hard delete with every dependent row and stored file (admin only)."""
    permission_service.require_role(ctx, (Role.ADMIN,), action="delete cases")
    applicant = require_applicant_in_tenant(ref, ctx.tenant_id)

    stored_names = stored_files(applicant)

    case_id = applicant.case_id
    try:
        db.session.query(DocumentAudit).filter_by(applicant_id=applicant.id).delete()
        db.session.delete(applicant)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    for name in stored_names:
        storage_service.delete_stored(name)

    current_app.logger.info("Case %s deleted by user %s", case_id, ctx.user_id)


# -- DOCUMENTS --

def _case_for_actor(ctx: ActorContext, ref) -> Applicant:
    applicant = require_applicant_in_tenant(ref, ctx.tenant_id)
    if ctx.is_applicant and applicant.id != ctx.applicant_id:
        raise TenantAccessError("Applicant not found")
    return applicant


def add_documents(ctx: ActorContext, ref, uploads) -> tuple[list[CaseDocument], list[str]]:
    """Append files to a case. Staff or the applicant themself."""
    applicant = _case_for_actor(ctx, ref)

    uploads = [u for u in uploads if u and u.filename]
    if not uploads:
        raise ValidationError("At least one file is required")

    stored, errors = storage_service.store_uploads(uploads)
    if not stored:
        raise ValidationError("; ".join(errors) or "No valid files uploaded")

    try:
        documents = _attach_documents(applicant, stored, ctx)
        db.session.commit()
    except Exception:
        db.session.rollback()
        _discard_files(stored)
        raise

    return documents, errors


def delete_document(ctx: ActorContext, ref, document_id: int) -> None:
    applicant = _case_for_actor(ctx, ref)
    doc = db.session.query(CaseDocument).filter_by(id=document_id, applicant_id=applicant.id).first()
    if not doc:
        raise NotFoundError("Document not found")

    stored_name = doc.filename
    try:
        _audit_document(applicant, doc.original_name, "deleted", ctx)
        applicant.documents.remove(doc)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    storage_service.delete_stored(stored_name)


def resolve_document(ctx: ActorContext, stored_name: str) -> tuple[str, str]:
    """
    Authorize a download by stored name.

    Applicants may read their own case documents only; staff may read any
    case document, payment document or payment proof in their tenant.
    Returns (stored_name, mime_type).
    """
    doc = db.session.query(CaseDocument).filter_by(filename=stored_name).first()
    if doc:
        owner = doc.applicant
        if owner.tenant_id != ctx.tenant_id or (ctx.is_applicant and owner.id != ctx.applicant_id):
            raise NotFoundError("Document not found")
        return doc.filename, doc.mime_type

    if ctx.is_applicant:
        raise NotFoundError("Document not found")

    payment_doc = db.session.query(GrantPaymentDocument).filter_by(filename=stored_name).first()
    if payment_doc and payment_doc.grant.tenant_id == ctx.tenant_id:
        return payment_doc.filename, payment_doc.mime_type

    payment = db.session.query(PaymentRecord).filter_by(proof_filename=stored_name).first()
    if payment and payment.tenant_id == ctx.tenant_id:
        return payment.proof_filename, storage_service.mime_type_for(payment.proof_filename)

    raise NotFoundError("Document not found")


# -- MAGIC LINKS --

def request_login_link(email: str | None) -> None:
    """Email a fresh portal link if a case has this address. Silent either way."""
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")

    applicant = db.session.query(Applicant).filter_by(email=email).first()
    if not applicant:
        current_app.logger.info("Login link requested for unknown email")
        return

    try:
        token = session_service.issue_applicant_token(applicant)
        notification_service.enqueue(
            "magic_link",
            applicant.email,
            "Your Rahmah Application Portal Link",
            {
                "case": _summary_view(applicant),
                "portal_url": session_service.portal_url(token),
                "ttl_days": current_app.config.get("MAGIC_LINK_TTL_DAYS", 30),
            },
            tenant_id=applicant.tenant_id,
            applicant_id=applicant.id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
