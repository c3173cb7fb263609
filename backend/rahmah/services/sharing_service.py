# Overview: Service-layer operations for sharing a case read-only with another tenant.

"""
Shared Profiles

A tenant admin may share one of their cases with another active tenant.
The receiving tenant's staff can list and open it; opening records
viewed_at / viewed_by. Only the sharing tenant can revoke a share.

TENANT RULES:
- the case must belong to the sharer's tenant
- a share is visible only to its receiving tenant, and revocable only by
  its sharing tenant; anyone else gets "not found" and the attempt is logged
- one active share per (case, receiving tenant); a repeat is a ConflictError
"""

from flask import current_app

from ..extensions import db
from ..models import SharedProfile, Tenant
from ..permissions import ActorContext
from ..validation import ConflictError, ValidationError, parse_int
from .tenant_service import TenantAccessError, log_cross_tenant_attempt, require_applicant_in_tenant
from rahmah.time_utils import utcnow


def share_case(ctx: ActorContext, payload: dict) -> SharedProfile:
    """
    Body: applicantId (id or caseId), toTenantId, note (optional).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    ref = payload.get("applicantId")
    to_tenant_id = parse_int(payload.get("toTenantId"), "toTenantId")
    if ref in (None, "") or to_tenant_id is None:
        raise ValidationError("applicantId and toTenantId are required")

    applicant = require_applicant_in_tenant(ref, ctx.tenant_id)

    if to_tenant_id == ctx.tenant_id:
        raise ValidationError("A case cannot be shared with its own tenant")
    to_tenant = db.session.get(Tenant, to_tenant_id)
    if not to_tenant or not to_tenant.is_active:
        raise TenantAccessError("Target tenant not found")

    existing = (
        db.session.query(SharedProfile.id)
        .filter_by(applicant_id=applicant.id, to_tenant_id=to_tenant.id, is_active=True)
        .first()
    )
    if existing:
        raise ConflictError("Profile already shared with this tenant")

    share = SharedProfile(
        applicant_id=applicant.id,
        from_tenant_id=ctx.tenant_id,
        to_tenant_id=to_tenant.id,
        shared_by_id=ctx.user_id,
        note=(payload.get("note") or "").strip() or None,
        permissions="read_only",
    )
    db.session.add(share)
    db.session.commit()

    current_app.logger.info(
        "Case %s shared with tenant %s by user %s", applicant.case_id, to_tenant.slug, ctx.user_id
    )
    return share


def list_shares(ctx: ActorContext, direction: str = "incoming") -> list[SharedProfile]:
    """Active shares received by (incoming) or sent from (outgoing) the caller's tenant."""
    if direction not in ("incoming", "outgoing"):
        raise ValidationError("direction must be one of: incoming, outgoing")

    column = SharedProfile.to_tenant_id if direction == "incoming" else SharedProfile.from_tenant_id
    return (
        db.session.query(SharedProfile)
        .filter(column == ctx.tenant_id, SharedProfile.is_active.is_(True))
        .order_by(SharedProfile.created_at.desc(), SharedProfile.id.desc())
        .all()
    )


def _share_for(ctx: ActorContext, share_id: int, *, side: str) -> SharedProfile:
    share = db.session.get(SharedProfile, share_id)
    owner = None
    if share:
        owner = share.to_tenant_id if side == "to" else share.from_tenant_id

    if share and owner != ctx.tenant_id:
        log_cross_tenant_attempt(
            f"Shared profile {share.id} is not addressed to tenant {ctx.tenant_id}",
            tenant_id=ctx.tenant_id,
        )
    if not share or owner != ctx.tenant_id:
        raise TenantAccessError("Shared profile not found")
    return share


def open_share(ctx: ActorContext, share_id: int) -> dict:
    """The share plus the full case, read-only; records who viewed it."""
    share = _share_for(ctx, share_id, side="to")
    if not share.is_active:
        raise TenantAccessError("Shared profile not found")

    share.viewed_at = utcnow()
    share.viewed_by_id = ctx.user_id
    db.session.commit()

    return {"sharedProfile": share.to_dict(), "applicant": share.applicant.to_dict()}


def revoke_share(ctx: ActorContext, share_id: int) -> SharedProfile:
    share = _share_for(ctx, share_id, side="from")
    share.is_active = False
    db.session.commit()

    current_app.logger.info("Shared profile %s revoked by user %s", share.id, ctx.user_id)
    return share
