"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation so every service loads tenant-owned rows
the same way, and cross-tenant access is denied (and logged) in one place.

SECURITY INVARIANTS:
1. Every staff request carries ctx.tenant_id (from the session)
2. Ids from client input are resolved with the tenant in the filter
3. A row from another tenant is reported exactly like a missing row
4. Cross-tenant access attempts are logged as security events

USAGE:
    from rahmah.services.tenant_service import require_applicant_in_tenant

    applicant = require_applicant_in_tenant(applicant_ref, ctx.tenant_id)
"""

import re

from flask import current_app, g

from ..extensions import db
from ..models import Applicant, Grant, Tenant
from ..validation import ConflictError, ValidationError
from .permission_service import log_security_event


SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,62}[a-z0-9]$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted or a tenant is unusable."""
    pass


def get_tenant_by_slug(slug: str | None, active_only: bool = True) -> Tenant:
    """
    Resolve a tenant from its public slug, falling back to DEFAULT_TENANT_SLUG.

    Raises TenantAccessError when nothing matches.
    """
    slug = (slug or current_app.config.get("DEFAULT_TENANT_SLUG") or "").strip().lower()
    if not slug:
        raise TenantAccessError("Tenant not specified")

    query = db.session.query(Tenant).filter_by(slug=slug)
    if active_only:
        query = query.filter_by(is_active=True)
    tenant = query.first()
    if not tenant:
        raise TenantAccessError("Tenant not found")
    return tenant


def list_active_tenants() -> list[Tenant]:
    return db.session.query(Tenant).filter_by(is_active=True).order_by(Tenant.name).all()


def list_tenants() -> list[Tenant]:
    return db.session.query(Tenant).order_by(Tenant.name).all()


def slugify(name: str) -> str:
    """'Masjid Al-Noor (East)' -> 'masjid-al-noor-east'."""
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")[:64].strip("-")


def validate_slug(slug: str) -> str:
    slug = (slug or "").strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValidationError("slug must be 3-64 lowercase letters, digits or hyphens")
    return slug


def validate_brand_color(value) -> str | None:
    """'#0d9488'-style hex colour; blank clears it."""
    value = (value or "").strip()
    if not value:
        return None
    if not HEX_COLOR_PATTERN.match(value):
        raise ValidationError("brandColor must be a hex color like #0d9488")
    return value.lower()


def build_tenant(data: dict) -> Tenant:
    """
    Validate and add a new tenant to the session without committing.

    The slug defaults to one derived from the name.
    Raises ValidationError on a bad name/slug/colour, ConflictError on a taken slug.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    slug = validate_slug(data.get("slug") or slugify(name))
    if db.session.query(Tenant.id).filter_by(slug=slug).first():
        raise ConflictError(f"Tenant slug '{slug}' is already in use")

    tenant = Tenant(
        name=name[:255],
        slug=slug,
        email=(data.get("email") or "").strip().lower() or None,
        phone=(data.get("phone") or "").strip() or None,
        brand_color=validate_brand_color(data.get("brandColor")),
    )
    db.session.add(tenant)
    db.session.flush()
    return tenant


def create_tenant(data: dict) -> Tenant:
    """Create a tenant on its own (CLI)."""
    tenant = build_tenant(data)
    db.session.commit()

    current_app.logger.info("Tenant %s created", tenant.slug)
    return tenant


def find_applicant(ref) -> Applicant | None:
    """Look up a case by numeric id or by its CASE-... identifier."""
    ref = str(ref).strip()
    if ref.isdigit():
        return db.session.get(Applicant, int(ref))
    return db.session.query(Applicant).filter_by(case_id=ref).first()


def require_applicant_in_tenant(ref, tenant_id: int | None) -> Applicant:
    """
    Validate that a case belongs to the caller's tenant.

    Args:
        ref: applicant id or caseId (typically from the URL)
        tenant_id: the caller's tenant (ctx.tenant_id)

    Returns:
        The Applicant if valid

    Raises:
        TenantAccessError if the case doesn't exist or belongs to another tenant
    """
    applicant = find_applicant(ref)

    if not applicant:
        raise TenantAccessError("Applicant not found")

    if applicant.tenant_id != tenant_id:
        # CRITICAL: Cross-tenant access attempt
        log_cross_tenant_attempt(
            f"Applicant {applicant.id} belongs to tenant {applicant.tenant_id}, not {tenant_id}",
            tenant_id=tenant_id,
        )
        raise TenantAccessError("Applicant not found")  # Don't reveal it exists in another tenant

    return applicant


def require_grant_in_tenant(grant_id: int, tenant_id: int | None) -> Grant:
    grant = db.session.get(Grant, grant_id)

    if not grant:
        raise TenantAccessError("Grant not found")

    if grant.tenant_id != tenant_id:
        log_cross_tenant_attempt(
            f"Grant {grant.id} belongs to tenant {grant.tenant_id}, not {tenant_id}",
            tenant_id=tenant_id,
        )
        raise TenantAccessError("Grant not found")

    return grant


def require_in_tenant(obj, tenant_id: int | None, label: str):
    """Generic check for any tenant-owned row already loaded by id."""
    if obj is None:
        raise TenantAccessError(f"{label} not found")
    if obj.tenant_id != tenant_id:
        log_cross_tenant_attempt(
            f"{label} {obj.id} belongs to tenant {obj.tenant_id}, not {tenant_id}",
            tenant_id=tenant_id,
        )
        raise TenantAccessError(f"{label} not found")
    return obj


def log_cross_tenant_attempt(reason: str, tenant_id: int | None = None) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    SECURITY: These events should be monitored and alerted on.
    """
    ctx = getattr(g, "actor", None)
    log_security_event(
        user_id=ctx.user_id if ctx else None,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        reason=reason,
        tenant_id=tenant_id,
    )
