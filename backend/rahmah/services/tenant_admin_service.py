# Overview: Service-layer operations for tenant lifecycle; onboarding with an admin invite, edits and full deletion.

"""
Tenant Administration

tenant_service answers "may this caller touch this row"; this module
changes tenants themselves. Only super_admin creates, edits or deletes a
tenant. A tenant admin may read their own tenant.

ONBOARDING: a tenant created with adminName/adminEmail gets its first admin
in the same transaction. The admin has no usable password; they receive a
staff invite email and set one through /api/admin/setup-password.

DELETION: removes the tenant and everything it owns (cases and their files,
staff and their sessions, shares in either direction). Security events and
outbox rows are kept with tenant_id cleared.
"""

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Applicant, DocumentAudit, NotificationOutbox, SecurityEvent, SharedProfile, Tenant, User
from ..permissions import ActorContext, Role
from ..validation import ConflictError, NotFoundError, ValidationError, parse_bool
from . import auth_service, case_service, notification_service, permission_service, session_service, storage_service
from . import tenant_service
from .tenant_service import TenantAccessError


UPDATABLE_FIELDS = {"name", "slug", "email", "phone", "brandColor", "isActive"}


def onboard_tenant(ctx: ActorContext, data: dict) -> tuple[Tenant, User | None]:
    """
    Create a tenant and, when adminName/adminEmail are given, its first admin.

    Returns (tenant, admin_or_None). The tenant email defaults to the admin's.
    An admin email that already belongs to a user is a ConflictError; existing
    accounts are never moved between tenants.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    admin_name = (data.get("adminName") or "").strip()
    admin_email = (data.get("adminEmail") or "").strip()
    if bool(admin_name) != bool(admin_email):
        raise ValidationError("adminName and adminEmail must be given together")
    if admin_email and not data.get("email"):
        data = {**data, "email": admin_email}

    admin = None
    try:
        tenant = tenant_service.build_tenant(data)
        if admin_email:
            admin = auth_service.create_user(
                admin_name, admin_email, None, Role.ADMIN, tenant_id=tenant.id, commit=False,
            )
            _queue_admin_invite(tenant, admin)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    permission_service.log_security_event(
        user_id=ctx.user_id,
        event_type="TENANT_CREATED",
        success=True,
        resource=f"/api/tenants/{tenant.id}",
        action="CREATE",
        tenant_id=tenant.id,
    )
    current_app.logger.info(
        "Tenant %s onboarded by user %s%s",
        tenant.slug, ctx.user_id, f" with admin {admin.email}" if admin else "",
    )
    return tenant, admin


def _queue_admin_invite(tenant: Tenant, admin: User):
    token = session_service.issue_invite_token(admin)
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    return notification_service.enqueue(
        "staff_invite",
        admin.email,
        f"Welcome to {tenant.name} on Rahmah Exchange - Set Your Password",
        {
            "tenant_name": tenant.name,
            "admin_name": admin.name,
            "invite_url": session_service.invite_url(token),
            "login_url": f"{base}/staff/login",
            "ttl_days": current_app.config.get("STAFF_INVITE_TTL_DAYS", 7),
        },
        tenant_id=tenant.id,
    )


def get_tenant(ctx: ActorContext, tenant_id: int) -> Tenant:
    """super_admin reads any tenant; an admin only their own."""
    tenant = db.session.get(Tenant, tenant_id)
    if ctx.role == Role.SUPER_ADMIN:
        if not tenant:
            raise NotFoundError("Tenant not found")
        return tenant

    if tenant and tenant.id != ctx.tenant_id:
        tenant_service.log_cross_tenant_attempt(
            f"Tenant {tenant.id} requested from tenant {ctx.tenant_id}",
            tenant_id=ctx.tenant_id,
        )
    if not tenant or tenant.id != ctx.tenant_id:
        raise TenantAccessError("Tenant not found")
    return tenant


def update_tenant(ctx: ActorContext, tenant_id: int, data: dict) -> Tenant:
    """
    Partial update (super_admin).

    A slug held by another tenant is a ConflictError. Deactivating a tenant
    ends its staff sessions on their next request.
    """
    if not isinstance(data, dict) or not data:
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(data) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown tenant fields: {', '.join(unknown)}")

    tenant = db.session.get(Tenant, tenant_id)
    if not tenant:
        raise NotFoundError("Tenant not found")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        tenant.name = name[:255]

    if "slug" in data:
        slug = tenant_service.validate_slug(data.get("slug"))
        taken = (
            db.session.query(Tenant.id)
            .filter(Tenant.slug == slug, Tenant.id != tenant.id)
            .first()
        )
        if taken:
            raise ConflictError(f"Tenant slug '{slug}' is already in use")
        tenant.slug = slug

    if "email" in data:
        tenant.email = (data.get("email") or "").strip().lower() or None
    if "phone" in data:
        tenant.phone = (data.get("phone") or "").strip() or None
    if "brandColor" in data:
        tenant.brand_color = tenant_service.validate_brand_color(data.get("brandColor"))
    if "isActive" in data:
        tenant.is_active = parse_bool(data.get("isActive"))

    db.session.commit()
    current_app.logger.info("Tenant %s updated by user %s", tenant.slug, ctx.user_id)
    return tenant


def delete_tenant(ctx: ActorContext, tenant_id: int) -> None:
    """Delete a tenant and all data it owns (super_admin)."""
    tenant = db.session.get(Tenant, tenant_id)
    if not tenant:
        raise NotFoundError("Tenant not found")

    slug = tenant.slug
    applicants = db.session.query(Applicant).filter_by(tenant_id=tenant.id).all()
    stored_names = [name for applicant in applicants for name in case_service.stored_files(applicant)]

    try:
        db.session.query(SharedProfile).filter(
            or_(SharedProfile.from_tenant_id == tenant.id, SharedProfile.to_tenant_id == tenant.id)
        ).delete(synchronize_session=False)
        db.session.query(DocumentAudit).filter_by(tenant_id=tenant.id).delete(synchronize_session=False)
        for applicant in applicants:
            db.session.delete(applicant)
        db.session.flush()

        for user in db.session.query(User).filter_by(tenant_id=tenant.id).all():
            db.session.delete(user)
        db.session.flush()

        db.session.query(NotificationOutbox).filter_by(tenant_id=tenant.id).update(
            {"tenant_id": None}, synchronize_session=False
        )
        db.session.query(SecurityEvent).filter_by(tenant_id=tenant.id).update(
            {"tenant_id": None}, synchronize_session=False
        )
        db.session.delete(tenant)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    for name in stored_names:
        storage_service.delete_stored(name)

    permission_service.log_security_event(
        user_id=ctx.user_id,
        event_type="TENANT_DELETED",
        success=True,
        resource=f"/api/tenants/{tenant_id}",
        action="DELETE",
        reason=f"Tenant {slug} deleted with {len(applicants)} case(s)",
    )
    current_app.logger.warning("Tenant %s deleted by user %s", slug, ctx.user_id)


def list_share_targets(ctx: ActorContext) -> list[Tenant]:
    """Active tenants other than the caller's, for picking a share recipient."""
    return (
        db.session.query(Tenant)
        .filter(Tenant.is_active.is_(True), Tenant.id != ctx.tenant_id)
        .order_by(Tenant.name)
        .all()
    )
