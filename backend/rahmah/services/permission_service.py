# Overview: Service-layer operations for permission; enforces the workflow role tables and records denials.

"""
Role Enforcement and Security Event Logging with Multi-Tenant Support

WHY: The role tables in rahmah.permissions are pure; this module is where a
denial becomes an exception plus an audit row.

MULTI-TENANT: Security events carry tenant_id for tenant-scoped auditing.

DESIGN PRINCIPLES:
- Fail closed: roles not in a table get nothing
- Log denials only: permitted actions are not logged
- Check before mutate: callers enforce permissions before touching the
  session, so the audit commit never flushes half-applied changes
"""

from flask import has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import ActorContext, Role, check_case_update, can_set_grant_status
from rahmah.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the acting role may not perform the requested change."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - ROLE_DENIED
    - STATUS_DENIED
    - FIELD_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - USER_CREATED
    - CROSS_TENANT_ACCESS_DENIED
    """
    if has_request_context():
        resource = resource or request.path
        action = action or request.method
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def deny(ctx: ActorContext, event_type: str, reason: str) -> None:
    log_security_event(
        user_id=ctx.user_id,
        event_type=event_type,
        success=False,
        reason=reason,
        tenant_id=ctx.tenant_id,
    )
    raise PermissionDeniedError(reason)


def require_role(ctx: ActorContext, allowed_roles, action: str | None = None) -> None:
    """Raise PermissionDeniedError unless ctx.role is one of allowed_roles."""
    if ctx.role not in allowed_roles:
        what = f" to {action}" if action else ""
        deny(
            ctx,
            "ROLE_DENIED",
            f"Role '{ctx.role}' is not permitted{what}; requires one of: {', '.join(allowed_roles)}",
        )


def require_case_update(
    ctx: ActorContext,
    *,
    status: str | None = None,
    case_fields=(),
    grant_fields=(),
) -> None:
    """Apply the status and field tables to a case update, raising on denial."""
    if status is not None:
        reason = check_case_update(ctx.role, status=status)
        if reason:
            deny(ctx, "STATUS_DENIED", reason)

    reason = check_case_update(ctx.role, case_fields=case_fields, grant_fields=grant_fields)
    if reason:
        deny(ctx, "FIELD_DENIED", reason)


def require_grant_status(ctx: ActorContext, status: str) -> None:
    if not can_set_grant_status(ctx.role, status):
        deny(ctx, "STATUS_DENIED", f"Role '{ctx.role}' may not set grant status to '{status}'")


def require_author_or_admin(ctx: ActorContext, author_id: int | None, action: str) -> None:
    """Edits to authored records: the author themself or an admin."""
    if ctx.role == Role.ADMIN:
        return
    if author_id is not None and author_id == ctx.user_id:
        return
    deny(ctx, "ROLE_DENIED", f"Only the author or an admin may {action}")
