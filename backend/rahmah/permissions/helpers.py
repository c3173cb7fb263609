# Overview: Pure permission checks over the workflow tables.
# No database or request access: every check takes the actor's role explicitly.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .definitions import (
    CASE_DATA,
    CASE_STATUSES,
    FIELD_PERMISSIONS,
    GRANT_STATUSES,
    STATUS_TRANSITIONS,
)
from .roles import Role


@dataclass(frozen=True)
class ActorContext:
    """
    Who is acting, resolved once per request and passed explicitly into
    every workflow function.

    Staff requests carry user_id/role/tenant_id from the session.
    Magic-link requests carry role="applicant" and applicant_id.
    """
    user_id: int | None
    role: str
    tenant_id: int | None
    email: str | None = None
    name: str | None = None
    applicant_id: int | None = None

    @property
    def is_applicant(self) -> bool:
        return self.role == Role.APPLICANT


def can_transition(role: str, status: str) -> bool:
    """True iff `role` may set a case to `status`."""
    if status not in CASE_STATUSES:
        return False
    return status in STATUS_TRANSITIONS.get(role, frozenset())


def allowed_statuses(role: str) -> list[str]:
    """Statuses `role` may assign, in workflow order."""
    permitted = STATUS_TRANSITIONS.get(role, frozenset())
    return [s for s in CASE_STATUSES if s in permitted]


def can_set_field(role: str, field: str) -> bool:
    return role in FIELD_PERMISSIONS.get(field, frozenset())


def can_set_grant_status(role: str, status: str) -> bool:
    """A grant status is settable exactly when the same case status is."""
    return status in GRANT_STATUSES and can_transition(role, status)


def check_case_update(
    role: str,
    *,
    status: str | None = None,
    case_fields: Iterable[str] = (),
    grant_fields: Iterable[str] = (),
) -> str | None:
    """
    Decide whether `role` may apply a case update.

    Returns None when permitted, otherwise the denial reason.

    A status-only update is judged on the status alone, which is how an
    approver (no case-data rights) or a treasurer (confirmation only) moves
    a case.
    """
    if status is not None and not can_transition(role, status):
        allowed = ', '.join(allowed_statuses(role)) or 'none'
        return f"Role '{role}' may not set status to '{status}' (allowed: {allowed})"

    case_fields = list(case_fields)
    if case_fields and not can_set_field(role, CASE_DATA):
        return f"Role '{role}' may not edit case data ({', '.join(sorted(case_fields))})"

    for field in grant_fields:
        if not can_set_field(role, field):
            return f"Role '{role}' may not set {field}"

    return None
