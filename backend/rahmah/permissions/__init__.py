# Overview: Workflow permission package.
# Re-exports the role vocabulary, status tables and pure check helpers.

from .roles import Role, STAFF_ROLES, ASSIGNABLE_ROLES, ALL_USER_ROLES
from .definitions import (
    CaseStatus,
    CASE_STATUSES,
    GRANT_STATUSES,
    PAYMENT_STATUSES,
    PAYMENT_METHODS,
    NOTE_TYPES,
    NOTE_PRIORITIES,
    ASSIGNMENT_STATUSES,
    ACTIVE_ASSIGNMENT_STATUSES,
    ASSIGNMENT_PRIORITIES,
    STATUS_TRANSITIONS,
    FIELD_PERMISSIONS,
    CASE_DATA,
    GRANT_FIELDS,
    GRANT_FIELD_ALIASES,
    NOTE_READ_ROLES,
    NOTE_WRITE_ROLES,
    GRANT_WRITE_ROLES,
    PAYMENT_ROLES,
    PAYMENT_DOCUMENT_READ_ROLES,
    DOCUMENT_WRITE_ROLES,
    MESSAGING_ROLES,
    MESSAGE_NOTIFY_ROLES,
)
from .helpers import (
    ActorContext,
    can_transition,
    allowed_statuses,
    can_set_field,
    can_set_grant_status,
    check_case_update,
)

__all__ = [
    "Role",
    "STAFF_ROLES",
    "ASSIGNABLE_ROLES",
    "ALL_USER_ROLES",
    "CaseStatus",
    "CASE_STATUSES",
    "GRANT_STATUSES",
    "PAYMENT_STATUSES",
    "PAYMENT_METHODS",
    "NOTE_TYPES",
    "NOTE_PRIORITIES",
    "ASSIGNMENT_STATUSES",
    "ACTIVE_ASSIGNMENT_STATUSES",
    "ASSIGNMENT_PRIORITIES",
    "STATUS_TRANSITIONS",
    "FIELD_PERMISSIONS",
    "CASE_DATA",
    "GRANT_FIELDS",
    "GRANT_FIELD_ALIASES",
    "NOTE_READ_ROLES",
    "NOTE_WRITE_ROLES",
    "GRANT_WRITE_ROLES",
    "PAYMENT_ROLES",
    "PAYMENT_DOCUMENT_READ_ROLES",
    "DOCUMENT_WRITE_ROLES",
    "MESSAGING_ROLES",
    "MESSAGE_NOTIFY_ROLES",
    "ActorContext",
    "can_transition",
    "allowed_statuses",
    "can_set_field",
    "can_set_grant_status",
    "check_case_update",
]
