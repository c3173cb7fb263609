# Overview: Workflow vocabularies and the role tables that gate case and grant mutations.
# Status strings are part of the public API; spelling and spacing must not change.

from .roles import Role, STAFF_ROLES


class CaseStatus:
    PENDING = "Pending"
    IN_REVIEW = "In Review"
    NEED_INFO = "Need Info"
    READY_FOR_APPROVAL = "Ready for Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"


CASE_STATUSES = (
    CaseStatus.PENDING,
    CaseStatus.IN_REVIEW,
    CaseStatus.NEED_INFO,
    CaseStatus.READY_FOR_APPROVAL,
    CaseStatus.APPROVED,
    CaseStatus.REJECTED,
)

# Grant status mirrors a subset of case statuses
GRANT_STATUSES = (
    CaseStatus.PENDING,
    CaseStatus.APPROVED,
    CaseStatus.REJECTED,
)

PAYMENT_STATUSES = ("pending", "completed", "cancelled")
PAYMENT_METHODS = ("check", "transfer", "cash", "other")

NOTE_TYPES = (
    "internal_note",
    "status_update",
    "requirement",
    "decision",
    "approval_note",
)
NOTE_PRIORITIES = ("low", "medium", "high")

ASSIGNMENT_STATUSES = ("pending", "accepted", "active", "completed", "reassigned")
ACTIVE_ASSIGNMENT_STATUSES = ("pending", "accepted", "active")
ASSIGNMENT_PRIORITIES = ("low", "medium", "high", "urgent")


# -- STATUS TRANSITIONS --
# role -> case statuses that role may assign. Roles not listed may assign nothing.

STATUS_TRANSITIONS = {
    Role.CASEWORKER: frozenset({
        CaseStatus.PENDING,
        CaseStatus.IN_REVIEW,
        CaseStatus.NEED_INFO,
        CaseStatus.READY_FOR_APPROVAL,
    }),
    Role.ADMIN: frozenset(CASE_STATUSES),
    Role.APPROVER: frozenset({
        CaseStatus.PENDING,
        CaseStatus.IN_REVIEW,
        CaseStatus.READY_FOR_APPROVAL,
        CaseStatus.APPROVED,
        CaseStatus.REJECTED,
    }),
    # Confirmation only
    Role.TREASURER: frozenset({CaseStatus.APPROVED}),
}


# -- FIELD PERMISSIONS --
# Grant fields by API name; "caseData" stands for every biographical/financial
# field on the case record.

CASE_DATA = "caseData"

FIELD_PERMISSIONS = {
    "grantedAmount": frozenset({Role.APPROVER, Role.ADMIN}),
    "numberOfMonths": frozenset({Role.CASEWORKER, Role.ADMIN}),
    "remarks": frozenset({Role.CASEWORKER, Role.APPROVER, Role.ADMIN}),
    CASE_DATA: frozenset({Role.CASEWORKER, Role.ADMIN}),
}

GRANT_FIELDS = ("grantedAmount", "numberOfMonths", "remarks")

# Legacy grant payload names -> canonical names
GRANT_FIELD_ALIASES = {
    "amountGranted": "grantedAmount",
    "notes": "remarks",
}


# -- ROUTE GATES --

NOTE_READ_ROLES = (Role.ADMIN, Role.CASEWORKER, Role.APPROVER, Role.TREASURER)
NOTE_WRITE_ROLES = (Role.ADMIN, Role.CASEWORKER, Role.APPROVER)
GRANT_WRITE_ROLES = (Role.ADMIN, Role.CASEWORKER, Role.APPROVER, Role.TREASURER)
PAYMENT_ROLES = (Role.ADMIN, Role.TREASURER)
PAYMENT_DOCUMENT_READ_ROLES = (Role.ADMIN, Role.TREASURER, Role.CASEWORKER, Role.APPROVER)
DOCUMENT_WRITE_ROLES = (Role.ADMIN, Role.CASEWORKER)
MESSAGING_ROLES = STAFF_ROLES
# Staff who receive new-message emails
MESSAGE_NOTIFY_ROLES = (Role.ADMIN, Role.CASEWORKER)
