# Overview: Role constants shared by staff accounts, sessions and the workflow tables.


class Role:
    """Role names as stored on User.role."""
    ADMIN = "admin"
    CASEWORKER = "caseworker"
    APPROVER = "approver"
    TREASURER = "treasurer"
    SUPER_ADMIN = "super_admin"
    # Not a staff role; used as the actor role for magic-link requests
    APPLICANT = "applicant"


# Roles that work cases inside a tenant
STAFF_ROLES = (
    Role.ADMIN,
    Role.CASEWORKER,
    Role.APPROVER,
    Role.TREASURER,
)

# Roles an admin may hand out from the user-management screen
ASSIGNABLE_ROLES = STAFF_ROLES

ALL_USER_ROLES = STAFF_ROLES + (Role.SUPER_ADMIN,)
