# Overview: Service-layer operations for staff accounts; password hashing, user creation and login.

"""
Staff Authentication Service with Multi-Tenant Support

WHY: Every case change must be attributable to a named staff member.
Uses bcrypt for password hashing and validates password strength.

MULTI-TENANT: Staff belong to exactly one tenant. super_admin accounts have
no tenant. Login email is globally unique.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_LOG_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User, Tenant
from ..permissions import ALL_USER_ROLES, ASSIGNABLE_ROLES, Role
from ..validation import ConflictError, ValidationError
from .session_service import find_invite
from rahmah.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# Never a valid bcrypt hash, so verify_password always fails against it
UNUSABLE_PASSWORD = "!"


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash the password."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12) if has_app_context() else 12
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    return email


def build_internal_email(name: str, tenant: Tenant) -> str:
    """first.last@<tenant-slug>.internal, de-duplicated with a numeric suffix."""
    parts = [re.sub(r"[^a-z0-9]", "", p) for p in name.lower().split()]
    parts = [p for p in parts if p]
    local = ".".join([parts[0], parts[-1]] if len(parts) > 1 else parts) or "staff"

    candidate = f"{local}@{tenant.slug}.internal"
    suffix = 2
    while db.session.query(User.id).filter_by(internal_email=candidate).first():
        candidate = f"{local}{suffix}@{tenant.slug}.internal"
        suffix += 1
    return candidate


def create_user(
    name: str,
    email: str,
    password: str | None,
    role: str,
    tenant_id: int | None = None,
    *,
    commit: bool = True,
) -> User:
    """
    Create a staff user with a bcrypt password hash.

    password=None creates an invited user who cannot log in until they set a
    password through a staff invite. commit=False leaves the user in the
    caller's transaction.

    Raises:
        ValidationError: bad role, bad email, or missing tenant for a staff role
        ConflictError: email already registered
        PasswordValidationError: weak password
    """
    if role not in ALL_USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ALL_USER_ROLES)}")

    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    email = normalize_email(email)

    tenant = None
    if role == Role.SUPER_ADMIN:
        tenant_id = None
    else:
        tenant = db.session.get(Tenant, tenant_id) if tenant_id else None
        if not tenant:
            raise ValidationError("Tenant not found")
        if not tenant.is_active:
            raise ValidationError("Tenant is not active")

    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    user = User(
        tenant_id=tenant_id,
        name=name,
        email=email,
        password_hash=hash_password(password) if password is not None else UNUSABLE_PASSWORD,
        role=role,
        internal_email=build_internal_email(name, tenant) if tenant else None,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def update_user(user: User, data: dict) -> User:
    """Admin edit of name / role / active flag / message preference."""
    name = (data.get("name") or "").strip() if "name" in data else user.name
    if not name:
        raise ValidationError("name cannot be blank")

    role = data.get("role") if "role" in data else user.role
    if "role" in data and role not in ASSIGNABLE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ASSIGNABLE_ROLES)}")

    user.name = name
    user.role = role

    if "isActive" in data:
        user.is_active = bool(data.get("isActive"))

    if "emailOnNewMessage" in data:
        user.email_on_new_message = bool(data.get("emailOnNewMessage"))

    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate a staff user by email and password.

    Returns User if credentials are valid and the user (and tenant) are
    active, None otherwise. Updates last_login_at on success.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if user.tenant_id is not None:
        tenant = db.session.get(Tenant, user.tenant_id)
        if not tenant or not tenant.is_active:
            return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def verify_invite(token: str) -> User:
    """The invited user behind a live staff invite; ValidationError otherwise."""
    record = find_invite(token)
    if not record:
        raise ValidationError("Invalid or expired token")
    return record.user


def accept_invite(token: str, password: str) -> User:
    """
    Set an invited user's password and spend the invite.

    Raises ValidationError for a dead token, PasswordValidationError for a
    weak password.
    """
    record = find_invite(token)
    if not record:
        raise ValidationError("Invalid or expired token")

    user = record.user
    user.password_hash = hash_password(password)
    record.used_at = utcnow()
    db.session.commit()

    current_app.logger.info("User %s set their password from an invite", user.id)
    return user
