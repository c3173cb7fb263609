# Overview: Service-layer operations for staff sessions and applicant magic links.

"""
Session Token Management Service with Multi-Tenant Support

WHY: Opaque, revocable bearer credentials. Tokens are cryptographically
secure, hashed in the database, and time-limited.

MULTI-TENANT: Staff sessions capture tenant_id at creation time. That is
the tenant every request on the session acts in.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Staff: 24-hour absolute timeout, 2-hour idle timeout
- Applicant magic links: MAGIC_LINK_TTL_DAYS absolute timeout (default 30)
- Revocable on logout or deactivation
- Staff invites: one-time, STAFF_INVITE_TTL_DAYS absolute timeout (default 7)
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Tenant, Applicant, ApplicantAccessToken, StaffInviteToken
from ..permissions import ActorContext, Role
from rahmah.time_utils import utcnow


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


@dataclass
class SessionContext:
    """
    Complete session context returned by validate_session.

    tenant_id comes from the immutable session record, not the user row.
    """
    user: User
    session: SessionToken
    tenant_id: int | None

    def actor(self) -> ActorContext:
        return ActorContext(
            user_id=self.user.id,
            role=self.user.role,
            tenant_id=self.tenant_id,
            email=self.user.email,
            name=self.user.name,
        )


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is
    sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with tenant context.

    Returns (session_record, plaintext_token).

    Raises ValueError if a staff user has no tenant or the tenant is inactive.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    if user.role != Role.SUPER_ADMIN:
        if not user.tenant_id:
            raise ValueError("User must belong to a tenant")
        tenant = db.session.get(Tenant, user.tenant_id)
        if not tenant or not tenant.is_active:
            raise ValueError("Tenant is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is deactivated
    - Tenant is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    if session.tenant_id is not None:
        tenant = session.tenant
        if not tenant or not tenant.is_active:
            _revoke(session, "Tenant deactivated")
            return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, tenant_id=session.tenant_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session token. Returns False if no live session matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session for a user (deactivation, role change)."""
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)


# -- APPLICANT MAGIC LINKS --

def issue_applicant_token(applicant: Applicant) -> str:
    """
    Create a magic-link token for the applicant portal.

    The row is added to the current transaction, not committed, so a link
    is only valid if the intake that emailed it was persisted.
    """
    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(days=current_app.config.get("MAGIC_LINK_TTL_DAYS", 30))

    db.session.add(ApplicantAccessToken(
        applicant=applicant,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
    ))
    return plaintext_token


def portal_url(token: str) -> str:
    base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    return f"{base}/applicant-portal/login?token={token}"


def validate_applicant_token(token: str) -> Applicant | None:
    """Return the applicant a live magic-link token belongs to, else None."""
    if not token:
        return None

    record = db.session.query(ApplicantAccessToken).filter_by(
        token_hash=hash_token(token)
    ).first()

    if not record or record.expires_at < utcnow():
        return None

    record.last_used_at = utcnow()
    db.session.commit()
    return record.applicant


def applicant_actor(applicant: Applicant) -> ActorContext:
    return ActorContext(
        user_id=None,
        role=Role.APPLICANT,
        tenant_id=applicant.tenant_id,
        email=applicant.email,
        name=applicant.full_name,
        applicant_id=applicant.id,
    )


# -- STAFF INVITES --

def issue_invite_token(user: User) -> str:
    """
    Create a first-password link for an invited staff user.

    Like magic links, the row joins the caller's transaction: an invite is
    only redeemable if the onboarding that emailed it was persisted.
    """
    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(days=current_app.config.get("STAFF_INVITE_TTL_DAYS", 7))

    db.session.add(StaffInviteToken(
        user=user,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
    ))
    return plaintext_token


def invite_url(token: str) -> str:
    base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    return f"{base}/staff/setup-password?token={token}"


def find_invite(token: str) -> StaffInviteToken | None:
    """
    The live invite for `token`: unused, unexpired, and still issued for the
    tenant the user belongs to.
    """
    if not token:
        return None

    record = db.session.query(StaffInviteToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.used_at is not None or record.expires_at < utcnow():
        return None
    if not record.user or record.user.tenant_id != record.tenant_id:
        return None
    return record
