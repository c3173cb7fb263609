from __future__ import annotations

from ..extensions import db
from rahmah.time_utils import to_utc_z, utcnow


class NotificationOutbox(db.Model):
    """
    Queued email, written in the same transaction as the change that caused it.

    LIFECYCLE: pending -> sending -> sent, or back to pending for a retry,
    or failed once attempts reaches NOTIFICATION_MAX_ATTEMPTS. A dispatcher
    owns a row only after moving it to "sending". Rows are rendered at enqueue
    time so dispatch never needs the originating request.
    """
    __tablename__ = "notification_outbox"
    __table_args__ = (
        db.Index("ix_notification_outbox_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)
    # Case the email is about, for audit screens; no FK so history survives case deletion
    applicant_id = db.Column(db.Integer, nullable=True, index=True)

    template = db.Column(db.String(64), nullable=False, index=True)
    recipient = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    html_body = db.Column(db.Text, nullable=False)
    text_body = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "applicantId": self.applicant_id,
            "template": self.template,
            "recipient": self.recipient,
            "subject": self.subject,
            "status": self.status,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "createdAt": to_utc_z(self.created_at),
            "sentAt": to_utc_z(self.sent_at),
        }
