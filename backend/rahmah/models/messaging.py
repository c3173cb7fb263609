from __future__ import annotations

from ..extensions import db
from rahmah.time_utils import to_utc_z, utcnow


class Conversation(db.Model):
    """
    Message thread between an applicant and tenant staff about one case.

    conversation_key ("case_<applicant id>") is the public identifier used in
    URLs; there is at most one conversation per case.
    """
    __tablename__ = "conversations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, unique=True)
    conversation_key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    title = db.Column(db.String(255), nullable=True)

    message_count = db.Column(db.Integer, nullable=False, default=0)
    last_message = db.Column(db.Text, nullable=True)
    last_message_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    applicant = db.relationship("Applicant", backref=db.backref("conversation", uselist=False, cascade="all, delete-orphan"))
    participants = db.relationship(
        "ConversationParticipant",
        back_populates="conversation",
        order_by="ConversationParticipant.id",
        cascade="all, delete-orphan",
    )
    messages = db.relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        applicant = self.applicant
        return {
            "id": self.id,
            "conversationId": self.conversation_key,
            "caseId": self.applicant_id,
            "caseNumber": applicant.case_id if applicant else None,
            "applicantName": applicant.full_name if applicant else None,
            "title": self.title,
            "participants": [p.to_dict() for p in self.participants if p.is_active],
            "messageCount": self.message_count,
            "lastMessage": self.last_message,
            "lastMessageAt": to_utc_z(self.last_message_at),
            "isArchived": self.is_archived,
            "createdAt": to_utc_z(self.created_at),
        }


class ConversationParticipant(db.Model):
    """A staff user or the applicant taking part in a conversation."""
    __tablename__ = "conversation_participants"
    __table_args__ = (
        db.UniqueConstraint("conversation_id", "email", name="uq_conversation_participants_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)

    # Exactly one of user_id / applicant_id is set
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=True)

    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False)

    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    conversation = db.relationship("Conversation", back_populates="participants")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "applicantId": self.applicant_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "joinedAt": to_utc_z(self.joined_at),
            "lastReadAt": to_utc_z(self.last_read_at),
        }


class Message(db.Model):
    __tablename__ = "messages"
    __table_args__ = (
        db.Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)

    sender_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="SET NULL"), nullable=True)
    sender_email = db.Column(db.String(255), nullable=False)
    sender_name = db.Column(db.String(255), nullable=False)
    sender_role = db.Column(db.String(32), nullable=False)

    body = db.Column(db.Text, nullable=False, default="")
    message_type = db.Column(db.String(16), nullable=False, default="text")  # text | note | status_update
    # [{filename, url, mimeType, size}]
    attachments = db.Column(db.JSON, nullable=False, default=list)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = db.relationship("Conversation", back_populates="messages")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "conversationId": self.conversation.conversation_key if self.conversation else None,
            "senderEmail": self.sender_email,
            "senderName": self.sender_name,
            "senderRole": self.sender_role,
            "body": self.body,
            "messageType": self.message_type,
            "attachments": self.attachments or [],
            "createdAt": to_utc_z(self.created_at),
        }
