# Overview: Service-layer operations for case conversations between applicants and staff, with new-message emails.

"""
Case Messaging

One conversation per case, keyed "case_<applicant id>". Participants are the
applicant and the staff who opened or were added to it. Messaging never
changes case or grant state.

NOTIFICATION FAN-OUT (new message):
- Applicant sends: tenant users named "Admin" are added as participants
  first; then caseworker/admin participants are emailed
- Staff sends: the applicant participant (if it has an email) and the other
  caseworker/admin participants are emailed
- Never the sender, never the same address twice, and staff who turned off
  email_on_new_message are skipped
"""

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Applicant, Conversation, ConversationParticipant, Message, User
from ..permissions import ActorContext, MESSAGE_NOTIFY_ROLES, Role
from ..validation import NotFoundError, ValidationError
from . import notification_service, storage_service
from .tenant_service import TenantAccessError, require_applicant_in_tenant
from rahmah.time_utils import utcnow


AUTO_ADDED_STAFF_NAME = "admin"
MESSAGE_TYPES = ("text", "note", "status_update")
PREVIEW_LENGTH = 200


def conversation_key_for(applicant: Applicant) -> str:
    return f"case_{applicant.id}"


def _find_participant(conversation: Conversation, *, user_id=None, applicant_id=None):
    for p in conversation.participants:
        if user_id is not None and p.user_id == user_id:
            return p
        if applicant_id is not None and p.applicant_id == applicant_id:
            return p
    return None


def _add_user(conversation: Conversation, user: User) -> ConversationParticipant:
    participant = _find_participant(conversation, user_id=user.id)
    if participant:
        participant.is_active = True
        return participant
    participant = ConversationParticipant(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
    )
    conversation.participants.append(participant)
    return participant


def _add_applicant(conversation: Conversation, applicant: Applicant) -> ConversationParticipant:
    participant = _find_participant(conversation, applicant_id=applicant.id)
    if participant:
        return participant
    participant = ConversationParticipant(
        applicant_id=applicant.id,
        email=applicant.email or "",
        name=applicant.full_name,
        role=Role.APPLICANT,
    )
    conversation.participants.append(participant)
    return participant


def _get_or_create(applicant: Applicant) -> Conversation:
    conversation = db.session.query(Conversation).filter_by(applicant_id=applicant.id).first()
    if conversation:
        return conversation
    conversation = Conversation(
        tenant_id=applicant.tenant_id,
        applicant=applicant,
        conversation_key=conversation_key_for(applicant),
        title=f"Case {applicant.case_id}",
    )
    db.session.add(conversation)
    _add_applicant(conversation, applicant)
    return conversation


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# -- OPEN / READ --

def open_conversation(ctx: ActorContext, case_ref) -> Conversation:
    """Staff: open (or fetch) the case conversation and join it."""
    applicant = require_applicant_in_tenant(case_ref, ctx.tenant_id)
    conversation = _get_or_create(applicant)
    user = db.session.get(User, ctx.user_id)
    if user:
        _add_user(conversation, user)
    _commit()
    return conversation


def open_applicant_conversation(ctx: ActorContext) -> Conversation:
    """Applicant: open (or fetch) the conversation for their own case."""
    applicant = db.session.get(Applicant, ctx.applicant_id)
    if not applicant:
        raise NotFoundError("Applicant not found")
    conversation = _get_or_create(applicant)
    _commit()
    return conversation


def list_conversations(ctx: ActorContext) -> list[Conversation]:
    return (
        db.session.query(Conversation)
        .filter(Conversation.tenant_id == ctx.tenant_id, Conversation.is_archived.is_(False))
        .order_by(func.coalesce(Conversation.last_message_at, Conversation.created_at).desc(), Conversation.id.desc())
        .all()
    )


def get_conversation(ctx: ActorContext, key: str) -> Conversation:
    """Tenant-scoped lookup; an applicant may only reach their own case's conversation."""
    conversation = db.session.query(Conversation).filter_by(conversation_key=key).first()
    if not conversation or conversation.tenant_id != ctx.tenant_id:
        raise TenantAccessError("Conversation not found")
    if ctx.is_applicant and conversation.applicant_id != ctx.applicant_id:
        raise TenantAccessError("Conversation not found")
    return conversation


def visible_messages(conversation: Conversation) -> list[Message]:
    """Oldest first, deleted messages hidden."""
    return [m for m in conversation.messages if not m.is_deleted]


def mark_read(ctx: ActorContext, key: str) -> ConversationParticipant | None:
    conversation = get_conversation(ctx, key)
    if ctx.is_applicant:
        participant = _find_participant(conversation, applicant_id=ctx.applicant_id)
    else:
        participant = _find_participant(conversation, user_id=ctx.user_id)
    if participant:
        participant.last_read_at = utcnow()
        _commit()
    return participant


# -- SEND --

def _clean_attachments(raw) -> list[dict]:
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise ValidationError("attachments must be a list")
    cleaned = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("url"):
            raise ValidationError("each attachment needs a url")
        cleaned.append({
            "filename": item.get("filename"),
            "originalname": item.get("originalname") or item.get("filename"),
            "mimeType": item.get("mimeType"),
            "size": item.get("size"),
            "url": item["url"],
        })
    return cleaned


def _store_attachments(uploads) -> list[dict]:
    uploads = [u for u in (uploads or ()) if u and u.filename]
    if not uploads:
        return []
    stored, errors = storage_service.store_uploads(uploads)
    if errors:
        for item in stored:
            storage_service.delete_stored(item.stored_name)
        raise ValidationError("; ".join(errors))
    return [
        {
            "filename": s.stored_name,
            "originalname": s.original_name,
            "mimeType": s.mime_type,
            "size": s.size,
            "url": s.url,
        }
        for s in stored
    ]


def _auto_add_admins(conversation: Conversation) -> None:
    admins = (
        db.session.query(User)
        .filter(
            User.tenant_id == conversation.tenant_id,
            User.is_active.is_(True),
            func.lower(User.name) == AUTO_ADDED_STAFF_NAME,
        )
        .all()
    )
    for admin in admins:
        if not _find_participant(conversation, user_id=admin.id):
            _add_user(conversation, admin)


def _staff_wants_email(participant: ConversationParticipant) -> bool:
    if participant.role not in MESSAGE_NOTIFY_ROLES or not participant.is_active:
        return False
    user = participant.user
    return user is None or (user.is_active and user.email_on_new_message)


def notification_recipients(conversation: Conversation, ctx: ActorContext) -> list[ConversationParticipant]:
    """Participants to email about a message sent by `ctx`, deduplicated by address."""
    sender_email = (ctx.email or "").lower()
    seen = {sender_email} if sender_email else set()
    recipients = []

    for p in conversation.participants:
        address = (p.email or "").lower()
        if not address or address in seen:
            continue
        if ctx.is_applicant:
            if p.applicant_id is not None or not _staff_wants_email(p):
                continue
        else:
            if p.user_id is not None and p.user_id == ctx.user_id:
                continue
            if p.applicant_id is None and not _staff_wants_email(p):
                continue
        seen.add(address)
        recipients.append(p)
    return recipients


def _queue_new_message(conversation: Conversation, message: Message, ctx: ActorContext) -> None:
    applicant = conversation.applicant
    base_url = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    preview = message.body[:PREVIEW_LENGTH] if message.body else "(attachment)"

    for p in notification_recipients(conversation, ctx):
        if p.applicant_id is not None:
            link = f"{base_url}/applicant-portal/login"
        else:
            link = f"{base_url}/staff/messages/{conversation.conversation_key}"
        notification_service.enqueue(
            "new_message",
            p.email,
            f"New message about case {applicant.case_id}",
            {
                "recipient_name": p.name,
                "sender_name": message.sender_name,
                "case": {"case_id": applicant.case_id, "full_name": applicant.full_name},
                "preview": preview,
                "attachment_count": len(message.attachments or []),
                "link": link,
            },
            tenant_id=conversation.tenant_id,
            applicant_id=applicant.id,
        )


def send_message(ctx: ActorContext, key: str, payload: dict, uploads=()) -> Message:
    """
    Post a message as staff or as the applicant.

    A message needs a non-blank body or at least one attachment.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    conversation = get_conversation(ctx, key)

    body = (payload.get("body") or "").strip()
    message_type = payload.get("messageType") or "text"
    if message_type not in MESSAGE_TYPES:
        raise ValidationError(f"messageType must be one of: {', '.join(MESSAGE_TYPES)}")

    attachments = _clean_attachments(payload.get("attachments"))
    if not body and not attachments and not any(u and u.filename for u in (uploads or ())):
        raise ValidationError("Message must contain either text or attachments")
    stored_attachments = _store_attachments(uploads)
    attachments.extend(stored_attachments)

    try:
        if ctx.is_applicant:
            _auto_add_admins(conversation)
            sender = _find_participant(conversation, applicant_id=ctx.applicant_id) or _add_applicant(
                conversation, conversation.applicant
            )
            sender_email = ctx.email or ""
        else:
            user = db.session.get(User, ctx.user_id)
            sender = _add_user(conversation, user)
            sender_email = user.email

        message = Message(
            sender_user_id=None if ctx.is_applicant else ctx.user_id,
            sender_applicant_id=ctx.applicant_id if ctx.is_applicant else None,
            sender_email=sender_email,
            sender_name=sender.name,
            sender_role=ctx.role,
            body=body,
            message_type=message_type,
            attachments=attachments,
        )
        conversation.messages.append(message)

        now = utcnow()
        conversation.message_count = (conversation.message_count or 0) + 1
        conversation.last_message = body[:PREVIEW_LENGTH] if body else "(attachment)"
        conversation.last_message_at = now
        sender.last_read_at = now

        db.session.flush()
        _queue_new_message(conversation, message, ctx)
        db.session.commit()
    except Exception:
        db.session.rollback()
        for item in stored_attachments:
            storage_service.delete_stored(item["filename"])
        raise

    return message
