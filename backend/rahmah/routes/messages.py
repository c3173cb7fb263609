# Overview: Flask API routes for case conversations; staff via bearer session, applicants via magic link.

"""
Messaging Routes

Staff (/api/messages):
- GET  /conversations                       tenant conversations, most recent first
- POST /conversations                       open or fetch a case conversation {caseId}
- GET  /conversations/<key>                 conversation + messages, oldest first
- POST /conversations/<key>/messages        send
- POST /conversations/<key>/mark-read

Applicant (/api/applicant/messages):
- POST /conversations                       open own case conversation
- GET  /conversations/<key>
- POST /send                                {conversationId, body, attachments}
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles, require_applicant_token
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import MESSAGING_ROLES
from ..services import messaging_service
from ..validation import ValidationError


messages_bp = Blueprint("messages", __name__, url_prefix="/api/messages")
applicant_messages_bp = Blueprint("applicant_messages", __name__, url_prefix="/api/applicant/messages")


def _message_payload() -> tuple[dict, list]:
    """Multipart sends carry files under "attachments"; JSON sends carry attachment refs."""
    if request.mimetype == "multipart/form-data":
        payload = request.form.to_dict()
        payload.pop("attachments", None)
        return payload, request.files.getlist("attachments")
    return request.get_json(silent=True) or {}, []


def _conversation_view(conversation) -> dict:
    data = conversation.to_dict()
    data["messages"] = [m.to_dict() for m in messaging_service.visible_messages(conversation)]
    return data


# -- STAFF --

@messages_bp.get("/conversations")
@require_auth
@require_roles(*MESSAGING_ROLES, action="view conversations")
def list_conversations_route():
    conversations = messaging_service.list_conversations(g.actor)
    return jsonify({"conversations": [c.to_dict() for c in conversations]})


@messages_bp.post("/conversations")
@require_auth
@require_roles(*MESSAGING_ROLES, action="open conversations")
def open_conversation_route():
    data = request.get_json(silent=True) or {}
    case_ref = data.get("caseId") or data.get("applicantId")
    try:
        if case_ref in (None, ""):
            raise ValidationError("caseId is required")
        conversation = messaging_service.open_conversation(g.actor, case_ref)
        return jsonify(conversation.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to open conversation")


@messages_bp.get("/conversations/<key>")
@require_auth
@require_roles(*MESSAGING_ROLES, action="view conversations")
def get_conversation_route(key: str):
    try:
        return jsonify(_conversation_view(messaging_service.get_conversation(g.actor, key)))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@messages_bp.post("/conversations/<key>/messages")
@require_auth
@require_roles(*MESSAGING_ROLES, action="send messages")
def send_message_route(key: str):
    try:
        payload, uploads = _message_payload()
        message = messaging_service.send_message(g.actor, key, payload, uploads)
        return jsonify(message.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to send message")


@messages_bp.post("/conversations/<key>/mark-read")
@require_auth
@require_roles(*MESSAGING_ROLES, action="view conversations")
def mark_read_route(key: str):
    try:
        messaging_service.mark_read(g.actor, key)
        return jsonify({"message": "Marked as read"})
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


# -- APPLICANT --

@applicant_messages_bp.post("/conversations")
@require_applicant_token
def applicant_open_conversation_route():
    try:
        conversation = messaging_service.open_applicant_conversation(g.actor)
        return jsonify(conversation.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to open conversation")


@applicant_messages_bp.get("/conversations/<key>")
@require_applicant_token
def applicant_get_conversation_route(key: str):
    try:
        return jsonify(_conversation_view(messaging_service.get_conversation(g.actor, key)))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@applicant_messages_bp.post("/send")
@require_applicant_token
def applicant_send_route():
    try:
        payload, uploads = _message_payload()
        key = payload.get("conversationId")
        if not key:
            raise ValidationError("conversationId is required")
        message = messaging_service.send_message(g.actor, key, payload, uploads)
        return jsonify(message.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to send message")
