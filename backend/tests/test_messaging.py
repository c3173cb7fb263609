# Overview: Pytest coverage for case conversations and new-message email fan-out.

import io

import pytest

from rahmah.models import Conversation, ConversationParticipant, Message
from rahmah.permissions import Role
from rahmah.services import messaging_service, session_service
from rahmah.services.auth_service import create_user
from rahmah.services.tenant_service import TenantAccessError
from rahmah.validation import ValidationError


PDF = b"%PDF-1.4\n%%EOF\n"


@pytest.fixture
def applicant(make_case):
    return make_case(email="asker@example.test")


@pytest.fixture
def applicant_headers(db_session, applicant):
    token = session_service.issue_applicant_token(applicant)
    db_session.commit()
    return {'X-Applicant-Token': token}


class TestOpenConversation:

    def test_staff_open_is_idempotent(self, client, db_session, applicant, caseworker_a, auth_headers):
        headers = auth_headers(caseworker_a)

        first = client.post('/api/messages/conversations', json={"caseId": applicant.case_id}, headers=headers)
        second = client.post('/api/messages/conversations', json={"caseId": applicant.id}, headers=headers)

        assert first.status_code == 200
        data = second.get_json()
        assert data["conversationId"] == f"case_{applicant.id}"
        assert data["caseNumber"] == applicant.case_id
        assert sorted(p["role"] for p in data["participants"]) == ["applicant", "caseworker"]
        assert db_session.query(Conversation).count() == 1

    def test_case_id_required(self, client, db_session, caseworker_a, auth_headers):
        response = client.post('/api/messages/conversations', json={}, headers=auth_headers(caseworker_a))
        assert response.status_code == 400

    def test_other_tenant_cannot_open_or_read(self, client, db_session, applicant, caseworker_a, admin_b, auth_headers, actor_for):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)
        headers = auth_headers(admin_b)

        opened = client.post('/api/messages/conversations', json={"caseId": applicant.id}, headers=headers)
        read = client.get(f'/api/messages/conversations/{conversation.conversation_key}', headers=headers)

        assert opened.status_code == 404
        assert read.status_code == 404

    def test_applicant_opens_own_conversation(self, client, db_session, applicant, applicant_headers):
        response = client.post('/api/applicant/messages/conversations', headers=applicant_headers)

        assert response.status_code == 200
        assert response.get_json()["conversationId"] == f"case_{applicant.id}"

    def test_applicant_cannot_read_another_case(self, db_session, make_case, applicant, caseworker_a, actor_for):
        other = make_case()
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), other.id)

        with pytest.raises(TenantAccessError):
            messaging_service.get_conversation(session_service.applicant_actor(applicant), conversation.conversation_key)


class TestStaffSends:

    def test_staff_message_emails_applicant(self, client, db_session, applicant, caseworker_a, auth_headers, actor_for, queued):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)

        response = client.post(
            f'/api/messages/conversations/{conversation.conversation_key}/messages',
            json={"body": "Please upload your latest bank statement."},
            headers=auth_headers(caseworker_a),
        )

        assert response.status_code == 201
        assert response.get_json()["senderRole"] == "caseworker"
        rows = queued("new_message")
        assert [r.recipient for r in rows] == ["asker@example.test"]
        assert "/applicant-portal/login" in rows[0].text_body
        assert "Please upload your latest bank statement." in rows[0].text_body

    def test_other_staff_are_notified_but_not_sender(
        self, db_session, applicant, caseworker_a, admin_a, approver_a, actor_for, queued
    ):
        for user in (caseworker_a, admin_a, approver_a):
            messaging_service.open_conversation(actor_for(user), applicant.id)
        key = f"case_{applicant.id}"

        messaging_service.send_message(actor_for(caseworker_a), key, {"body": "Update"})

        recipients = sorted(r.recipient for r in queued("new_message"))
        # Approvers are not on the new-message list
        assert recipients == sorted(["asker@example.test", admin_a.email])

    def test_staff_opt_out(self, db_session, applicant, caseworker_a, admin_a, actor_for, queued):
        admin_a.email_on_new_message = False
        db_session.commit()
        messaging_service.open_conversation(actor_for(admin_a), applicant.id)
        messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)

        messaging_service.send_message(actor_for(caseworker_a), f"case_{applicant.id}", {"body": "Update"})

        assert [r.recipient for r in queued("new_message")] == ["asker@example.test"]

    def test_empty_message_rejected(self, db_session, applicant, caseworker_a, actor_for):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)
        with pytest.raises(ValidationError):
            messaging_service.send_message(actor_for(caseworker_a), conversation.conversation_key, {"body": "   "})
        assert db_session.query(Message).count() == 0

    def test_attachment_only_message(self, client, db_session, applicant, caseworker_a, auth_headers, actor_for):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)

        response = client.post(
            f'/api/messages/conversations/{conversation.conversation_key}/messages',
            data={"attachments": [(io.BytesIO(PDF), "form.pdf", "application/pdf")]},
            content_type='multipart/form-data',
            headers=auth_headers(caseworker_a),
        )

        assert response.status_code == 201
        attachments = response.get_json()["attachments"]
        assert [a["originalname"] for a in attachments] == ["form.pdf"]
        assert attachments[0]["url"].startswith("/api/documents/")

        listed = client.get(
            f'/api/messages/conversations/{conversation.conversation_key}', headers=auth_headers(caseworker_a)
        ).get_json()
        assert listed["messageCount"] == 1
        assert listed["lastMessage"] == "(attachment)"

    def test_unknown_message_type(self, db_session, applicant, caseworker_a, actor_for):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)
        with pytest.raises(ValidationError):
            messaging_service.send_message(
                actor_for(caseworker_a), conversation.conversation_key, {"body": "x", "messageType": "shout"}
            )


class TestApplicantSends:

    def test_admin_named_staff_are_added_and_notified(
        self, client, db_session, tenant_a, applicant, applicant_headers, caseworker_a, actor_for, queued
    ):
        desk = create_user("Admin", "desk@al-noor.test", "Password123!", Role.ADMIN, tenant_id=tenant_a.id)
        messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)

        response = client.post(
            '/api/applicant/messages/send',
            json={"conversationId": f"case_{applicant.id}", "body": "I uploaded the lease."},
            headers=applicant_headers,
        )

        assert response.status_code == 201
        assert response.get_json()["senderRole"] == "applicant"
        participant_ids = {p.user_id for p in db_session.query(ConversationParticipant).all()}
        assert desk.id in participant_ids
        recipients = sorted(r.recipient for r in queued("new_message"))
        assert recipients == sorted(["desk@al-noor.test", caseworker_a.email])
        staff_row = next(r for r in queued("new_message") if r.recipient == caseworker_a.email)
        assert f"/staff/messages/case_{applicant.id}" in staff_row.text_body

    def test_conversation_id_required(self, client, db_session, applicant_headers):
        response = client.post('/api/applicant/messages/send', json={"body": "hi"}, headers=applicant_headers)
        assert response.status_code == 400

    def test_applicant_needs_token(self, client, db_session, applicant):
        response = client.post(
            '/api/applicant/messages/send', json={"conversationId": f"case_{applicant.id}", "body": "hi"}
        )
        assert response.status_code == 401


class TestMarkRead:

    def test_mark_read_sets_timestamp(self, client, db_session, applicant, caseworker_a, auth_headers, actor_for):
        conversation = messaging_service.open_conversation(actor_for(caseworker_a), applicant.id)

        response = client.post(
            f'/api/messages/conversations/{conversation.conversation_key}/mark-read',
            headers=auth_headers(caseworker_a),
        )

        assert response.status_code == 200
        participant = db_session.query(ConversationParticipant).filter_by(user_id=caseworker_a.id).one()
        assert participant.last_read_at is not None
