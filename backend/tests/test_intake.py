# Overview: Pytest coverage for public intake, magic links, the applicant portal and document downloads.

import io
import re

import pytest

from rahmah.models import Applicant, ApplicantAccessToken, CaseDocument, DocumentAudit
from rahmah.services import case_service, session_service
from rahmah.services.tenant_service import TenantAccessError
from rahmah.validation import ConflictError, ValidationError


PDF = b"%PDF-1.4\n%%EOF\n"
CASE_ID_RE = re.compile(r"^CASE-\d{8}-[0-9A-Z]{6}$")


def intake_body(tenant, **overrides):
    body = {
        "tenantSlug": tenant.slug,
        "firstName": "Hamza",
        "lastName": "Rahman",
        "mobilePhone": "555-0199",
        "email": "Hamza@Example.test",
        "amountRequested": 1200,
        "reference1": {"fullName": "Imam Salim", "phoneNumber": "555-0111", "relationship": "Imam"},
    }
    body.update(overrides)
    return body


class TestIntakeService:

    def test_intake_creates_pending_case(self, db_session, tenant_a):
        applicant, errors = case_service.intake(intake_body(tenant_a))

        assert errors == []
        assert CASE_ID_RE.match(applicant.case_id)
        assert applicant.status == "Pending"
        assert applicant.tenant_id == tenant_a.id
        assert applicant.email == "hamza@example.test"
        assert applicant.reference1 == {"fullName": "Imam Salim", "phoneNumber": "555-0111", "relationship": "Imam"}
        assert applicant.is_old_case is False

    def test_intake_queues_confirmation_and_admin_summary(self, db_session, tenant_a, queued):
        applicant, _ = case_service.intake(intake_body(tenant_a))

        confirmations = queued("intake_confirmation")
        assert len(confirmations) == 1
        assert confirmations[0].recipient == "hamza@example.test"
        assert "http://portal.test/applicant-portal/login?token=" in confirmations[0].text_body
        assert applicant.case_id in confirmations[0].html_body

        admin_rows = queued("intake_admin")
        assert sorted(r.recipient for r in admin_rows) == ["office@al-noor.test", "zakat-admin@rahmah.test"]
        assert db_session.query(ApplicantAccessToken).filter_by(applicant_id=applicant.id).count() == 1

    def test_skip_email_is_silent_and_marks_old_case(self, db_session, tenant_a, queued):
        applicant, _ = case_service.intake(intake_body(tenant_a, skipEmail="true"))

        assert applicant.is_old_case is True
        assert queued() == []

    def test_duplicate_email_conflicts_across_tenants(self, db_session, tenant_a, tenant_b):
        case_service.intake(intake_body(tenant_a))
        with pytest.raises(ConflictError):
            case_service.intake(intake_body(tenant_b, email="hamza@example.test"))

    def test_missing_required_fields(self, db_session, tenant_a):
        with pytest.raises(ValidationError) as exc:
            case_service.intake(intake_body(tenant_a, firstName="", mobilePhone=None))
        assert "firstName" in str(exc.value)
        assert "mobilePhone" in str(exc.value)
        assert db_session.query(Applicant).count() == 0

    def test_unknown_field_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            case_service.intake(intake_body(tenant_a, favouriteColour="green"))

    def test_unknown_tenant(self, db_session, tenant_a):
        with pytest.raises(TenantAccessError):
            case_service.intake(intake_body(tenant_a, tenantSlug="nowhere"))

    def test_default_tenant_slug_fallback(self, app, db_session, tenant_a):
        app.config["DEFAULT_TENANT_SLUG"] = tenant_a.slug
        try:
            body = intake_body(tenant_a)
            del body["tenantSlug"]
            applicant, _ = case_service.intake(body)
        finally:
            app.config["DEFAULT_TENANT_SLUG"] = None
        assert applicant.tenant_id == tenant_a.id

    def test_invalid_uploads_are_reported_not_fatal(self, db_session, tenant_a, make_upload):
        uploads = [
            make_upload("id.pdf"),
            make_upload("notes.txt", data=b"hello", content_type="text/plain"),
            make_upload("fake.pdf", data=b"not really a pdf"),
        ]
        applicant, errors = case_service.intake(intake_body(tenant_a), uploads)

        assert len(applicant.documents) == 1
        assert applicant.documents[0].original_name == "id.pdf"
        assert applicant.documents[0].url.startswith("/api/documents/")
        assert len(errors) == 2

        audit = db_session.query(DocumentAudit).filter_by(applicant_id=applicant.id).one()
        assert audit.action == "uploaded"
        assert audit.actor_type == "applicant"

    def test_generated_case_ids_are_unique(self, db_session, make_case):
        ids = {make_case().case_id for _ in range(5)}
        assert len(ids) == 5

    def test_case_id_collision_draws_again(self, db_session, make_case, monkeypatch):
        existing = make_case()
        draws = [existing.case_id.rsplit("-", 1)[1], "ZX90Q1"]
        calls = []

        def next_suffix():
            calls.append(draws[len(calls)])
            return calls[-1]

        monkeypatch.setattr(case_service, "_random_suffix", next_suffix)

        case_id = case_service.generate_case_id()

        assert len(calls) == 2
        assert case_id != existing.case_id
        assert case_id.endswith("-ZX90Q1")
        assert CASE_ID_RE.match(case_id)


class TestIntakeRoutes:

    def test_post_json(self, client, db_session, tenant_a):
        response = client.post('/api/applicants', json=intake_body(tenant_a))

        assert response.status_code == 201
        data = response.get_json()
        assert CASE_ID_RE.match(data["caseId"])
        assert data["status"] == "Pending"
        assert data["amountRequested"] == 1200.0
        assert data["uploadErrors"] == []

    def test_post_multipart_with_documents(self, client, db_session, tenant_a):
        form = {k: str(v) for k, v in intake_body(tenant_a).items() if k != "reference1"}
        form["reference1"] = '{"fullName": "Imam Salim"}'
        form["documents"] = [
            (io.BytesIO(PDF), "lease.pdf", "application/pdf"),
            (io.BytesIO(b"MZ\x90\x00"), "setup.exe", "application/octet-stream"),
        ]
        response = client.post('/api/applicants', data=form, content_type='multipart/form-data')

        assert response.status_code == 201
        data = response.get_json()
        assert [d["originalname"] for d in data["documents"]] == ["lease.pdf"]
        assert len(data["uploadErrors"]) == 1
        assert data["reference1"] == {"fullName": "Imam Salim"}

    def test_duplicate_email_is_409(self, client, db_session, tenant_a):
        client.post('/api/applicants', json=intake_body(tenant_a))
        response = client.post('/api/applicants', json=intake_body(tenant_a))
        assert response.status_code == 409

    def test_missing_fields_is_400(self, client, db_session, tenant_a):
        response = client.post('/api/applicants', json={"tenantSlug": tenant_a.slug})
        assert response.status_code == 400
        assert "Missing required fields" in response.get_json()["error"]

    def test_check_email(self, client, db_session, make_case):
        make_case(email="known@example.test")

        known = client.get('/api/applicants/check-email?email=KNOWN@example.test')
        unknown = client.get('/api/applicants/check-email?email=other@example.test')
        missing = client.get('/api/applicants/check-email')

        assert known.get_json() == {"exists": True}
        assert unknown.get_json() == {"exists": False}
        assert missing.status_code == 400

    def test_request_login_link_known_email(self, client, db_session, make_case, queued):
        make_case(email="known@example.test")

        response = client.post('/api/applicants/request-login-link', json={"email": "known@example.test"})

        assert response.status_code == 200
        links = queued("magic_link")
        assert len(links) == 1
        assert "applicant-portal/login?token=" in links[0].text_body

    def test_request_login_link_unknown_email_is_indistinguishable(self, client, db_session, tenant_a, queued):
        response = client.post('/api/applicants/request-login-link', json={"email": "ghost@example.test"})

        assert response.status_code == 200
        assert queued("magic_link") == []


class TestApplicantPortal:

    def test_portal_with_magic_link(self, client, db_session, make_case):
        applicant = make_case()
        token = session_service.issue_applicant_token(applicant)
        db_session.commit()

        response = client.get('/api/applicant-portal/me', headers={'X-Applicant-Token': token})

        assert response.status_code == 200
        data = response.get_json()
        assert data["case"]["caseId"] == applicant.case_id
        assert data["documentAudit"] == []

    def test_portal_accepts_query_token(self, client, db_session, make_case):
        applicant = make_case()
        token = session_service.issue_applicant_token(applicant)
        db_session.commit()

        response = client.get(f'/api/applicant-portal/me?token={token}')
        assert response.status_code == 200

    def test_portal_rejects_bad_token(self, client, db_session):
        assert client.get('/api/applicant-portal/me').status_code == 401
        assert client.get('/api/applicant-portal/me', headers={'X-Applicant-Token': 'nope'}).status_code == 401

    def test_applicant_uploads_own_document(self, client, db_session, make_case):
        applicant = make_case()
        token = session_service.issue_applicant_token(applicant)
        db_session.commit()

        response = client.post(
            f'/api/applicants/{applicant.case_id}/documents',
            data={"documents": [(io.BytesIO(PDF), "payslip.pdf", "application/pdf")]},
            content_type='multipart/form-data',
            headers={'X-Applicant-Token': token},
        )

        assert response.status_code == 201
        portal = client.get('/api/applicant-portal/me', headers={'X-Applicant-Token': token}).get_json()
        assert [a["action"] for a in portal["documentAudit"]] == ["uploaded"]

    def test_applicant_cannot_upload_to_another_case(self, client, db_session, make_case):
        mine = make_case()
        other = make_case()
        token = session_service.issue_applicant_token(mine)
        db_session.commit()

        response = client.post(
            f'/api/applicants/{other.case_id}/documents',
            data={"documents": [(io.BytesIO(PDF), "payslip.pdf", "application/pdf")]},
            content_type='multipart/form-data',
            headers={'X-Applicant-Token': token},
        )
        assert response.status_code == 404


class TestDocumentDownload:

    def test_staff_download_and_tenant_scope(
        self, client, db_session, make_case, make_upload, admin_a, admin_b, auth_headers
    ):
        applicant = make_case(email="docs@example.test")
        doc, _ = case_service.add_documents(
            session_service.applicant_actor(applicant), applicant.id, [make_upload("bank.pdf")]
        )
        stored_name = doc[0].filename

        own = client.get(f'/api/documents/{stored_name}', headers=auth_headers(admin_a))
        foreign = client.get(f'/api/documents/{stored_name}', headers=auth_headers(admin_b))

        assert own.status_code == 200
        assert own.data.startswith(b"%PDF")
        assert own.mimetype == "application/pdf"
        assert foreign.status_code == 404

    def test_download_requires_credentials(self, client, db_session):
        assert client.get('/api/documents/doc-x.pdf').status_code == 401

    def test_staff_deletes_document_with_audit(
        self, client, db_session, make_case, make_upload, caseworker_a, auth_headers
    ):
        applicant = make_case()
        docs, _ = case_service.add_documents(
            session_service.applicant_actor(applicant), applicant.id, [make_upload("bank.pdf")]
        )
        doc_id = docs[0].id

        response = client.delete(
            f'/api/applicants/{applicant.id}/documents/{doc_id}', headers=auth_headers(caseworker_a)
        )

        assert response.status_code == 200
        assert db_session.query(CaseDocument).filter_by(id=doc_id).first() is None
        actions = [
            (a.action, a.actor_type)
            for a in db_session.query(DocumentAudit).filter_by(applicant_id=applicant.id).order_by(DocumentAudit.id)
        ]
        assert actions == [("uploaded", "applicant"), ("deleted", "caseworker")]
