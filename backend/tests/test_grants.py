# Overview: Pytest coverage for grant upsert, grant-to-case status sync and grant payment documents.

import io

import pytest

from rahmah.models import Applicant, Grant, GrantPaymentDocument
from rahmah.permissions import CaseStatus
from rahmah.services import grant_service
from rahmah.services.permission_service import PermissionDeniedError
from rahmah.validation import ValidationError


PDF = b"%PDF-1.4\n%%EOF\n"


class TestCanonicalFields:

    def test_legacy_names_map_to_canonical(self):
        fields = grant_service.canonicalize_grant_fields({"amountGranted": 10, "notes": "n", "other": 1})
        assert fields == {"grantedAmount": 10, "remarks": "n"}

    def test_canonical_name_wins(self):
        fields = grant_service.canonicalize_grant_fields({"amountGranted": 10, "grantedAmount": 20})
        assert fields == {"grantedAmount": 20}

    def test_months_must_be_positive(self):
        with pytest.raises(ValidationError):
            grant_service.parse_grant_fields({"numberOfMonths": 0})


class TestUpsertGrant:

    def test_caseworker_creates_then_updates(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()
        headers = auth_headers(caseworker_a)

        created = client.post('/api/grants', json={"applicantId": applicant.id, "numberOfMonths": 6}, headers=headers)
        updated = client.post(
            '/api/grants', json={"applicantId": applicant.case_id, "remarks": "Rent only"}, headers=headers
        )

        assert created.status_code == 201
        assert created.get_json()["status"] == CaseStatus.PENDING
        assert updated.status_code == 200
        assert updated.get_json()["remarks"] == "Rent only"
        assert updated.get_json()["numberOfMonths"] == 6
        assert db_session.query(Grant).filter_by(applicant_id=applicant.id).count() == 1

    def test_creation_needs_amount_or_months(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        with pytest.raises(ValidationError):
            grant_service.upsert_grant(actor_for(admin_a), {"applicantId": applicant.id, "remarks": "Pending review"})
        assert db_session.query(Grant).count() == 0

    def test_applicant_id_required(self, client, db_session, admin_a, auth_headers):
        response = client.post('/api/grants', json={"grantedAmount": 100}, headers=auth_headers(admin_a))
        assert response.status_code == 400

    def test_caseworker_cannot_set_amount(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()
        response = client.post(
            '/api/grants', json={"applicantId": applicant.id, "grantedAmount": 500}, headers=auth_headers(caseworker_a)
        )
        assert response.status_code == 403
        assert db_session.query(Grant).count() == 0

    def test_caseworker_cannot_approve_grant(self, db_session, make_case, caseworker_a, actor_for):
        applicant = make_case()
        with pytest.raises(PermissionDeniedError):
            grant_service.upsert_grant(
                actor_for(caseworker_a),
                {"applicantId": applicant.id, "numberOfMonths": 2, "status": CaseStatus.APPROVED},
            )

    def test_unknown_status_defaults_to_pending(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        grant, created = grant_service.upsert_grant(
            actor_for(admin_a), {"applicantId": applicant.id, "grantedAmount": 100, "status": "Closed"}
        )
        assert created is True
        assert grant.status == CaseStatus.PENDING

    def test_legacy_input_stored_canonically(self, client, db_session, make_case, admin_a, auth_headers):
        applicant = make_case()
        response = client.post(
            '/api/grants',
            json={"applicantId": applicant.id, "amountGranted": "250.5", "notes": "Utilities"},
            headers=auth_headers(admin_a),
        )

        data = response.get_json()
        assert data["grantedAmount"] == 250.5
        assert data["remarks"] == "Utilities"
        assert "amountGranted" not in data and "notes" not in data


class TestGrantNotifications:

    def test_new_grant_emails_applicant(self, db_session, make_case, caseworker_a, actor_for, queued):
        applicant = make_case(email="grant@example.test")

        grant_service.upsert_grant(actor_for(caseworker_a), {"applicantId": applicant.id, "numberOfMonths": 4})

        rows = queued("grant_status")
        assert [r.recipient for r in rows] == ["grant@example.test"]
        assert "Months: 4" in rows[0].text_body

    def test_field_only_update_sends_nothing(self, db_session, make_case, caseworker_a, actor_for, queued):
        applicant = make_case()
        ctx = actor_for(caseworker_a)
        grant_service.upsert_grant(ctx, {"applicantId": applicant.id, "numberOfMonths": 4})

        grant_service.upsert_grant(ctx, {"applicantId": applicant.id, "remarks": "Updated"})

        assert len(queued("grant_status")) == 1

    def test_skip_email(self, db_session, make_case, admin_a, actor_for, queued):
        applicant = make_case()
        grant_service.upsert_grant(
            actor_for(admin_a), {"applicantId": applicant.id, "grantedAmount": 100, "skipEmail": True}
        )
        assert queued("grant_status") == []

    def test_old_case_is_silent(self, db_session, make_case, admin_a, actor_for, queued):
        applicant = make_case(isOldCase=True)
        grant_service.upsert_grant(actor_for(admin_a), {"applicantId": applicant.id, "grantedAmount": 100})
        assert queued() == []


class TestGrantCaseSync:

    def test_approved_grant_approves_case(self, db_session, make_case, approver_a, treasurer_a, actor_for, queued):
        applicant = make_case()

        grant, _ = grant_service.upsert_grant(
            actor_for(approver_a),
            {"applicantId": applicant.id, "grantedAmount": 800, "status": CaseStatus.APPROVED},
        )

        assert grant.status == CaseStatus.APPROVED
        assert db_session.get(Applicant, applicant.id).status == CaseStatus.APPROVED
        assert [r.recipient for r in queued("treasurer_payment_required")] == [treasurer_a.email]
        assert len(queued("status_approved")) == 1
        # The case status email replaces the grant email
        assert queued("grant_status") == []

    def test_treasurer_confirms_existing_grant(self, db_session, make_case, caseworker_a, treasurer_a, actor_for):
        applicant = make_case()
        grant_service.upsert_grant(actor_for(caseworker_a), {"applicantId": applicant.id, "numberOfMonths": 3})

        grant, created = grant_service.upsert_grant(
            actor_for(treasurer_a), {"applicantId": applicant.id, "status": CaseStatus.APPROVED}
        )

        assert created is False
        assert grant.status == CaseStatus.APPROVED
        assert applicant.status == CaseStatus.APPROVED

    def test_treasurer_cannot_create_grant_without_fields(self, db_session, make_case, treasurer_a, actor_for):
        applicant = make_case()
        with pytest.raises(ValidationError):
            grant_service.upsert_grant(
                actor_for(treasurer_a), {"applicantId": applicant.id, "status": CaseStatus.APPROVED}
            )
        assert db_session.get(Applicant, applicant.id).status == CaseStatus.PENDING


class TestListGrants:

    def test_list_and_total(self, client, db_session, make_case, admin_a, auth_headers, actor_for):
        first = make_case()
        second = make_case()
        ctx = actor_for(admin_a)
        grant_service.upsert_grant(ctx, {"applicantId": first.id, "grantedAmount": 100})
        grant_service.upsert_grant(ctx, {"applicantId": second.id, "grantedAmount": "50.25"})
        headers = auth_headers(admin_a)

        everything = client.get('/api/grants', headers=headers).get_json()
        one = client.get(f'/api/grants?applicantId={first.case_id}', headers=headers).get_json()

        assert everything["total"] == 2
        assert everything["totalGranted"] == 150.25
        assert [g["applicantId"] for g in one["items"]] == [first.id]


class TestPaymentDocuments:

    def _grant(self, make_case, admin_a, actor_for):
        applicant = make_case()
        grant, _ = grant_service.upsert_grant(actor_for(admin_a), {"applicantId": applicant.id, "grantedAmount": 100})
        return grant

    def test_treasurer_uploads_lists_and_deletes(
        self, client, db_session, make_case, admin_a, treasurer_a, caseworker_a, auth_headers, actor_for
    ):
        grant = self._grant(make_case, admin_a, actor_for)
        treasurer = auth_headers(treasurer_a)

        upload = client.post(
            f'/api/grants/{grant.id}/payment-documents',
            data={"files": [(io.BytesIO(PDF), "check-scan.pdf", "application/pdf")]},
            content_type='multipart/form-data',
            headers=treasurer,
        )
        assert upload.status_code == 201
        doc_id = upload.get_json()["documents"][0]["id"]

        listed = client.get(f'/api/grants/{grant.id}/payment-documents', headers=auth_headers(caseworker_a))
        assert [d["originalname"] for d in listed.get_json()["documents"]] == ["check-scan.pdf"]

        deleted = client.delete(f'/api/grants/{grant.id}/payment-documents/{doc_id}', headers=treasurer)
        assert deleted.status_code == 200
        assert db_session.query(GrantPaymentDocument).count() == 0

    def test_caseworker_cannot_upload(self, client, db_session, make_case, admin_a, caseworker_a, auth_headers, actor_for):
        grant = self._grant(make_case, admin_a, actor_for)
        response = client.post(
            f'/api/grants/{grant.id}/payment-documents',
            data={"files": [(io.BytesIO(PDF), "check-scan.pdf", "application/pdf")]},
            content_type='multipart/form-data',
            headers=auth_headers(caseworker_a),
        )
        assert response.status_code == 403

    def test_other_tenant_grant_is_404(self, client, db_session, make_case, admin_a, admin_b, auth_headers, actor_for):
        grant = self._grant(make_case, admin_a, actor_for)
        response = client.get(f'/api/grants/{grant.id}/payment-documents', headers=auth_headers(admin_b))
        assert response.status_code == 404
