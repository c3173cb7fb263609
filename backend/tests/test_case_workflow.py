# Overview: Pytest coverage for staff case updates; role-gated status changes, field rights and status side effects.

"""
Case Workflow Tests

Test Coverage:
- Status changes allowed / denied per role, with denials audited
- Denied or invalid updates leave the case untouched
- Approval queues treasurer and applicant emails with the approval-note amount
- Rejection notifies assigned caseworkers (or every caseworker)
- Grant status mirrors the case status
- Grant fields in a case PUT obey the field table
- Listing, detail, and delete
"""

from datetime import timedelta

import pytest

from rahmah.models import Applicant, CaseAssignment, Grant, SecurityEvent
from rahmah.permissions import CaseStatus
from rahmah.services import case_service, note_service
from rahmah.services.permission_service import PermissionDeniedError
from rahmah.time_utils import utcnow
from rahmah.validation import ValidationError


def approval_note(actor, applicant, amount, content="Approved for three months rent"):
    return note_service.create_note(actor, applicant.id, {
        "noteType": "approval_note",
        "content": content,
        "approvalAmount": amount,
    })


class TestStatusPermissions:

    def test_caseworker_moves_case_into_review(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()

        response = client.put(
            f'/api/applicants/{applicant.id}',
            json={"status": CaseStatus.IN_REVIEW},
            headers=auth_headers(caseworker_a),
        )

        assert response.status_code == 200
        assert response.get_json()["status"] == CaseStatus.IN_REVIEW

    def test_caseworker_cannot_approve(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()

        response = client.put(
            f'/api/applicants/{applicant.case_id}',
            json={"status": CaseStatus.APPROVED},
            headers=auth_headers(caseworker_a),
        )

        assert response.status_code == 403
        assert f"allowed: {CaseStatus.PENDING}, {CaseStatus.IN_REVIEW}" in response.get_json()["error"]
        db_session.expire_all()
        assert db_session.get(Applicant, applicant.id).status == CaseStatus.PENDING
        event = db_session.query(SecurityEvent).filter_by(event_type="STATUS_DENIED").one()
        assert event.user_id == caseworker_a.id
        assert event.success is False

    def test_treasurer_may_only_confirm(self, db_session, make_case, treasurer_a, actor_for):
        applicant = make_case()
        ctx = actor_for(treasurer_a)

        with pytest.raises(PermissionDeniedError):
            case_service.update_case(ctx, applicant.id, {"status": CaseStatus.REJECTED})

        updated = case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})
        assert updated.status == CaseStatus.APPROVED

    def test_approver_status_with_case_data_is_denied_whole(
        self, db_session, make_case, approver_a, actor_for
    ):
        applicant = make_case(city="Fremont")

        with pytest.raises(PermissionDeniedError):
            case_service.update_case(
                actor_for(approver_a), applicant.id, {"status": CaseStatus.APPROVED, "city": "Oakland"}
            )

        db_session.expire_all()
        stored = db_session.get(Applicant, applicant.id)
        assert stored.status == CaseStatus.PENDING
        assert stored.city == "Fremont"
        assert db_session.query(SecurityEvent).filter_by(event_type="FIELD_DENIED").count() == 1

    def test_invalid_status_is_400(self, client, db_session, make_case, admin_a, auth_headers):
        applicant = make_case()

        response = client.put(
            f'/api/applicants/{applicant.id}', json={"status": "Closed"}, headers=auth_headers(admin_a)
        )

        assert response.status_code == 400
        assert "status must be one of" in response.get_json()["error"]

    def test_no_session_is_401(self, client, db_session, make_case):
        applicant = make_case()
        response = client.put(f'/api/applicants/{applicant.id}', json={"status": CaseStatus.IN_REVIEW})
        assert response.status_code == 401


class TestCaseDataUpdates:

    def test_caseworker_edits_case_data(self, db_session, make_case, caseworker_a, actor_for):
        applicant = make_case()

        updated = case_service.update_case(
            actor_for(caseworker_a), applicant.id, {"city": "Hayward", "totalMonthlyIncome": "2100.50"}
        )

        assert updated.city == "Hayward"
        assert float(updated.total_monthly_income) == 2100.50

    def test_read_only_echoes_are_ignored(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        echoed = applicant.to_dict()
        echoed["city"] = "San Jose"

        updated = case_service.update_case(actor_for(admin_a), applicant.id, echoed)

        assert updated.city == "San Jose"
        assert updated.case_id == applicant.case_id

    def test_unknown_field_is_400(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        with pytest.raises(ValidationError):
            case_service.update_case(actor_for(admin_a), applicant.id, {"shoeSize": 44})

    def test_email_collision_is_409(self, client, db_session, make_case, admin_a, auth_headers):
        first = make_case(email="first@example.test")
        second = make_case(email="second@example.test")

        response = client.put(
            f'/api/applicants/{second.id}', json={"email": "FIRST@example.test"}, headers=auth_headers(admin_a)
        )

        assert response.status_code == 409
        assert first.email == "first@example.test"


class TestApprovalSideEffects:

    def test_approver_approval_notifies_treasurers_and_applicant(
        self, db_session, make_case, approver_a, treasurer_a, actor_for, queued
    ):
        applicant = make_case(email="applicant@example.test")
        ctx = actor_for(approver_a)
        approval_note(ctx, applicant, "500", content="First estimate")
        approval_note(ctx, applicant, "750")

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})

        treasurer_rows = queued("treasurer_payment_required")
        assert [r.recipient for r in treasurer_rows] == [treasurer_a.email]
        assert "Approved amount: $750.00" in treasurer_rows[0].text_body
        assert "First estimate" in treasurer_rows[0].text_body
        assert "Fatima Approver" in treasurer_rows[0].text_body

        applicant_rows = queued("status_approved")
        assert [r.recipient for r in applicant_rows] == ["applicant@example.test"]
        assert "Approved amount: $750.00" in applicant_rows[0].text_body

    def test_admin_approval_skips_treasurers(self, db_session, make_case, admin_a, treasurer_a, actor_for, queued):
        applicant = make_case()

        case_service.update_case(actor_for(admin_a), applicant.id, {"status": CaseStatus.APPROVED})

        assert queued("treasurer_payment_required") == []
        assert len(queued("status_approved")) == 1

    def test_approval_without_note_omits_amount(self, db_session, make_case, approver_a, actor_for, queued):
        applicant = make_case()

        case_service.update_case(actor_for(approver_a), applicant.id, {"status": CaseStatus.APPROVED})

        assert "Approved amount" not in queued("status_approved")[0].text_body

    def test_unchanged_status_sends_nothing(self, db_session, make_case, admin_a, actor_for, queued):
        applicant = make_case()
        ctx = actor_for(admin_a)
        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})
        before = len(queued())

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})

        assert len(queued()) == before

    def test_applicant_without_email_gets_nothing(self, db_session, make_case, admin_a, actor_for, queued):
        applicant = make_case(email=None)

        case_service.update_case(actor_for(admin_a), applicant.id, {"status": CaseStatus.REJECTED})

        assert queued("status_rejected") == []


class TestRejectionSideEffects:

    def test_rejection_notifies_assigned_caseworker_only(
        self, db_session, make_case, approver_a, caseworker_a, tenant_a, actor_for, queued
    ):
        from rahmah.services.auth_service import create_user
        other = create_user("Zaid Caseworker", "zaid@al-noor.test", "Password123!", "caseworker", tenant_id=tenant_a.id)
        applicant = make_case()
        db_session.add(CaseAssignment(
            tenant_id=tenant_a.id,
            applicant_id=applicant.id,
            case_id=applicant.case_id,
            assigned_to_id=caseworker_a.id,
            status="active",
        ))
        db_session.commit()

        case_service.update_case(actor_for(approver_a), applicant.id, {"status": CaseStatus.REJECTED})

        rows = queued("caseworker_case_rejected")
        assert [r.recipient for r in rows] == [caseworker_a.email]
        assert other.email not in [r.recipient for r in rows]
        assert len(queued("status_rejected")) == 1

    def test_rejection_without_assignment_notifies_all_caseworkers(
        self, db_session, make_case, approver_a, caseworker_a, tenant_a, actor_for, queued
    ):
        from rahmah.services.auth_service import create_user
        other = create_user("Zaid Caseworker", "zaid@al-noor.test", "Password123!", "caseworker", tenant_id=tenant_a.id)
        applicant = make_case()
        note_service.create_note(actor_for(approver_a), applicant.id, {"content": "Income not verified"})

        case_service.update_case(actor_for(approver_a), applicant.id, {"status": CaseStatus.REJECTED})

        rows = queued("caseworker_case_rejected")
        assert sorted(r.recipient for r in rows) == sorted([caseworker_a.email, other.email])
        assert "Income not verified" in rows[0].text_body


class TestNoteSelection:
    """Which notes the approval and rejection emails carry."""

    def _backdate(self, db_session, note, minutes_ago):
        note.created_at = utcnow() - timedelta(minutes=minutes_ago)
        db_session.commit()

    def test_treasurer_email_carries_five_newest_approval_notes(
        self, db_session, make_case, approver_a, treasurer_a, actor_for, queued
    ):
        applicant = make_case()
        ctx = actor_for(approver_a)
        for i in range(1, 7):
            note = approval_note(ctx, applicant, 100 * i, content=f"Approval step {i}")
            self._backdate(db_session, note, minutes_ago=60 - i)

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})

        text = queued("treasurer_payment_required")[0].text_body
        assert "Approval step 1" not in text
        positions = [text.index(f"Approval step {i}") for i in (6, 5, 4, 3, 2)]
        assert positions == sorted(positions)
        assert "Approved amount: $600.00" in text

    def test_latest_amount_wins_over_larger_older_one(
        self, db_session, make_case, approver_a, treasurer_a, actor_for, queued
    ):
        applicant = make_case(email="applicant@example.test")
        ctx = actor_for(approver_a)
        older = approval_note(ctx, applicant, "9000", content="Initial estimate")
        newer = approval_note(ctx, applicant, "1250.5", content="Revised after interview")
        newest = approval_note(ctx, applicant, None, content="Confirmed with family")
        self._backdate(db_session, older, minutes_ago=30)
        self._backdate(db_session, newer, minutes_ago=20)
        self._backdate(db_session, newest, minutes_ago=10)

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.APPROVED})

        treasurer_text = queued("treasurer_payment_required")[0].text_body
        applicant_text = queued("status_approved")[0].text_body
        assert "Approved amount: $1,250.50" in treasurer_text
        assert "($9,000.00)" in treasurer_text
        assert "Approved amount: $1,250.50" in applicant_text
        assert "9,000" not in applicant_text

    def test_rejection_email_uses_last_day_and_caps_at_ten(
        self, db_session, make_case, approver_a, caseworker_a, actor_for, queued
    ):
        applicant = make_case()
        ctx = actor_for(approver_a)
        stale = note_service.create_note(ctx, applicant.id, {"content": "Stale remark"})
        stale.created_at = utcnow() - timedelta(hours=25)
        db_session.commit()
        for i in range(1, 12):
            note = note_service.create_note(ctx, applicant.id, {"content": f"Recent remark {i:02d}"})
            self._backdate(db_session, note, minutes_ago=120 - i)

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.REJECTED})

        text = queued("caseworker_case_rejected")[0].text_body
        assert "Stale remark" not in text
        assert "Recent remark 01" not in text
        assert text.count("Recent remark") == 10
        assert text.index("Recent remark 11") < text.index("Recent remark 02")


class TestGrantMirroring:

    def test_case_status_mirrors_onto_grant(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        ctx = actor_for(admin_a)
        case_service.update_case(ctx, applicant.id, {"grant": {"grantedAmount": 900}})

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.REJECTED})

        grant = db_session.query(Grant).filter_by(applicant_id=applicant.id).one()
        assert grant.status == CaseStatus.REJECTED

    def test_non_grant_status_leaves_grant_alone(self, db_session, make_case, admin_a, actor_for):
        applicant = make_case()
        ctx = actor_for(admin_a)
        case_service.update_case(ctx, applicant.id, {"grant": {"grantedAmount": 900}})

        case_service.update_case(ctx, applicant.id, {"status": CaseStatus.IN_REVIEW})

        grant = db_session.query(Grant).filter_by(applicant_id=applicant.id).one()
        assert grant.status == CaseStatus.PENDING

    def test_caseworker_sets_months_but_not_amount(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()
        headers = auth_headers(caseworker_a)

        ok = client.put(f'/api/applicants/{applicant.id}', json={"grant": {"numberOfMonths": 3}}, headers=headers)
        denied = client.put(f'/api/applicants/{applicant.id}', json={"grantedAmount": 300}, headers=headers)

        assert ok.status_code == 200
        assert ok.get_json()["grant"]["numberOfMonths"] == 3
        assert denied.status_code == 403

    def test_legacy_grant_names_are_canonicalized(self, client, db_session, make_case, admin_a, auth_headers):
        applicant = make_case()

        response = client.put(
            f'/api/applicants/{applicant.id}',
            json={"amountGranted": 640, "notes": "Rent support"},
            headers=auth_headers(admin_a),
        )

        grant = response.get_json()["grant"]
        assert grant["grantedAmount"] == 640.0
        assert grant["remarks"] == "Rent support"
        assert "amountGranted" not in grant
        assert "notes" not in grant


class TestListAndDelete:

    def test_list_filters_and_paginates(self, client, db_session, make_case, admin_a, auth_headers, actor_for):
        for _ in range(3):
            make_case()
        searched = make_case(firstName="Khadija")
        case_service.update_case(actor_for(admin_a), searched.id, {"status": CaseStatus.IN_REVIEW})
        headers = auth_headers(admin_a)

        page = client.get('/api/applicants?limit=2&page=2', headers=headers).get_json()
        by_status = client.get('/api/applicants', query_string={"status": "In Review"}, headers=headers).get_json()
        by_query = client.get('/api/applicants?q=khadija', headers=headers).get_json()

        assert page["total"] == 4
        assert len(page["items"]) == 2
        assert page["page"] == 2
        assert [c["id"] for c in by_status["items"]] == [searched.id]
        assert [c["firstName"] for c in by_query["items"]] == ["Khadija"]

    def test_list_rejects_unknown_status(self, client, db_session, admin_a, auth_headers):
        response = client.get('/api/applicants?status=Lost', headers=auth_headers(admin_a))
        assert response.status_code == 400

    def test_detail_includes_grant(self, client, db_session, make_case, admin_a, auth_headers):
        applicant = make_case()
        response = client.get(f'/api/applicants/{applicant.case_id}', headers=auth_headers(admin_a))

        assert response.status_code == 200
        assert response.get_json()["grant"] is None

    def test_admin_deletes_case_with_dependents(
        self, client, db_session, make_case, make_upload, admin_a, auth_headers, actor_for
    ):
        applicant = make_case()
        ctx = actor_for(admin_a)
        case_service.add_documents(ctx, applicant.id, [make_upload()])
        case_service.update_case(ctx, applicant.id, {"grant": {"grantedAmount": 100}})
        note_service.create_note(ctx, applicant.id, {"content": "Called applicant"})
        applicant_id = applicant.id

        response = client.delete(f'/api/applicants/{applicant_id}', headers=auth_headers(admin_a))

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Applicant, applicant_id) is None
        assert db_session.query(Grant).filter_by(applicant_id=applicant_id).count() == 0

    def test_caseworker_cannot_delete(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()
        response = client.delete(f'/api/applicants/{applicant.id}', headers=auth_headers(caseworker_a))
        assert response.status_code == 403
