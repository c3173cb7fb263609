# Overview: Pytest coverage for assigning cases to caseworkers and accepting assignments.

import pytest

from rahmah.models import CaseAssignment
from rahmah.permissions import Role
from rahmah.services import assignment_service
from rahmah.services.auth_service import create_user
from rahmah.services.permission_service import PermissionDeniedError
from rahmah.services.tenant_service import TenantAccessError
from rahmah.validation import ValidationError


class TestCreateAssignment:

    def test_admin_assigns_and_caseworker_is_emailed(
        self, client, db_session, make_case, admin_a, caseworker_a, auth_headers, queued
    ):
        applicant = make_case()

        response = client.post(
            '/api/case-assignments',
            json={
                "applicantId": applicant.case_id,
                "assignedTo": caseworker_a.id,
                "priority": "urgent",
                "assignmentNotes": "Rent due Friday",
            },
            headers=auth_headers(admin_a),
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "pending"
        assert data["caseId"] == applicant.case_id
        assert data["assignedToName"] == "Omar Caseworker"
        assert data["notificationSentAt"] is not None

        rows = queued("case_assignment")
        assert [r.recipient for r in rows] == [caseworker_a.email]
        assert "Priority: urgent" in rows[0].text_body
        assert "Notes: Rent due Friday" in rows[0].text_body
        assert f"/admin/cases/{applicant.id}" in rows[0].text_body

    def test_caseworker_cannot_assign(self, client, db_session, make_case, caseworker_a, auth_headers):
        applicant = make_case()
        response = client.post(
            '/api/case-assignments',
            json={"applicantId": applicant.id, "assignedTo": caseworker_a.id},
            headers=auth_headers(caseworker_a),
        )
        assert response.status_code == 403

    def test_assignee_must_be_caseworker(self, db_session, make_case, admin_a, approver_a, actor_for):
        applicant = make_case()
        with pytest.raises(ValidationError):
            assignment_service.create_assignment(
                actor_for(admin_a), {"applicantId": applicant.id, "assignedTo": approver_a.id}
            )

    def test_assignee_must_be_active(self, db_session, make_case, admin_a, caseworker_a, actor_for):
        applicant = make_case()
        caseworker_a.is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            assignment_service.create_assignment(
                actor_for(admin_a), {"applicantId": applicant.id, "assignedTo": caseworker_a.id}
            )

    def test_assignee_from_other_tenant(self, db_session, make_case, admin_a, tenant_b, actor_for):
        applicant = make_case()
        outsider = create_user("Zaid Caseworker", "zaid@baitul-mal.test", "Password123!", Role.CASEWORKER, tenant_id=tenant_b.id)

        with pytest.raises(TenantAccessError):
            assignment_service.create_assignment(
                actor_for(admin_a), {"applicantId": applicant.id, "assignedTo": outsider.id}
            )
        assert db_session.query(CaseAssignment).count() == 0

    @pytest.mark.parametrize("payload", [
        {"assignedTo": 1},
        {"applicantId": 1},
        {"applicantId": 1, "assignedTo": "abc"},
    ])
    def test_missing_or_bad_fields(self, db_session, admin_a, actor_for, payload):
        with pytest.raises(ValidationError):
            assignment_service.create_assignment(actor_for(admin_a), payload)


class TestListAndAccept:

    def _assign(self, make_case, admin_a, caseworker, actor_for):
        applicant = make_case()
        return assignment_service.create_assignment(
            actor_for(admin_a), {"applicantId": applicant.id, "assignedTo": caseworker.id}
        )

    def test_caseworker_sees_only_own(self, client, db_session, make_case, admin_a, caseworker_a, tenant_a, auth_headers, actor_for):
        other = create_user("Hana Caseworker", "hana@al-noor.test", "Password123!", Role.CASEWORKER, tenant_id=tenant_a.id)
        mine = self._assign(make_case, admin_a, caseworker_a, actor_for)
        self._assign(make_case, admin_a, other, actor_for)

        own = client.get('/api/case-assignments', headers=auth_headers(caseworker_a)).get_json()
        everything = client.get('/api/case-assignments', headers=auth_headers(admin_a)).get_json()

        assert [a["id"] for a in own["assignments"]] == [mine.id]
        assert len(everything["assignments"]) == 2

    def test_assignee_accepts(self, client, db_session, make_case, admin_a, caseworker_a, auth_headers, actor_for):
        assignment = self._assign(make_case, admin_a, caseworker_a, actor_for)

        response = client.post(
            f'/api/case-assignments/{assignment.id}/accept', headers=auth_headers(caseworker_a)
        )

        assert response.status_code == 200
        assert response.get_json()["status"] == "active"
        assert response.get_json()["acceptedAt"] is not None

    def test_other_caseworker_cannot_accept(self, db_session, make_case, admin_a, caseworker_a, tenant_a, actor_for):
        other = create_user("Hana Caseworker", "hana@al-noor.test", "Password123!", Role.CASEWORKER, tenant_id=tenant_a.id)
        assignment = self._assign(make_case, admin_a, caseworker_a, actor_for)

        with pytest.raises(PermissionDeniedError):
            assignment_service.accept_assignment(actor_for(other), assignment.id)

    def test_accepting_twice_is_rejected(self, db_session, make_case, admin_a, caseworker_a, actor_for):
        assignment = self._assign(make_case, admin_a, caseworker_a, actor_for)
        ctx = actor_for(caseworker_a)
        assignment_service.accept_assignment(ctx, assignment.id)

        with pytest.raises(ValidationError):
            assignment_service.accept_assignment(ctx, assignment.id)
