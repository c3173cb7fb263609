# Overview: Service-layer operations for bulk import of historical cases (admin only, no emails).

"""
Historical Case Import

Each row becomes a case flagged is_old_case, so no intake, grant or status
email is ever sent for it. Rows are independent: a bad row is reported and
skipped, the rest are kept.

Per row:
- caseId kept when supplied and unused, otherwise generated
- status kept when it is a valid case status, otherwise Pending
- duplicate email (against stored cases or earlier rows) is a row error
"""

from flask import current_app

from ..extensions import db
from ..models import Applicant
from ..permissions import ActorContext, CASE_STATUSES, CaseStatus, Role
from ..validation import ValidationError, validate_payload
from . import permission_service
from .case_service import INTAKE_POLICY, email_taken, prepare_case_payload, generate_case_id


IMPORT_ONLY_FIELDS = {"caseId", "status"}

IMPORT_TEMPLATE = [
    {
        "firstName": "John",
        "lastName": "Doe",
        "email": "john.doe@example.com",
        "mobilePhone": "555-0123",
        "homePhone": "555-0124",
        "streetAddress": "123 Main St",
        "city": "San Francisco",
        "state": "CA",
        "zipCode": "94102",
        "gender": "M",
        "dateOfBirth": "1990-01-15",
        "legalStatus": "Citizen",
        "referredBy": "Community Center",
        "referrerPhone": "555-0125",
        "employmentStatus": "Unemployed",
        "dependentsInfo": "2 children",
        "totalMonthlyIncome": 1500,
        "incomeSources": "Part-time work",
        "rentMortgage": 1200,
        "utilities": 150,
        "food": 400,
        "otherExpenses": "Medical expenses",
        "totalDebts": 5000,
        "requestType": "Zakat",
        "amountRequested": 2000,
        "whyApplying": "Financial hardship",
        "circumstances": "Recently lost job",
        "previousZakat": "no",
        "caseId": "CASE-20250101-ABC123",
        "status": "Approved",
        "reference1": {
            "fullName": "Jane Smith",
            "phoneNumber": "555-0126",
            "email": "jane@example.com",
            "relationship": "Friend",
        },
    }
]


def _row_label(row) -> str:
    if isinstance(row, dict):
        return row.get("caseId") or row.get("firstName") or "Unknown"
    return "Unknown"


def _build_case(tenant_id: int, row: dict) -> Applicant:
    if not isinstance(row, dict):
        raise ValidationError("Row must be an object")

    fields = {k: v for k, v in row.items() if k not in IMPORT_ONLY_FIELDS}
    patch = validate_payload(
        model=Applicant,
        payload=prepare_case_payload(fields),
        policy=INTAKE_POLICY,
        partial=False,
    )
    if email_taken(patch.get("email")):
        raise ValidationError("Duplicate email")

    case_id = (row.get("caseId") or "").strip()
    if case_id:
        if len(case_id) > 32:
            raise ValidationError("caseId exceeds max length 32")
        if db.session.query(Applicant.id).filter_by(case_id=case_id).first():
            raise ValidationError(f"Duplicate caseId {case_id}")
    else:
        case_id = generate_case_id()

    status = row.get("status")
    if status not in CASE_STATUSES:
        status = CaseStatus.PENDING

    return Applicant(
        tenant_id=tenant_id,
        case_id=case_id,
        status=status,
        is_old_case=True,
        **patch,
    )


def import_cases(ctx: ActorContext, payload) -> dict:
    """Returns {"successful": n, "failed": n, "errors": [{applicant, error}]}."""
    permission_service.require_role(ctx, (Role.ADMIN,), action="import cases")

    rows = payload.get("cases") if isinstance(payload, dict) else payload
    if not isinstance(rows, list) or not rows:
        raise ValidationError("Cases array is required and must not be empty")

    results = {"successful": 0, "failed": 0, "errors": []}
    for row in rows:
        try:
            db.session.add(_build_case(ctx.tenant_id, row))
            db.session.commit()
        except ValidationError as e:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append({"applicant": _row_label(row), "error": str(e)})
        else:
            results["successful"] += 1

    current_app.logger.info(
        "Imported %s cases (%s failed) for tenant %s",
        results["successful"], results["failed"], ctx.tenant_id,
    )
    return results
