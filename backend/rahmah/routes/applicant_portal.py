# Overview: Applicant portal routes; magic-link token holders read their own case.

from flask import Blueprint, jsonify, g

from ..decorators import require_applicant_token
from ..services import case_service


applicant_portal_bp = Blueprint("applicant_portal", __name__, url_prefix="/api/applicant-portal")


@applicant_portal_bp.get("/me")
@require_applicant_token
def me_route():
    """
    The applicant's own case and its document audit log.

    Token via X-Applicant-Token header or ?token=.
    """
    return jsonify(case_service.portal_summary(g.applicant))
