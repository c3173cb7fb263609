# Overview: Flask API routes for disbursement records; admin and treasurer only.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_roles
from ..errors import DOMAIN_ERRORS, domain_error_response, internal_error_response
from ..permissions import PAYMENT_ROLES
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
@require_roles(*PAYMENT_ROLES, action="view payments")
def list_payments_route():
    """
    Query params:
    - status: pending | completed | cancelled

    Returns {payments, stats: {total, completed, pending}}.
    """
    try:
        return jsonify(payment_service.list_payments(g.actor, request.args.get("status")))
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)


@payments_bp.post("")
@require_auth
@require_roles(*PAYMENT_ROLES, action="record payments")
def record_payment_route():
    """
    Record a payment against a grant.

    Accepts JSON, or multipart with an optional "proof" file.
    """
    try:
        if request.mimetype == "multipart/form-data":
            payload = request.form.to_dict()
            proof = request.files.get("proof")
        else:
            payload = request.get_json(silent=True)
            proof = None

        payment = payment_service.record_payment(g.actor, payload, proof)
        return jsonify(payment.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to record payment")


@payments_bp.patch("/<int:payment_id>")
@require_auth
@require_roles(*PAYMENT_ROLES, action="update payments")
def update_payment_route(payment_id: int):
    try:
        payment = payment_service.update_payment_status(g.actor, payment_id, request.get_json(silent=True))
        return jsonify(payment.to_dict())
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update payment")
