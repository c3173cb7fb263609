# Overview: Service-layer operations for payment records; record disbursements against grants and track their status.

"""
Payment Records

A payment is one disbursement against a grant. Once recorded only its
status may change (pending / completed / cancelled); corrections are made by
cancelling and recording a new payment.
"""

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import PaymentRecord
from ..permissions import ActorContext, PAYMENT_METHODS, PAYMENT_STATUSES
from ..validation import (
    ConflictError,
    ValidationError,
    amount_to_json,
    parse_amount,
    parse_int,
    require_choice,
)
from . import notification_service, storage_service
from .tenant_service import require_grant_in_tenant, require_in_tenant
from rahmah.time_utils import parse_iso_date, to_iso_date


def _payment_stats(tenant_id: int) -> dict:
    rows = (
        db.session.query(PaymentRecord.status, func.coalesce(func.sum(PaymentRecord.amount), 0))
        .filter(PaymentRecord.tenant_id == tenant_id)
        .group_by(PaymentRecord.status)
        .all()
    )
    by_status = {status: Decimal(str(total)) for status, total in rows}
    return {
        "total": amount_to_json(sum(by_status.values(), Decimal("0"))),
        "completed": amount_to_json(by_status.get("completed", Decimal("0"))),
        "pending": amount_to_json(by_status.get("pending", Decimal("0"))),
    }


def list_payments(ctx: ActorContext, status: str | None = None) -> dict:
    query = db.session.query(PaymentRecord).filter(PaymentRecord.tenant_id == ctx.tenant_id)
    if status:
        require_choice(status, PAYMENT_STATUSES, "status")
        query = query.filter(PaymentRecord.status == status)

    payments = query.order_by(PaymentRecord.payment_date.desc(), PaymentRecord.id.desc()).all()
    return {
        "payments": [p.to_dict() for p in payments],
        "stats": _payment_stats(ctx.tenant_id),
    }


def _clean_text(value, name: str, max_length: int) -> str | None:
    if value in (None, ""):
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text or None


def record_payment(ctx: ActorContext, payload: dict, proof=None) -> PaymentRecord:
    """
    Record a disbursement.

    Required: grantId, amount (> 0), paymentMethod, paymentDate.
    A duplicate transactionId is a ConflictError.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [f for f in ("grantId", "amount", "paymentMethod", "paymentDate") if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    grant = require_grant_in_tenant(parse_int(payload["grantId"], "grantId"), ctx.tenant_id)

    amount = parse_amount(payload["amount"], "amount")
    if amount <= 0:
        raise ValidationError("amount must be greater than 0")

    method = require_choice(payload["paymentMethod"], PAYMENT_METHODS, "paymentMethod")
    status = require_choice(payload.get("status") or "completed", PAYMENT_STATUSES, "status")

    try:
        payment_date = parse_iso_date(str(payload["paymentDate"]))
    except ValueError:
        raise ValidationError("paymentDate must be an ISO-8601 date")

    transaction_id = _clean_text(payload.get("transactionId"), "transactionId", 128)
    if transaction_id and db.session.query(PaymentRecord.id).filter_by(transaction_id=transaction_id).first():
        raise ConflictError("A payment with this transactionId already exists")

    stored = storage_service.store_upload(proof, prefix="proof") if proof and proof.filename else None

    applicant = grant.applicant
    try:
        payment = PaymentRecord(
            tenant_id=ctx.tenant_id,
            grant=grant,
            applicant_id=applicant.id,
            amount=amount,
            payment_method=method,
            transaction_id=transaction_id,
            check_number=_clean_text(payload.get("checkNumber"), "checkNumber", 64),
            payment_date=payment_date,
            remarks=_clean_text(payload.get("remarks"), "remarks", 10000),
            status=status,
            proof_filename=stored.stored_name if stored else None,
            proof_url=stored.url if stored else None,
            approved_by_id=ctx.user_id,
        )
        db.session.add(payment)

        notification_service.enqueue(
            "payment_confirmation",
            applicant.email,
            "Your Rahmah Payment Has Been Processed",
            {
                "case": {"case_id": applicant.case_id, "first_name": applicant.first_name},
                "payment": {
                    "amount": amount_to_json(amount),
                    "method": method,
                    "date": to_iso_date(payment_date),
                    "transaction_id": transaction_id,
                    "check_number": payment.check_number,
                },
            },
            tenant_id=ctx.tenant_id,
            applicant_id=applicant.id,
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        if stored:
            storage_service.delete_stored(stored.stored_name)
        raise

    return payment


def update_payment_status(ctx: ActorContext, payment_id: int, payload: dict) -> PaymentRecord:
    """Only `status` is mutable after creation."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    extra = sorted(k for k in payload if k != "status")
    if extra:
        raise ValidationError(f"Only status can be updated on a payment (got: {', '.join(extra)})")
    if "status" not in payload:
        raise ValidationError("status is required")

    status = require_choice(payload["status"], PAYMENT_STATUSES, "status")
    payment = require_in_tenant(db.session.get(PaymentRecord, payment_id), ctx.tenant_id, "Payment")

    payment.status = status
    db.session.commit()
    return payment
