from __future__ import annotations

from ..extensions import db
from ..permissions.definitions import CaseStatus
from rahmah.time_utils import to_utc_z, to_iso_date, utcnow
from rahmah.validation import amount_to_json


class Grant(db.Model):
    """
    Approved-amount record for a case, created on the first staff grant action.

    One grant per case by convention (grant_service upserts by applicant);
    no unique constraint, matching the historical data.

    Only canonical columns exist. The legacy names amountGranted / notes
    are translated at the API boundary and were folded into
    granted_amount / remarks by the initial migration.
    """
    __tablename__ = "grants"
    __table_args__ = (
        db.Index("ix_grants_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, index=True)

    granted_amount = db.Column(db.Numeric(12, 2), nullable=True)
    number_of_months = db.Column(db.Integer, nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=CaseStatus.PENDING)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    applicant = db.relationship("Applicant", backref=db.backref("grants", lazy=True, cascade="all, delete-orphan"))
    payment_documents = db.relationship(
        "GrantPaymentDocument",
        back_populates="grant",
        order_by="GrantPaymentDocument.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "applicantId": self.applicant_id,
            "caseId": self.applicant.case_id if self.applicant else None,
            "grantedAmount": amount_to_json(self.granted_amount),
            "numberOfMonths": self.number_of_months,
            "remarks": self.remarks,
            "status": self.status,
            "paymentDocuments": [d.to_dict() for d in self.payment_documents],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class GrantPaymentDocument(db.Model):
    """Proof-of-payment file attached to a grant by a treasurer."""
    __tablename__ = "grant_payment_documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    grant_id = db.Column(db.Integer, db.ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    url = db.Column(db.String(512), nullable=False)

    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    grant = db.relationship("Grant", back_populates="payment_documents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "originalname": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "url": self.url,
            "uploadedBy": self.uploaded_by_id,
            "uploadedAt": to_utc_z(self.uploaded_at),
        }


class PaymentRecord(db.Model):
    """
    One disbursement against a grant.

    IMMUTABLE except for status (pending / completed / cancelled).
    transaction_id, when given, is globally unique.
    """
    __tablename__ = "payment_records"
    __table_args__ = (
        db.Index("ix_payment_records_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    grant_id = db.Column(db.Integer, db.ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    transaction_id = db.Column(db.String(128), nullable=True, unique=True)
    check_number = db.Column(db.String(64), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)
    remarks = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    proof_filename = db.Column(db.String(255), nullable=True)
    proof_url = db.Column(db.String(512), nullable=True)

    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    grant = db.relationship("Grant", backref=db.backref("payments", lazy=True, cascade="all, delete-orphan"))
    applicant = db.relationship("Applicant")
    approved_by = db.relationship("User")

    def to_dict(self) -> dict:
        applicant = self.applicant
        return {
            "id": self.id,
            "grantId": self.grant_id,
            "applicantId": self.applicant_id,
            "caseId": applicant.case_id if applicant else None,
            "applicantName": applicant.full_name if applicant else None,
            "amount": amount_to_json(self.amount),
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "checkNumber": self.check_number,
            "paymentDate": to_iso_date(self.payment_date),
            "remarks": self.remarks,
            "status": self.status,
            "proofDocument": (
                {"filename": self.proof_filename, "url": self.proof_url}
                if self.proof_url else None
            ),
            "approvedBy": self.approved_by.name if self.approved_by else None,
            "createdAt": to_utc_z(self.created_at),
        }
