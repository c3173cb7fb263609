from __future__ import annotations

from ..extensions import db
from ..permissions.definitions import CaseStatus
from rahmah.time_utils import to_utc_z, to_iso_date, utcnow
from rahmah.validation import amount_to_json


class Applicant(db.Model):
    """
    A Zakat application (the "case").

    MULTI-TENANT: every case belongs to one tenant.
    caseId is human-readable (CASE-YYYYMMDD-XXXXXX); it is unique per tenant
    by constraint and generated to be unique across all tenants.

    STATUS: always one of CASE_STATUSES, default Pending. Mutated only by
    case_service / grant_service so the role tables are always applied.

    Financial/biographical columns are opaque to the workflow: stored and
    returned, never interpreted.
    """
    __tablename__ = "applicants"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "case_id", name="uq_applicants_tenant_case_id"),
        db.Index("ix_applicants_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = db.Column(db.String(32), nullable=False, index=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    street_address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    zip_code = db.Column(db.String(16), nullable=True)
    gender = db.Column(db.String(16), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    mobile_phone = db.Column(db.String(32), nullable=False)
    home_phone = db.Column(db.String(32), nullable=True)
    # NULLs do not collide; a present email identifies one case globally
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)

    legal_status = db.Column(db.String(64), nullable=True)
    referred_by = db.Column(db.String(255), nullable=True)
    referrer_phone = db.Column(db.String(32), nullable=True)

    employment_status = db.Column(db.String(64), nullable=True)
    dependents_info = db.Column(db.Text, nullable=True)
    total_monthly_income = db.Column(db.Numeric(12, 2), nullable=True)
    income_sources = db.Column(db.Text, nullable=True)
    rent_mortgage = db.Column(db.Numeric(12, 2), nullable=True)
    utilities = db.Column(db.Numeric(12, 2), nullable=True)
    food = db.Column(db.Numeric(12, 2), nullable=True)
    other_expenses = db.Column(db.Text, nullable=True)
    total_debts = db.Column(db.Numeric(12, 2), nullable=True)

    request_type = db.Column(db.String(64), nullable=False, default="Zakat")
    amount_requested = db.Column(db.Numeric(12, 2), nullable=True)
    why_applying = db.Column(db.Text, nullable=True)
    circumstances = db.Column(db.Text, nullable=True)
    previous_zakat = db.Column(db.String(255), nullable=True)
    zakat_resource_source = db.Column(db.String(255), nullable=True)

    # {fullName, phoneNumber, email, relationship}
    reference1 = db.Column(db.JSON, nullable=True)
    reference2 = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=CaseStatus.PENDING, index=True)
    # Back-filled historical record: intake and grant emails are suppressed
    is_old_case = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    tenant = db.relationship("Tenant", backref=db.backref("applicants", lazy=True))
    documents = db.relationship(
        "CaseDocument",
        back_populates="applicant",
        order_by="CaseDocument.id",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Applicant id={self.id} case_id={self.case_id!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "caseId": self.case_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "streetAddress": self.street_address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "gender": self.gender,
            "dateOfBirth": to_iso_date(self.date_of_birth),
            "mobilePhone": self.mobile_phone,
            "homePhone": self.home_phone,
            "email": self.email,
            "legalStatus": self.legal_status,
            "referredBy": self.referred_by,
            "referrerPhone": self.referrer_phone,
            "employmentStatus": self.employment_status,
            "dependentsInfo": self.dependents_info,
            "totalMonthlyIncome": amount_to_json(self.total_monthly_income),
            "incomeSources": self.income_sources,
            "rentMortgage": amount_to_json(self.rent_mortgage),
            "utilities": amount_to_json(self.utilities),
            "food": amount_to_json(self.food),
            "otherExpenses": self.other_expenses,
            "totalDebts": amount_to_json(self.total_debts),
            "requestType": self.request_type,
            "amountRequested": amount_to_json(self.amount_requested),
            "whyApplying": self.why_applying,
            "circumstances": self.circumstances,
            "previousZakat": self.previous_zakat,
            "zakatResourceSource": self.zakat_resource_source,
            "reference1": self.reference1,
            "reference2": self.reference2,
            "documents": [d.to_dict() for d in self.documents],
            "status": self.status,
            "isOldCase": self.is_old_case,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "caseId": self.case_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "mobilePhone": self.mobile_phone,
            "amountRequested": amount_to_json(self.amount_requested),
            "status": self.status,
            "isOldCase": self.is_old_case,
            "documentCount": len(self.documents),
            "createdAt": to_utc_z(self.created_at),
        }


class CaseDocument(db.Model):
    """Uploaded file metadata owned by a case, in upload order."""
    __tablename__ = "case_documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = db.Column(db.String(255), nullable=False)  # stored name
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    url = db.Column(db.String(512), nullable=False)

    uploaded_by = db.Column(db.String(32), nullable=False, default="applicant")  # applicant | caseworker
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    applicant = db.relationship("Applicant", back_populates="documents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "originalname": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "url": self.url,
            "uploadedBy": self.uploaded_by,
            "uploadedAt": to_utc_z(self.uploaded_at),
        }


class DocumentAudit(db.Model):
    """
    Append-only log of document uploads and deletions on a case.

    Shown to the applicant in the portal, so it records who acted
    (applicant or staff) but never staff identities.
    """
    __tablename__ = "document_audits"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, index=True)

    document_name = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(16), nullable=False)  # uploaded | deleted
    actor_type = db.Column(db.String(16), nullable=False)  # applicant | caseworker
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentName": self.document_name,
            "action": self.action,
            "actorType": self.actor_type,
            "createdAt": to_utc_z(self.created_at),
        }


class CaseAssignment(db.Model):
    """
    Caseworker assignment for a case.

    pending/accepted/active assignments are "active": they decide who hears
    about a rejection.
    """
    __tablename__ = "case_assignments"
    __table_args__ = (
        db.Index("ix_case_assignments_applicant_status", "applicant_id", "status"),
        db.Index("ix_case_assignments_assignee_status", "assigned_to_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False)
    case_id = db.Column(db.String(32), nullable=False)

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    priority = db.Column(db.String(16), nullable=False, default="medium")
    assignment_notes = db.Column(db.Text, nullable=True)

    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notification_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    applicant = db.relationship("Applicant", backref=db.backref("assignments", lazy=True, cascade="all, delete-orphan"))
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    assigned_by = db.relationship("User", foreign_keys=[assigned_by_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "applicantId": self.applicant_id,
            "caseId": self.case_id,
            "assignedTo": self.assigned_to_id,
            "assignedToName": self.assigned_to.name if self.assigned_to else None,
            "assignedBy": self.assigned_by_id,
            "status": self.status,
            "priority": self.priority,
            "assignmentNotes": self.assignment_notes,
            "acceptedAt": to_utc_z(self.accepted_at),
            "completedAt": to_utc_z(self.completed_at),
            "notificationSentAt": to_utc_z(self.notification_sent_at),
            "createdAt": to_utc_z(self.created_at),
        }


class CaseNote(db.Model):
    """
    Staff annotation on a case.

    approval_note rows are written by approvers and may carry
    approval_amount, the authoritative approved figure used in
    approval notifications. Ordering is (created_at, id) so two notes
    written in the same instant still have a stable "most recent".
    """
    __tablename__ = "case_notes"
    __table_args__ = (
        db.Index("ix_case_notes_applicant_created", "applicant_id", "created_at"),
        db.Index("ix_case_notes_type_internal", "note_type", "is_internal"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False)

    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_name = db.Column(db.String(255), nullable=False)
    author_email = db.Column(db.String(255), nullable=True)
    author_role = db.Column(db.String(32), nullable=False)

    title = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    note_type = db.Column(db.String(32), nullable=False, default="internal_note")
    is_internal = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.String(16), nullable=False, default="medium")

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    approval_amount = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    applicant = db.relationship("Applicant", backref=db.backref("notes", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "caseId": self.applicant_id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "authorEmail": self.author_email,
            "authorRole": self.author_role,
            "title": self.title,
            "content": self.content,
            "noteType": self.note_type,
            "isInternal": self.is_internal,
            "priority": self.priority,
            "isResolved": self.is_resolved,
            "resolvedAt": to_utc_z(self.resolved_at),
            "resolvedBy": self.resolved_by_id,
            "approvalAmount": amount_to_json(self.approval_amount),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
