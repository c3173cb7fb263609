from __future__ import annotations

from ..extensions import db
from rahmah.time_utils import to_utc_z, utcnow


class SharedProfile(db.Model):
    """
    A case one tenant has shared, read-only, with another tenant.

    The owning tenant keeps the case; the receiving tenant's staff may view
    it while the share is active. Revoking flips is_active and keeps the row
    so viewed_at / viewed_by_id history survives.
    """
    __tablename__ = "shared_profiles"
    __table_args__ = (
        db.Index("ix_shared_profiles_applicant_to", "applicant_id", "to_tenant_id"),
        db.Index("ix_shared_profiles_from_to", "from_tenant_id", "to_tenant_id"),
        db.Index("ix_shared_profiles_to_active", "to_tenant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False)
    from_tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    to_tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    shared_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    note = db.Column(db.Text, nullable=True)
    # Only read_only is granted today
    permissions = db.Column(db.String(16), nullable=False, default="read_only")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    viewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    viewed_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    applicant = db.relationship("Applicant", backref=db.backref("shares", lazy=True, cascade="all, delete-orphan"))
    from_tenant = db.relationship("Tenant", foreign_keys=[from_tenant_id])
    to_tenant = db.relationship("Tenant", foreign_keys=[to_tenant_id])
    shared_by = db.relationship("User", foreign_keys=[shared_by_id])
    viewed_by = db.relationship("User", foreign_keys=[viewed_by_id])

    def to_dict(self) -> dict:
        applicant = self.applicant
        return {
            "id": self.id,
            "applicant": {
                "id": applicant.id,
                "caseId": applicant.case_id,
                "firstName": applicant.first_name,
                "lastName": applicant.last_name,
                "email": applicant.email,
                "mobilePhone": applicant.mobile_phone,
                "status": applicant.status,
            },
            "fromTenant": {"id": self.from_tenant_id, "name": self.from_tenant.name, "slug": self.from_tenant.slug},
            "toTenant": {"id": self.to_tenant_id, "name": self.to_tenant.name, "slug": self.to_tenant.slug},
            "sharedBy": (
                {"id": self.shared_by.id, "name": self.shared_by.name, "email": self.shared_by.email}
                if self.shared_by else None
            ),
            "note": self.note,
            "permissions": self.permissions,
            "isActive": self.is_active,
            "viewedAt": to_utc_z(self.viewed_at),
            "viewedBy": self.viewed_by_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
