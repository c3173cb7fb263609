from __future__ import annotations

from ..extensions import db
from rahmah.time_utils import to_utc_z, utcnow

class Tenant(db.Model):
    """
    Multi-tenant root: every masjid / charitable organization is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Staff users, cases, grants, notes and conversations all carry tenant_id.
    No staff query may cross tenant boundaries.

    DESIGN:
    - slug is the public routing key (intake forms, branded portals)
    - super_admin users have no tenant and manage tenants only
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    brand_color = db.Column(db.String(16), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "email": self.email,
            "phone": self.phone,
            "brandColor": self.brand_color,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {"name": self.name, "slug": self.slug, "brandColor": self.brand_color}
