from datetime import datetime, timezone
from marketplace.extensions import db


class Store(db.Model):
    __tablename__ = "stores"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, default="")
    city = db.Column(db.String(100))
    province = db.Column(db.String(100))
    verification_status = db.Column(
        db.String(20), nullable=False, default="PENDING", index=True
    )
    rejection_reason = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    products = db.relationship("Product", backref="store", lazy="dynamic")

    VALID_STATUSES = {"PENDING", "VERIFIED", "REJECTED", "SUSPENDED"}

    @property
    def is_verified(self):
        return self.verification_status == "VERIFIED"

    @property
    def can_sell(self):
        """Suspended or rejected stores cannot submit products."""
        return self.verification_status in ("PENDING", "VERIFIED")

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "city": self.city,
            "province": self.province,
            "verification_status": self.verification_status,
            "rejection_reason": self.rejection_reason,
        }

    def __repr__(self):
        return f"<Store {self.slug} [{self.verification_status}]>"
