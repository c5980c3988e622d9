from datetime import datetime, timezone
from marketplace.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.String(64), nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False)
    resource_type = db.Column(db.String(20), nullable=False)  # STORE, PRODUCT
    resource_id = db.Column(db.Integer, nullable=False, index=True)
    payload = db.Column(db.JSON)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    ACTIONS = {
        "VERIFY_STORE",
        "REJECT_STORE",
        "SUSPEND_STORE",
        "UNSUSPEND_STORE",
        "APPROVE_PRODUCT",
        "REJECT_PRODUCT",
        "BLOCK_PRODUCT",
        "FLAG_PRODUCT",
        "UNFLAG_PRODUCT",
    }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.admin_id}>"
