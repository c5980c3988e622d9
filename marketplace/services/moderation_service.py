"""Admin product moderation."""
from datetime import datetime, timezone
from marketplace.errors import ValidationError
from marketplace.extensions import db
from marketplace.models.product import Product
from marketplace.models.audit_log import AuditLog

ACTIONS = {"approve", "reject", "block", "flag", "unflag"}


def list_for_moderation(status=None, flagged_only=False, search=None):
    query = Product.query
    if status and status.upper() != "ALL":
        query = query.filter(Product.moderation_status == status.upper())
    if flagged_only:
        query = query.filter(Product.is_flagged.is_(True))
    if search:
        query = query.filter(Product.title.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def moderate_product(product_id, action, admin_id, note=None):
    """Apply a moderation action; returns the product or None if missing."""
    if action not in ACTIONS:
        raise ValidationError(f"Unknown moderation action: {action}")
    note = (note or "").strip() or None
    if action in ("reject", "block", "flag") and not note:
        raise ValidationError("A note is required")

    product = db.session.get(Product, product_id)
    if not product:
        return None

    if action == "approve":
        product.moderation_status = "APPROVED"
        product.is_flagged = False
        product.flagged_reason = None
    elif action == "reject":
        product.moderation_status = "REJECTED"
    elif action == "block":
        product.moderation_status = "BLOCKED"
        product.is_active = False
    elif action == "flag":
        product.is_flagged = True
        product.flagged_reason = note
    elif action == "unflag":
        product.is_flagged = False
        product.flagged_reason = None

    if action in ("approve", "reject", "block"):
        product.moderation_note = note
        product.moderated_at = datetime.now(timezone.utc)

    db.session.add(
        AuditLog(
            admin_id=admin_id,
            action=f"{action.upper()}_PRODUCT",
            resource_type="PRODUCT",
            resource_id=product.id,
            payload={"note": note, "status": product.moderation_status},
        )
    )
    db.session.commit()
    return product
