import re
from datetime import datetime, timezone
from marketplace.errors import Conflict, ValidationError
from marketplace.extensions import db
from marketplace.models.store import Store
from marketplace.models.audit_log import AuditLog


def slugify(text):
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug or "store"


def _unique_slug(name):
    base = slugify(name)[:120]
    slug = base
    suffix = 2
    while Store.query.filter_by(slug=slug).first():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def register_store(owner_id, payload):
    """Create the seller's store in PENDING verification."""
    name = (payload.get("name") or "").strip()
    if not owner_id or not name:
        raise ValidationError("Store name is required")
    if Store.query.filter_by(owner_id=owner_id).first():
        raise Conflict("You already have a store")

    store = Store(
        owner_id=owner_id,
        name=name[:120],
        slug=_unique_slug(name),
        description=(payload.get("description") or "").strip(),
        city=(payload.get("city") or "").strip()[:100] or None,
        province=(payload.get("province") or "").strip()[:100] or None,
        verification_status="PENDING",
    )
    db.session.add(store)
    db.session.commit()
    return store


def get_store_for_owner(owner_id):
    return Store.query.filter_by(owner_id=owner_id).first()


def list_stores(status=None):
    query = Store.query
    if status and status.upper() != "ALL":
        query = query.filter_by(verification_status=status.upper())
    return query.order_by(Store.created_at.desc(), Store.id.desc()).all()


# action -> (allowed current statuses, new status, audit action, reason required)
TRANSITIONS = {
    "verify": ({"PENDING", "REJECTED"}, "VERIFIED", "VERIFY_STORE", False),
    "reject": ({"PENDING"}, "REJECTED", "REJECT_STORE", True),
    "suspend": ({"VERIFIED"}, "SUSPENDED", "SUSPEND_STORE", True),
    "unsuspend": ({"SUSPENDED"}, "VERIFIED", "UNSUSPEND_STORE", False),
}


def change_store_status(store_id, action, admin_id, reason=None):
    """Apply a verification action.

    Returns the store, or None if it is missing or the action does not apply
    to its current status.
    """
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown store action: {action}")
    allowed, new_status, audit_action, needs_reason = TRANSITIONS[action]
    reason = (reason or "").strip()
    if needs_reason and not reason:
        raise ValidationError("A reason is required")

    store = db.session.get(Store, store_id)
    if not store or store.verification_status not in allowed:
        return None

    old_status = store.verification_status
    store.verification_status = new_status
    store.rejection_reason = reason if needs_reason else None

    db.session.add(
        AuditLog(
            admin_id=admin_id,
            action=audit_action,
            resource_type="STORE",
            resource_id=store.id,
            payload={
                "from": old_status,
                "to": new_status,
                "reason": reason or None,
                "at": datetime.now(timezone.utc).isoformat(),
            },
        )
    )
    db.session.commit()
    return store


def get_store_stats():
    rows = (
        db.session.query(Store.verification_status, db.func.count(Store.id))
        .group_by(Store.verification_status)
        .all()
    )
    return dict(rows)
