"""Admin console API: store verification, product moderation, stats."""
from flask import request
from marketplace.blueprints.admin import admin_bp
from marketplace.blueprints.common import require_admin
from marketplace.errors import Conflict, NotFound
from marketplace.extensions import db
from marketplace.models.store import Store
from marketplace.services import moderation_service, order_service, product_service, store_service


@admin_bp.route("/stores")
def stores():
    require_admin()
    rows = store_service.list_stores(request.args.get("status"))
    return {"stores": [s.to_dict() for s in rows]}


@admin_bp.route("/stores/<int:store_id>/<action>", methods=["POST"])
def store_action(store_id, action):
    admin_id = require_admin()
    payload = request.get_json(silent=True) or {}
    store = store_service.change_store_status(
        store_id, action, admin_id, reason=payload.get("reason")
    )
    if store is None:
        if not db.session.get(Store, store_id):
            raise NotFound("Store not found")
        raise Conflict(f"Cannot {action} this store in its current state")
    return store.to_dict()


@admin_bp.route("/moderation")
def moderation_queue():
    require_admin()
    products = moderation_service.list_for_moderation(
        status=request.args.get("status", "PENDING"),
        flagged_only=request.args.get("flagged") in ("1", "true"),
        search=request.args.get("q"),
    )
    return {
        "products": [
            dict(
                p.to_summary(),
                moderation_status=p.moderation_status,
                moderation_note=p.moderation_note,
                is_flagged=p.is_flagged,
                flagged_reason=p.flagged_reason,
            )
            for p in products
        ]
    }


@admin_bp.route("/products/<int:product_id>/<action>", methods=["POST"])
def product_action(product_id, action):
    admin_id = require_admin()
    payload = request.get_json(silent=True) or {}
    product = moderation_service.moderate_product(
        product_id, action, admin_id, note=payload.get("note")
    )
    if product is None:
        raise NotFound("Product not found")
    return product.to_dict()


@admin_bp.route("/stats")
def stats():
    require_admin()
    return {
        "stores": store_service.get_store_stats(),
        "products": product_service.get_stats(),
        **order_service.get_order_stats(),
    }
