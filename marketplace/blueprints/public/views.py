"""Storefront API: catalogue, product pages, recommendations, cart and orders."""
from flask import current_app, request
from marketplace.blueprints.common import current_user_id, json_body, require_user
from marketplace.blueprints.public import public_bp
from marketplace.errors import NotFound, ValidationError
from marketplace.models.category import Category
from marketplace.services import (
    cart_service,
    history_service,
    order_service,
    product_service,
    recommendation_service,
)


def _visible_or_404(product_id):
    product = product_service.get_visible_product(product_id)
    if not product:
        raise NotFound("Product not found")
    return product


@public_bp.route("/categories")
def categories():
    rows = Category.query.order_by(Category.name).all()
    return {"categories": [c.to_dict() for c in rows]}


@public_bp.route("/products")
def catalog():
    """Catalogue listing with search, filters and sorting."""
    sort = request.args.get("sort", "newest")
    if sort not in product_service.SORTS:
        sort = "newest"
    page = request.args.get("page", 1, type=int)

    pagination = product_service.get_visible_products(
        q=request.args.get("q"),
        category=request.args.get("category"),
        store=request.args.get("store"),
        min_price=request.args.get("min_price", type=int),
        max_price=request.args.get("max_price", type=int),
        sort=sort,
        page=page,
        per_page=current_app.config["CATALOG_PAGE_SIZE"],
    )
    return {
        "products": [p.to_summary() for p in pagination.items],
        "page": pagination.page,
        "pages": pagination.pages,
        "total": pagination.total,
    }


@public_bp.route("/products/<int:product_id>")
def product_detail(product_id):
    """Product page payload; records the view in the caller's history."""
    product = _visible_or_404(product_id)
    history_service.record_view(current_user_id(), product)
    return product_service.product_detail(product)


@public_bp.route("/products/<int:product_id>/price")
def product_price(product_id):
    """Price and stock for the selection given as ``?Type=Value`` pairs."""
    product = _visible_or_404(product_id)
    selected = request.args.to_dict()
    return product_service.resolve_for_product(product, selected)


@public_bp.route("/recommendations")
def recommendations():
    default_limit = current_app.config["RECOMMENDATION_LIMIT"]
    limit = request.args.get("limit", default_limit, type=int)
    limit = max(1, min(limit, 48))
    result = recommendation_service.get_recommendations(current_user_id(), limit)
    return {
        "products": [p.to_summary() for p in result["products"]],
        "reason": result["reason"],
    }


@public_bp.route("/cart")
def cart():
    return cart_service.get_cart(require_user())


@public_bp.route("/cart", methods=["POST"])
def add_to_cart():
    user_id = require_user()
    payload = json_body()
    if payload.get("product_id") is None:
        raise ValidationError("product_id is required")
    cart_service.add_to_cart(
        user_id,
        product_service.as_int(payload["product_id"], "product_id", minimum=1),
        combination_id=payload.get("combination_id"),
        quantity=payload.get("quantity", 1),
    )
    return cart_service.get_cart(user_id), 201


@public_bp.route("/cart/<int:item_id>", methods=["PATCH"])
def update_cart_item(item_id):
    user_id = require_user()
    payload = json_body()
    cart_service.update_quantity(user_id, item_id, payload.get("quantity"))
    return cart_service.get_cart(user_id)


@public_bp.route("/cart/<int:item_id>", methods=["DELETE"])
def remove_cart_item(item_id):
    user_id = require_user()
    cart_service.remove_from_cart(user_id, item_id)
    return cart_service.get_cart(user_id)


@public_bp.route("/orders", methods=["POST"])
def create_order():
    user_id = require_user()
    order = order_service.create_order(user_id, json_body())
    return order.to_dict(), 201


@public_bp.route("/orders")
def my_orders():
    orders = order_service.get_user_orders(require_user())
    return {"orders": [o.to_dict() for o in orders]}


@public_bp.route("/orders/<order_number>")
def track_order(order_number):
    order = order_service.get_order(order_number, require_user())
    return order.to_dict()


@public_bp.route("/history")
def recently_viewed():
    """Recently viewed products, newest first. Empty without Redis."""
    user_id = require_user()
    limit = request.args.get("limit", 10, type=int)
    limit = max(1, min(limit, current_app.config["BROWSING_HISTORY_LIMIT"]))
    try:
        product_ids = history_service.recent_product_ids(user_id, limit)
    except history_service.HistoryUnavailable:
        product_ids = []
    products = product_service.get_visible_products_by_ids(product_ids)
    return {"products": [p.to_summary() for p in products]}


@public_bp.route("/history", methods=["DELETE"])
def clear_history():
    user_id = require_user()
    try:
        history_service.clear(user_id)
    except history_service.HistoryUnavailable:
        current_app.logger.info("History clear skipped for %s: Redis not configured", user_id)
    return {"success": True}
