"""Rule-based product recommendations.

Identified viewers get products bought by similar buyers, then products
from categories they bought from, then (if neither applies) categories they
browse most; popular products fill whatever is left. Anyone else, or any
failure along the way, gets the popular list.
"""
import logging
from marketplace.extensions import db
from marketplace.models.order import Order, OrderItem
from marketplace.models.product import Product
from marketplace.services import history_service, product_service

logger = logging.getLogger(__name__)

REASON_POPULAR = "Produk Terlaris"
REASON_PURCHASES = "Berdasarkan Pembelian Anda"
REASON_BROWSING = "Berdasarkan Riwayat Penelusuran Anda"

STRATEGY_LIMIT = 6
SIMILAR_BUYER_LIMIT = 50


def _purchased_product_ids(viewer_id):
    rows = (
        db.session.query(OrderItem.product_id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.user_id == viewer_id, OrderItem.product_id.isnot(None))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def collaborative(viewer_id, bought_ids, limit):
    """Products other buyers of the same products also bought, by frequency."""
    if not bought_ids:
        return []

    similar_buyers = (
        db.session.query(Order.user_id)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .filter(OrderItem.product_id.in_(list(bought_ids)), Order.user_id != viewer_id)
        .distinct()
        .limit(SIMILAR_BUYER_LIMIT)
        .subquery()
    )
    frequency = db.func.count(OrderItem.id)
    rows = (
        db.session.query(OrderItem.product_id, frequency)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.user_id.in_(db.select(similar_buyers.c.user_id)))
        .filter(OrderItem.product_id.isnot(None))
        .filter(OrderItem.product_id.notin_(list(bought_ids)))
        .group_by(OrderItem.product_id)
        .order_by(frequency.desc(), OrderItem.product_id.asc())
        .all()
    )

    products = []
    for product_id, _ in rows:
        product = product_service.get_visible_product(product_id)
        if product:
            products.append(product)
        if len(products) >= limit:
            break
    return products


def category_based(bought_ids, limit):
    """Best sellers from the categories of products the viewer bought."""
    if not bought_ids:
        return []
    category_ids = {
        row[0]
        for row in db.session.query(Product.category_id)
        .filter(Product.id.in_(list(bought_ids)), Product.category_id.isnot(None))
        .all()
    }
    return product_service.get_products_in_categories(category_ids, limit, exclude_ids=bought_ids)


def browsing_based(viewer_id, limit, exclude_ids=()):
    """Best sellers from the viewer's most browsed categories."""
    category_ids = history_service.top_categories(viewer_id)
    return product_service.get_products_in_categories(category_ids, limit, exclude_ids=exclude_ids)


def _dedupe(products):
    seen = set()
    unique = []
    for product in products:
        if product.id in seen:
            continue
        seen.add(product.id)
        unique.append(product)
    return unique


def _personalized(viewer_id, limit):
    bought_ids = _purchased_product_ids(viewer_id)

    picks = collaborative(viewer_id, bought_ids, STRATEGY_LIMIT)
    picks += category_based(bought_ids, STRATEGY_LIMIT)
    reason = REASON_PURCHASES if picks else REASON_POPULAR

    if not picks:
        try:
            picks = browsing_based(viewer_id, STRATEGY_LIMIT, exclude_ids=bought_ids)
        except history_service.HistoryUnavailable:
            logger.info("Browsing history unavailable for %s", viewer_id)
            picks = []
        if picks:
            reason = REASON_BROWSING

    picks = _dedupe(picks)[:limit]
    if len(picks) < limit:
        exclude = bought_ids | {p.id for p in picks}
        picks += product_service.get_popular_products(limit - len(picks), exclude_ids=exclude)
    return picks, reason


def get_recommendations(viewer_id=None, limit=12):
    """Return ``{"products": [Product, ...], "reason": str}``; never raises."""
    if viewer_id:
        try:
            products, reason = _personalized(viewer_id, limit)
            return {"products": products, "reason": reason}
        except Exception:
            logger.exception("Personalized recommendations failed for %s", viewer_id)
            db.session.rollback()

    try:
        products = product_service.get_popular_products(limit)
    except Exception:
        logger.exception("Popular products lookup failed")
        db.session.rollback()
        products = []
    return {"products": products, "reason": REASON_POPULAR}
