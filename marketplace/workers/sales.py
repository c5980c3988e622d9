"""RQ worker job: recompute sales counters after orders."""
import logging
from flask import current_app, has_app_context
import marketplace.extensions as ext
from marketplace.extensions import db
from marketplace.models.order import Order, OrderItem
from marketplace.models.product import Product

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from marketplace import create_app

        _worker_app = create_app()
    return _worker_app


def refresh_total_sold(product_ids=None):
    """Recompute ``Product.total_sold`` from non-cancelled order items.

    Enqueued after every order for the products it contained; with no
    arguments every product is refreshed (CLI ``refresh-sales``).

    Idempotency: counters are recomputed from scratch, never incremented.
    Distributed lock: prevents two workers refreshing concurrently.
    """
    app = _get_app()
    with app.app_context():
        lock = None
        if ext.redis_client is not None:
            lock = ext.redis_client.lock("sales:refresh", timeout=300)
            if not lock.acquire(blocking=True, blocking_timeout=30):
                logger.info("Sales refresh lock held, skipping %s", product_ids)
                return None

        try:
            query = Product.query
            if product_ids:
                query = query.filter(Product.id.in_(list(product_ids)))
            products = query.all()

            sold = dict(
                db.session.query(OrderItem.product_id, db.func.sum(OrderItem.quantity))
                .join(Order, OrderItem.order_id == Order.id)
                .filter(Order.status != "CANCELLED")
                .filter(OrderItem.product_id.in_([p.id for p in products]))
                .group_by(OrderItem.product_id)
                .all()
            )
            for product in products:
                product.total_sold = int(sold.get(product.id) or 0)
            db.session.commit()

            logger.info("Refreshed sales counters for %d products", len(products))
            return len(products)
        finally:
            if lock is not None:
                try:
                    lock.release()
                except Exception:
                    logger.warning("Sales refresh lock expired before release")
