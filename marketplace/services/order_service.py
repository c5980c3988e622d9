import logging
import secrets
from datetime import datetime, timezone
import marketplace.extensions as ext
from marketplace.errors import Conflict, NotFound, ValidationError
from marketplace.extensions import db
from marketplace.models.cart import CartItem
from marketplace.models.order import Order, OrderItem
from marketplace.services import cart_service, product_service, variant_service

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"bank_transfer", "cod", "ewallet"}
ADDRESS_FIELDS = ("recipient_name", "phone", "address_line1", "city", "province", "postal_code")


def generate_order_number():
    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"ORD-{today}-{secrets.token_hex(3).upper()}"


def _clean_address(address):
    if not isinstance(address, dict):
        raise ValidationError("shipping_address is required")
    missing = [f for f in ADDRESS_FIELDS if not str(address.get(f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing address fields: {', '.join(missing)}")
    cleaned = {f: str(address[f]).strip() for f in ADDRESS_FIELDS}
    if address.get("address_line2"):
        cleaned["address_line2"] = str(address["address_line2"]).strip()
    return cleaned


def _take_stock(target, quantity, title):
    """Decrement stock with one conditional UPDATE.

    The row only changes while it still holds ``quantity`` units, so two
    checkouts racing for the last unit cannot both succeed.
    """
    model = type(target)
    result = db.session.execute(
        db.update(model)
        .where(model.id == target.id, model.stock >= quantity)
        .values(stock=model.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.refresh(target, ["stock"])
        raise Conflict(f"Only {target.stock} of {title} left in stock")
    db.session.expire(target, ["stock"])


def create_order(user_id, payload):
    """Turn the user's cart into a PENDING order.

    Stock is re-checked and decremented per combination (or per product when
    the line has no combination); line prices are snapshotted through the
    variant resolver. The total is always subtotal plus shipping; buyers
    cannot post a discount.
    """
    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Unsupported payment method")
    address = _clean_address(payload.get("shipping_address"))
    shipping_cost = product_service.as_int(payload.get("shipping_cost", 0), "shipping_cost")

    items = CartItem.query.filter_by(user_id=user_id).order_by(CartItem.id).all()
    if not items:
        raise Conflict("Cart is empty")

    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        payment_method=payment_method,
        shipping_address=address,
        notes=(payload.get("notes") or "").strip() or None,
        status="PENDING",
        payment_status="PENDING",
    )

    subtotal = 0
    product_ids = []
    try:
        for item in items:
            product = item.product
            if not product.is_visible:
                raise Conflict(f"{product.title} is no longer available")

            if item.combination and not item.combination.is_active:
                raise Conflict(f"{product.title} variant is no longer available")

            pricing = cart_service.line_pricing(item)
            _take_stock(item.combination or product, item.quantity, product.title)

            line_total = pricing["price"] * item.quantity
            subtotal += line_total
            product_ids.append(product.id)
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    combination_id=item.combination_id,
                    product_title=product.title,
                    product_image=product.image,
                    variant_label=variant_service.variant_label(
                        item.combination.mapping if item.combination else None
                    ),
                    price=pricing["price"],
                    quantity=item.quantity,
                    subtotal=line_total,
                )
            )
    except Conflict:
        db.session.rollback()
        raise

    order.subtotal = subtotal
    order.shipping_cost = shipping_cost
    order.discount = 0
    order.total = subtotal + shipping_cost

    db.session.add(order)
    cart_service.clear_cart(user_id)
    db.session.commit()

    logger.info("Order %s created for %s: total %d", order.order_number, user_id, order.total)

    from marketplace.workers.sales import refresh_total_sold

    ext.task_queue.enqueue(refresh_total_sold, sorted(set(product_ids)))
    return order


def get_user_orders(user_id):
    return (
        Order.query.filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order(order_number, user_id):
    order = Order.query.filter_by(order_number=order_number.upper(), user_id=user_id).first()
    if not order:
        raise NotFound("Order not found")
    return order


def get_order_stats():
    """Order count and revenue (cancelled orders excluded from revenue)."""
    count = db.session.query(db.func.count(Order.id)).scalar() or 0
    revenue = (
        db.session.query(db.func.coalesce(db.func.sum(Order.total), 0))
        .filter(Order.status != "CANCELLED")
        .scalar()
    )
    return {"orders": count, "revenue": int(revenue or 0)}
