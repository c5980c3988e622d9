from marketplace.errors import Conflict, NotFound, ValidationError
from marketplace.extensions import db
from marketplace.models.cart import CartItem
from marketplace.models.variant import VariantCombination
from marketplace.services import product_service, variant_service


def line_pricing(item):
    """Price and stock of a cart line through the variant resolver."""
    product = item.product
    combinations = product.active_combinations
    selected = item.combination.mapping if item.combination else {}
    return variant_service.resolve_price(product, combinations, selected)


def _check_quantity(product, quantity, available):
    if quantity < product.min_purchase:
        raise ValidationError(f"Minimum purchase is {product.min_purchase}")
    if product.max_purchase and quantity > product.max_purchase:
        raise ValidationError(f"Maximum purchase is {product.max_purchase}")
    if quantity > available:
        raise Conflict(f"Only {available} left in stock")


def _resolve_combination(product, combination_id):
    """Return the combination a cart line points at, validating ownership."""
    has_combinations = bool(product.active_combinations)
    if combination_id is None:
        if has_combinations:
            raise ValidationError("Please choose a variant")
        return None

    combination = db.session.get(
        VariantCombination,
        product_service.as_int(combination_id, "combination_id", minimum=1),
    )
    if not combination or combination.product_id != product.id or not combination.is_active:
        raise NotFound("Variant not found")
    return combination


def get_cart(user_id):
    items = (
        CartItem.query.filter_by(user_id=user_id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        .all()
    )
    lines = []
    subtotal = 0
    for item in items:
        pricing = line_pricing(item)
        line_total = pricing["price"] * item.quantity
        subtotal += line_total
        lines.append(
            {
                "id": item.id,
                "product_id": item.product_id,
                "combination_id": item.combination_id,
                "title": item.product.title,
                "image": item.product.image,
                "variant_label": variant_service.variant_label(
                    item.combination.mapping if item.combination else None
                ),
                "price": pricing["price"],
                "stock": pricing["stock"],
                "quantity": item.quantity,
                "subtotal": line_total,
            }
        )
    return {"items": lines, "subtotal": subtotal, "count": sum(i.quantity for i in items)}


def add_to_cart(user_id, product_id, combination_id=None, quantity=1):
    """Add a product (and chosen combination) to the cart, merging quantities."""
    quantity = product_service.as_int(quantity, "quantity", minimum=1)
    product = product_service.get_visible_product(product_id)
    if not product:
        raise NotFound("Product not found")
    combination = _resolve_combination(product, combination_id)

    item = CartItem.query.filter_by(
        user_id=user_id,
        product_id=product.id,
        combination_id=combination.id if combination else None,
    ).first()
    new_quantity = quantity + (item.quantity if item else 0)
    available = combination.stock if combination else product.stock
    _check_quantity(product, new_quantity, available)

    if item:
        item.quantity = new_quantity
    else:
        item = CartItem(
            user_id=user_id,
            product_id=product.id,
            combination_id=combination.id if combination else None,
            quantity=quantity,
        )
        db.session.add(item)
    db.session.commit()
    return item


def update_quantity(user_id, item_id, quantity):
    """Set a line's quantity; zero or less removes the line."""
    quantity = product_service.as_int(quantity, "quantity", minimum=None)
    item = CartItem.query.filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFound("Cart item not found")
    if quantity <= 0:
        return remove_from_cart(user_id, item_id)

    _check_quantity(item.product, quantity, line_pricing(item)["stock"])
    item.quantity = quantity
    db.session.commit()
    return item


def remove_from_cart(user_id, item_id):
    item = CartItem.query.filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFound("Cart item not found")
    db.session.delete(item)
    db.session.commit()
    return None


def clear_cart(user_id):
    CartItem.query.filter_by(user_id=user_id).delete()
