import logging
from flask import current_app
from marketplace.errors import Forbidden, MarketplaceError, NotFound, ValidationError
from marketplace.extensions import db
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.store import Store
from marketplace.models.variant import VariantOption, VariantCombination
from marketplace.services import image_service, storage_service, variant_service

logger = logging.getLogger(__name__)

SORTS = {"newest", "price_asc", "price_desc", "popular"}
CONDITIONS = {"new", "used"}


def as_int(value, field, minimum=0):
    """Coerce a payload number, raising ValidationError on junk."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return number


def _clean_variant_types(raw_types):
    """Normalize posted variant types; blank values are ignored."""
    if not isinstance(raw_types, list):
        raise ValidationError("variant_types must be a list")

    types = []
    for raw in raw_types:
        if not isinstance(raw, dict):
            raise ValidationError("Each variant type must be an object")
        name = (raw.get("name") or "").strip()
        if not name:
            raise ValidationError("Variant type name is required")

        values = []
        seen = set()
        for raw_value in raw.get("values") or []:
            text = (variant_service.value_text(raw_value) or "").strip()
            if not text or text in seen:
                continue
            seen.add(text)
            value = {"value": text[:100]}
            if isinstance(raw_value, dict) and raw_value.get("image"):
                value["image"] = raw_value["image"][:500]
            values.append(value)
        types.append({"name": name[:50], "values": values})

    dupes = variant_service.duplicate_type_names(types)
    if dupes:
        raise ValidationError(f"Duplicate variant type: {', '.join(dupes)}")
    return types


def _clean_combinations(raw_combinations):
    if not isinstance(raw_combinations, list):
        raise ValidationError("combinations must be a list")

    combinations = []
    for raw in raw_combinations:
        if not isinstance(raw, dict) or not isinstance(raw.get("combination"), dict):
            raise ValidationError("Each combination needs a combination map")
        combinations.append(
            {
                "id": raw.get("id"),
                "combination": raw["combination"],
                "price": as_int(raw.get("price", 0), "combination price"),
                "stock": as_int(raw.get("stock", 0), "combination stock"),
                "sku": str(raw.get("sku") or "")[:100],
                "is_active": bool(raw.get("is_active", True)),
            }
        )
    return combinations


def _store_images(images):
    """Upload data-URI images to S3; pass plain URLs through.

    Returns (urls, uploaded_storage_keys).
    """
    urls = []
    keys = []
    for image in images:
        if not isinstance(image, str) or not image.strip():
            continue
        if not image_service.is_data_uri(image):
            urls.append(image.strip()[:500])
            continue

        try:
            _, raw = image_service.decode_data_uri(image)
            jpeg = image_service.validate_image(raw)
        except ValueError as e:
            raise ValidationError(f"Image error: {e}")

        key = storage_service.new_storage_key("products")
        try:
            storage_service.upload(key, jpeg, content_type="image/jpeg")
        except Exception:
            logger.exception("Image upload failed for %s", key)
            storage_service.delete_many(keys)
            raise MarketplaceError("Failed to upload images")
        keys.append(key)
        urls.append(storage_service.get_public_url(key))
    return urls, keys


def create_product(owner_id, payload):
    """Create a product with its variant options and combinations in one batch.

    Combinations are regenerated from the submitted variant types so the
    stored set is always the full cartesian product; submitted price, stock
    and sku are kept for every combination that still exists.
    """
    title = (payload.get("title") or "").strip()
    description = (payload.get("description") or "").strip()
    category_id = payload.get("category_id")
    if not owner_id or not title or not category_id or not description:
        raise ValidationError("Missing required fields")

    store = Store.query.filter_by(owner_id=owner_id).first()
    if not store:
        raise NotFound("Store not found. Please create a store first.")
    if not store.can_sell:
        raise Forbidden(f"Store is {store.verification_status.lower()} and cannot list products")

    category = db.session.get(Category, as_int(category_id, "category_id", minimum=1))
    if not category:
        raise ValidationError("Unknown category")

    price = as_int(payload.get("price", 0), "price")
    stock = as_int(payload.get("stock", 0), "stock")
    min_purchase = as_int(payload.get("min_purchase") or 1, "min_purchase", minimum=1)
    max_purchase = payload.get("max_purchase")
    if max_purchase is not None:
        max_purchase = as_int(max_purchase, "max_purchase", minimum=min_purchase)
    weight_grams = payload.get("weight_grams")
    if weight_grams is not None:
        weight_grams = as_int(weight_grams, "weight_grams")
    condition = payload.get("condition") or "new"
    if condition not in CONDITIONS:
        raise ValidationError("condition must be new or used")

    types = _clean_variant_types(payload.get("variant_types") or [])
    combinations = variant_service.generate_combinations(
        types, _clean_combinations(payload.get("combinations") or [])
    )
    if types and not combinations:
        raise ValidationError("Every variant type needs at least one value")

    images = payload.get("images") or []
    if not images and payload.get("image"):
        images = [payload["image"]]
    if not isinstance(images, list):
        raise ValidationError("images must be a list")
    max_images = current_app.config["MAX_IMAGES"]
    if len(images) > max_images:
        raise ValidationError(f"At most {max_images} images allowed")

    image_urls, uploaded_keys = _store_images(images)

    try:
        product = Product(
            store_id=store.id,
            category_id=category.id,
            title=title[:255],
            description=description,
            price=price,
            original_price=price,
            stock=stock,
            images=image_urls,
            image=image_urls[0] if image_urls else None,
            brand=(payload.get("brand") or "")[:100] or None,
            condition=condition,
            weight_grams=weight_grams,
            min_purchase=min_purchase,
            max_purchase=max_purchase,
            sku=(payload.get("sku") or "")[:100] or None,
            is_active=True,
            total_sold=0,
            moderation_status="PENDING",
        )
        db.session.add(product)
        db.session.flush()  # get product.id

        sort_order = 0
        for variant_type in types:
            for value in variant_type["values"]:
                db.session.add(
                    VariantOption(
                        product_id=product.id,
                        type=variant_type["name"],
                        value=value["value"],
                        image_url=value.get("image"),
                        sort_order=sort_order,
                    )
                )
                sort_order += 1

        for combo in combinations:
            db.session.add(
                VariantCombination(
                    product_id=product.id,
                    combination=VariantCombination.pairs_from_mapping(combo["combination"]),
                    price=combo["price"],
                    stock=combo["stock"],
                    sku=combo["sku"] or None,
                    is_active=combo.get("is_active", True),
                )
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create product for store %s", store.id)
        storage_service.delete_many(uploaded_keys)
        raise

    logger.info(
        "Store %s submitted product %s with %d combinations",
        store.id,
        product.id,
        len(combinations),
    )
    return product


def get_seller_products(owner_id):
    store = Store.query.filter_by(owner_id=owner_id).first()
    if not store:
        return []
    return store.products.order_by(Product.created_at.desc()).all()


def _visible_query():
    return (
        Product.query.join(Store, Product.store_id == Store.id)
        .filter(Product.is_active.is_(True))
        .filter(Product.moderation_status == "APPROVED")
        .filter(Store.verification_status == "VERIFIED")
    )


def get_visible_products(
    q=None, category=None, store=None, min_price=None, max_price=None,
    sort="newest", page=1, per_page=24,
):
    """Fetch storefront-visible products with filters for the catalogue."""
    query = _visible_query()

    if q:
        query = query.filter(Product.title.ilike(f"%{q.strip()}%"))
    if category:
        cat = Category.query.filter_by(slug=category).first()
        if not cat:
            query = query.filter(db.false())
        else:
            ids = [cat.id] + [child.id for child in cat.children]
            query = query.filter(Product.category_id.in_(ids))
    if store:
        query = query.filter(Store.slug == store)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    if sort == "price_asc":
        query = query.order_by(Product.price.asc(), Product.id.asc())
    elif sort == "price_desc":
        query = query.order_by(Product.price.desc(), Product.id.asc())
    elif sort == "popular":
        query = query.order_by(Product.total_sold.desc(), Product.id.desc())
    else:
        query = query.order_by(Product.created_at.desc(), Product.id.desc())

    return query.paginate(page=page, per_page=per_page, error_out=False)


def get_visible_product(product_id):
    """Single storefront product, or None if missing or not visible."""
    product = db.session.get(Product, product_id)
    if not product or not product.is_visible:
        return None
    return product


def get_visible_products_by_ids(product_ids):
    """Visible products for ``product_ids``, in the order given."""
    if not product_ids:
        return []
    found = {p.id: p for p in _visible_query().filter(Product.id.in_(list(product_ids))).all()}
    return [found[i] for i in product_ids if i in found]


def get_popular_products(limit, exclude_ids=()):
    query = _visible_query()
    if exclude_ids:
        query = query.filter(Product.id.notin_(list(exclude_ids)))
    return (
        query.order_by(Product.total_sold.desc(), Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def get_products_in_categories(category_ids, limit, exclude_ids=()):
    if not category_ids:
        return []
    query = _visible_query().filter(Product.category_id.in_(list(category_ids)))
    if exclude_ids:
        query = query.filter(Product.id.notin_(list(exclude_ids)))
    return query.order_by(Product.total_sold.desc(), Product.id.desc()).limit(limit).all()


TYPE_ACTIONS = {"add_type", "add_value", "remove_type", "remove_value"}
COMBINATION_ACTIONS = {"update", "bulk"}


def _apply_type_action(types, action):
    op = action["op"]
    type_name = str(action.get("type") or "")
    value = str(action.get("value") or "")
    if op == "add_type":
        return variant_service.add_variant_type(types, str(action.get("name") or ""))
    if op == "add_value":
        image = action.get("image")
        image = str(image)[:500] if image else None
        return variant_service.add_variant_value(types, type_name, value, image=image)
    if op == "remove_type":
        return variant_service.remove_variant_type(types, type_name)
    return variant_service.remove_variant_value(types, type_name, value)


def _apply_combination_action(combinations, action):
    if action["op"] == "bulk":
        price = action.get("price")
        stock = action.get("stock")
        return variant_service.bulk_update(
            combinations,
            price=None if price is None else as_int(price, "price"),
            stock=None if stock is None else as_int(stock, "stock"),
        )

    field = action.get("field")
    value = action.get("value")
    if field in ("price", "stock"):
        value = as_int(value, field)
    elif field == "is_active":
        value = bool(value)
    elif field == "sku":
        value = str(value or "")[:100]
    try:
        return variant_service.update_combination(combinations, action.get("id"), field, value)
    except ValueError as e:
        raise ValidationError(str(e))


def preview_variants(types, existing, action=None):
    """One round of the seller's variant editor.

    Applies an optional editing ``action`` (``add_type``, ``add_value``,
    ``remove_type``, ``remove_value``, ``update`` or ``bulk``) and returns the
    resulting types with their regenerated combination table.
    """
    if action is not None:
        if not isinstance(action, dict) or action.get("op") not in TYPE_ACTIONS | COMBINATION_ACTIONS:
            raise ValidationError("Unknown variant action")
        if action["op"] in TYPE_ACTIONS:
            types = _apply_type_action(types, action)

    combinations = variant_service.generate_combinations(types, existing)
    if action is not None and action["op"] in COMBINATION_ACTIONS:
        combinations = _apply_combination_action(combinations, action)

    return {
        "types": types,
        "combinations": combinations,
        "count": len(combinations),
        "complete": variant_service.is_complete(types),
        "total_stock": variant_service.total_stock(combinations),
    }


def product_detail(product):
    """Full product page payload with variant data and starting price."""
    combinations = product.active_combinations
    selection = variant_service.default_selection(combinations)
    data = product.to_dict()
    data.update(
        {
            "variant_types": product.variant_types,
            "combinations": combinations,
            "default_selection": selection,
            "pricing": variant_service.resolve_price(product, combinations, selection),
        }
    )
    return data


def resolve_for_product(product, selected):
    return variant_service.resolve_price(product, product.active_combinations, selected)


def get_stats():
    """Product counts by moderation status."""
    rows = (
        db.session.query(Product.moderation_status, db.func.count(Product.id))
        .group_by(Product.moderation_status)
        .all()
    )
    return dict(rows)
