"""Seller dashboard API: store onboarding and product submission."""
from marketplace.blueprints.common import json_body, require_user
from marketplace.blueprints.seller import seller_bp
from marketplace.errors import NotFound, ValidationError
from marketplace.services import product_service, store_service


@seller_bp.route("/store")
def my_store():
    store = store_service.get_store_for_owner(require_user())
    if not store:
        raise NotFound("Store not found. Please create a store first.")
    return store.to_dict()


@seller_bp.route("/store", methods=["POST"])
def register_store():
    store = store_service.register_store(require_user(), json_body())
    return store.to_dict(), 201


@seller_bp.route("/variants/preview", methods=["POST"])
def preview_combinations():
    """Apply one variant editor action and regenerate the combination table."""
    require_user()
    payload = json_body()
    types = payload.get("types") or []
    existing = payload.get("existing") or []
    if not isinstance(types, list) or not isinstance(existing, list):
        raise ValidationError("types and existing must be lists")
    for variant_type in types:
        if not isinstance(variant_type, dict) or not variant_type.get("name"):
            raise ValidationError("Each variant type needs a name")
        if not isinstance(variant_type.get("values", []), list):
            raise ValidationError("Variant values must be a list")

    return product_service.preview_variants(types, existing, payload.get("action"))


@seller_bp.route("/products", methods=["POST"])
def create_product():
    product = product_service.create_product(require_user(), json_body())
    return {"success": True, "product": product_service.product_detail(product)}, 201


@seller_bp.route("/products")
def my_products():
    products = product_service.get_seller_products(require_user())
    return {
        "products": [
            dict(p.to_summary(), moderation_status=p.moderation_status, is_active=p.is_active)
            for p in products
        ]
    }
