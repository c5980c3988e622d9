"""Tests for storefront API routes."""

import marketplace.extensions as ext

VARIANT_TYPES = [
    {"name": "Warna", "values": [{"value": "Merah"}, {"value": "Biru"}]},
    {"name": "Ukuran", "values": [{"value": "S"}, {"value": "M"}]},
]


def _priced_combinations():
    return [
        {"combination": {"Warna": "Merah", "Ukuran": "S"}, "price": 50000, "stock": 10},
        {"combination": {"Warna": "Biru", "Ukuran": "M"}, "price": 65000, "stock": 2},
    ]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code in (200, 503)
    data = resp.get_json()
    assert "status" in data
    assert data["redis"] == "not configured"


def test_health_does_not_leak_internal_errors(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database password leaked")

    monkeypatch.setattr(ext.db.session, "execute", boom)

    resp = client.get("/health")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["db"] == "error"
    assert "password" not in str(data).lower()


def test_testing_config(app):
    assert app.config["TESTING"] is True
    assert app.config["ADMIN_USER_IDS"] == ["admin-1"]
    assert "CURRENCY" not in app.config
    assert "APP_URL" not in app.config


def test_categories(client, category):
    resp = client.get("/api/categories")
    assert resp.status_code == 200
    slugs = [c["slug"] for c in resp.get_json()["categories"]]
    assert category.slug in slugs


def test_catalog_lists_only_visible_products(client, make_product, category):
    visible = make_product(title="Sepatu Lari")
    pending = make_product(title="Sepatu Pending", approve=False)

    resp = client.get(f"/api/products?category={category.slug}")
    assert resp.status_code == 200
    ids = [p["id"] for p in resp.get_json()["products"]]
    assert visible.id in ids
    assert pending.id not in ids


def test_catalog_filters_by_price(client, make_product, category):
    cheap = make_product(title="Gelang", price=20000)
    pricey = make_product(title="Kalung", price=300000)

    resp = client.get(f"/api/products?category={category.slug}&max_price=50000")
    ids = [p["id"] for p in resp.get_json()["products"]]
    assert cheap.id in ids
    assert pricey.id not in ids

    resp = client.get(f"/api/products?category={category.slug}&sort=price_desc")
    ids = [p["id"] for p in resp.get_json()["products"]]
    assert ids.index(pricey.id) < ids.index(cheap.id)


def test_catalog_unknown_category_is_empty(client, make_product):
    make_product()
    resp = client.get("/api/products?category=does-not-exist")
    assert resp.get_json()["products"] == []


def test_product_404(client):
    resp = client.get("/api/products/999999")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Product not found"


def test_pending_product_is_not_public(client, make_product):
    product = make_product(approve=False)
    resp = client.get(f"/api/products/{product.id}")
    assert resp.status_code == 404


def test_product_detail_includes_variants(client, make_product):
    product = make_product(variant_types=VARIANT_TYPES, combinations=_priced_combinations())

    resp = client.get(f"/api/products/{product.id}", headers={"X-User-Id": "buyer-1"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert [t["name"] for t in data["variant_types"]] == ["Warna", "Ukuran"]
    assert len(data["combinations"]) == 4
    assert data["default_selection"] == {"Warna": "Merah", "Ukuran": "S"}
    assert data["pricing"]["price"] == 50000
    assert data["pricing"]["stock"] == 10


def test_price_endpoint_resolves_selection(client, make_product):
    product = make_product(variant_types=VARIANT_TYPES, combinations=_priced_combinations())

    resp = client.get(f"/api/products/{product.id}/price?Warna=Biru&Ukuran=M")
    data = resp.get_json()
    assert data["price"] == 65000
    assert data["stock"] == 2
    assert data["combination_id"] is not None

    # Partial selection falls back to the base price
    resp = client.get(f"/api/products/{product.id}/price?Warna=Biru")
    assert resp.get_json() == {"price": 100000, "stock": 5, "combination_id": None}

    # Combinations nobody priced yet resolve to zero
    resp = client.get(f"/api/products/{product.id}/price?Warna=Biru&Ukuran=S")
    assert resp.get_json()["price"] == 0


def test_anonymous_recommendations(client, make_product):
    make_product(title="Produk Populer")
    resp = client.get("/api/recommendations?limit=5")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["reason"] == "Produk Terlaris"
    assert 0 < len(data["products"]) <= 5


def test_cart_requires_sign_in(client):
    resp = client.get("/api/cart")
    assert resp.status_code == 401


def test_bad_json_body(client):
    resp = client.post("/api/cart", data="nope", headers={"X-User-Id": "buyer-1"})
    assert resp.status_code == 400
