"""Tests for cart, checkout and the sales counter job."""
import uuid
from unittest.mock import MagicMock
import pytest
import marketplace.extensions as ext
from marketplace.errors import Conflict
from marketplace.models.order import Order
from marketplace.models.product import Product
from marketplace.models.variant import VariantCombination
from marketplace.services import order_service
from marketplace.workers.sales import refresh_total_sold

ADDRESS = {
    "recipient_name": "Budi Santoso",
    "phone": "081234567890",
    "address_line1": "Jl. Merdeka No. 10",
    "city": "Bandung",
    "province": "Jawa Barat",
    "postal_code": "40111",
}


@pytest.fixture
def buyer():
    return {"X-User-Id": f"buyer-{uuid.uuid4().hex[:8]}"}


@pytest.fixture
def shirt(make_product):
    return make_product(
        title="Kaos Band",
        price=100000,
        stock=5,
        variant_types=[
            {"name": "Warna", "values": ["Merah", "Biru"]},
            {"name": "Ukuran", "values": ["S"]},
        ],
        combinations=[
            {"combination": {"Warna": "Merah", "Ukuran": "S"}, "price": 50000, "stock": 3},
            {"combination": {"Warna": "Biru", "Ukuran": "S"}, "price": 55000, "stock": 1},
        ],
    )


def _combination_id(product, **mapping):
    return next(c.id for c in product.combinations if c.mapping == mapping)


def _checkout(client, headers, **overrides):
    payload = {"payment_method": "bank_transfer", "shipping_address": ADDRESS}
    payload.update(overrides)
    return client.post("/api/orders", json=payload, headers=headers)


def test_variant_product_needs_a_combination(client, buyer, shirt):
    resp = client.post("/api/cart", json={"product_id": shirt.id}, headers=buyer)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Please choose a variant"


def test_cart_line_uses_combination_price(client, buyer, shirt):
    merah = _combination_id(shirt, Warna="Merah", Ukuran="S")
    resp = client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": merah, "quantity": 2},
        headers=buyer,
    )
    assert resp.status_code == 201
    cart = resp.get_json()
    assert cart["count"] == 2
    assert cart["subtotal"] == 100000
    line = cart["items"][0]
    assert line["price"] == 50000
    assert line["variant_label"] == "Warna: Merah, Ukuran: S"


def test_adding_again_merges_quantity(client, buyer, shirt):
    merah = _combination_id(shirt, Warna="Merah", Ukuran="S")
    body = {"product_id": shirt.id, "combination_id": merah, "quantity": 1}
    client.post("/api/cart", json=body, headers=buyer)
    resp = client.post("/api/cart", json=body, headers=buyer)
    cart = resp.get_json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 2


def test_cannot_exceed_combination_stock(client, buyer, shirt):
    biru = _combination_id(shirt, Warna="Biru", Ukuran="S")
    resp = client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": biru, "quantity": 2},
        headers=buyer,
    )
    assert resp.status_code == 409


def test_foreign_combination_rejected(client, buyer, shirt, make_product):
    other = make_product(
        title="Topi",
        variant_types=[{"name": "Warna", "values": ["Hitam"]}],
        combinations=[{"combination": {"Warna": "Hitam"}, "price": 30000, "stock": 9}],
    )
    resp = client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": other.combinations[0].id},
        headers=buyer,
    )
    assert resp.status_code == 404


def test_update_and_remove_cart_line(client, buyer, make_product):
    plain = make_product(title="Buku Tulis", price=12000, stock=10)
    resp = client.post("/api/cart", json={"product_id": plain.id}, headers=buyer)
    item_id = resp.get_json()["items"][0]["id"]

    resp = client.patch(f"/api/cart/{item_id}", json={"quantity": 4}, headers=buyer)
    assert resp.get_json()["subtotal"] == 48000

    resp = client.patch(f"/api/cart/{item_id}", json={"quantity": 11}, headers=buyer)
    assert resp.status_code == 409

    resp = client.patch(f"/api/cart/{item_id}", json={"quantity": 0}, headers=buyer)
    assert resp.get_json()["items"] == []

    resp = client.delete(f"/api/cart/{item_id}", headers=buyer)
    assert resp.status_code == 404


def test_other_users_cannot_touch_cart_line(client, buyer, make_product):
    plain = make_product(title="Pensil", price=3000, stock=10)
    resp = client.post("/api/cart", json={"product_id": plain.id}, headers=buyer)
    item_id = resp.get_json()["items"][0]["id"]

    resp = client.delete(f"/api/cart/{item_id}", headers={"X-User-Id": "someone-else"})
    assert resp.status_code == 404


def test_checkout_decrements_stock_and_clears_cart(client, db, buyer, shirt, monkeypatch):
    queue = MagicMock()
    monkeypatch.setattr(ext, "task_queue", queue)
    merah = _combination_id(shirt, Warna="Merah", Ukuran="S")
    client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": merah, "quantity": 2},
        headers=buyer,
    )

    resp = _checkout(client, buyer, shipping_cost=15000)
    assert resp.status_code == 201
    order = resp.get_json()
    assert order["order_number"].startswith("ORD-")
    assert order["subtotal"] == 100000
    assert order["total"] == 115000
    assert order["items"][0]["price"] == 50000
    assert order["items"][0]["variant_label"] == "Warna: Merah, Ukuran: S"

    db.session.expire_all()
    assert db.session.get(VariantCombination, merah).stock == 1
    assert db.session.get(Product, shirt.id).stock == 5
    assert client.get("/api/cart", headers=buyer).get_json()["items"] == []

    queue.enqueue.assert_called_once_with(refresh_total_sold, [shirt.id])

    resp = client.get(f"/api/orders/{order['order_number']}", headers=buyer)
    assert resp.status_code == 200
    resp = client.get(f"/api/orders/{order['order_number']}", headers={"X-User-Id": "snoop"})
    assert resp.status_code == 404

    orders = client.get("/api/orders", headers=buyer).get_json()["orders"]
    assert [o["order_number"] for o in orders] == [order["order_number"]]


def test_checkout_plain_product_uses_product_stock(client, db, buyer, make_product):
    plain = make_product(title="Gantungan Kunci", price=15000, stock=3)
    client.post("/api/cart", json={"product_id": plain.id, "quantity": 3}, headers=buyer)

    resp = _checkout(client, buyer, payment_method="cod")
    assert resp.status_code == 201

    db.session.expire_all()
    assert db.session.get(Product, plain.id).stock == 0


def test_checkout_empty_cart(client, buyer):
    resp = _checkout(client, buyer)
    assert resp.status_code == 409


def test_checkout_validates_address(client, buyer, make_product):
    plain = make_product(title="Stiker", price=5000, stock=3)
    client.post("/api/cart", json={"product_id": plain.id}, headers=buyer)

    resp = _checkout(client, buyer, shipping_address={"city": "Bandung"})
    assert resp.status_code == 400
    assert "recipient_name" in resp.get_json()["error"]

    resp = _checkout(client, buyer, payment_method="barter")
    assert resp.status_code == 400


def test_checkout_rechecks_stock(client, db, buyer, make_product):
    plain = make_product(title="Mug", price=40000, stock=2)
    client.post("/api/cart", json={"product_id": plain.id, "quantity": 2}, headers=buyer)

    product = db.session.get(Product, plain.id)
    product.stock = 1
    db.session.commit()

    resp = _checkout(client, buyer)
    assert resp.status_code == 409
    db.session.expire_all()
    assert db.session.get(Product, plain.id).stock == 1
    assert Order.query.filter_by(user_id=buyer["X-User-Id"]).count() == 0


def test_refresh_total_sold(client, db, buyer, make_product):
    plain = make_product(title="Kopi Bubuk", price=25000, stock=10)
    client.post("/api/cart", json={"product_id": plain.id, "quantity": 3}, headers=buyer)
    resp = _checkout(client, buyer)
    number = resp.get_json()["order_number"]

    assert refresh_total_sold([plain.id]) == 1
    db.session.expire_all()
    assert db.session.get(Product, plain.id).total_sold == 3

    # Cancelled orders no longer count
    Order.query.filter_by(order_number=number).first().status = "CANCELLED"
    db.session.commit()
    refresh_total_sold([plain.id])
    db.session.expire_all()
    assert db.session.get(Product, plain.id).total_sold == 0


def test_posted_discount_is_ignored(client, buyer, shirt):
    merah = _combination_id(shirt, Warna="Merah", Ukuran="S")
    client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": merah},
        headers=buyer,
    )

    resp = _checkout(client, buyer, shipping_cost=15000, discount=10**9)
    assert resp.status_code == 201
    order = resp.get_json()
    assert order["discount"] == 0
    assert order["total"] == order["subtotal"] + 15000 == 65000


def test_checkout_loses_race_for_last_unit(client, db, buyer, shirt):
    biru = _combination_id(shirt, Warna="Biru", Ukuran="S")
    client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": biru},
        headers=buyer,
    )

    # Another checkout takes the last unit after this session loaded the row
    combo = db.session.get(VariantCombination, biru)
    assert combo.stock == 1
    db.session.execute(
        db.text("UPDATE variant_combinations SET stock = 0 WHERE id = :id"), {"id": biru}
    )

    with pytest.raises(Conflict, match="Only 0 of Kaos Band left"):
        order_service.create_order(
            buyer["X-User-Id"], {"payment_method": "cod", "shipping_address": ADDRESS}
        )

    db.session.expire_all()
    assert Order.query.filter_by(user_id=buyer["X-User-Id"]).count() == 0


def test_inactive_combination_is_hidden_and_refused(client, buyer, make_product):
    product = make_product(
        title="Jaket Parka",
        variant_types=[{"name": "Warna", "values": ["Hijau", "Abu"]}],
        combinations=[
            {"combination": {"Warna": "Hijau"}, "price": 300000, "stock": 4},
            {"combination": {"Warna": "Abu"}, "price": 300000, "stock": 4,
             "is_active": False},
        ],
    )
    abu = _combination_id(product, Warna="Abu")

    detail = client.get(f"/api/products/{product.id}").get_json()
    assert [c["combination"] for c in detail["combinations"]] == [{"Warna": "Hijau"}]

    resp = client.post(
        "/api/cart",
        json={"product_id": product.id, "combination_id": abu},
        headers=buyer,
    )
    assert resp.status_code == 404


def test_checkout_refuses_deactivated_combination(client, db, buyer, shirt):
    merah = _combination_id(shirt, Warna="Merah", Ukuran="S")
    client.post(
        "/api/cart",
        json={"product_id": shirt.id, "combination_id": merah},
        headers=buyer,
    )
    db.session.get(VariantCombination, merah).is_active = False
    db.session.commit()

    resp = _checkout(client, buyer)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Kaos Band variant is no longer available"

    db.session.expire_all()
    assert db.session.get(VariantCombination, merah).stock == 3
