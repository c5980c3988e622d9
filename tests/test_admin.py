"""Tests for the admin console API."""
import uuid
import pytest
from marketplace.models.audit_log import AuditLog
from marketplace.models.product import Product
from marketplace.models.store import Store

ADMIN = {"X-User-Id": "admin-1"}


@pytest.fixture
def pending_store(db):
    suffix = uuid.uuid4().hex[:8]
    s = Store(owner_id=f"seller-{suffix}", name="Toko Baru", slug=f"toko-baru-{suffix}")
    db.session.add(s)
    db.session.commit()
    return s


def _audit(resource_type, resource_id):
    return (
        AuditLog.query.filter_by(resource_type=resource_type, resource_id=resource_id)
        .order_by(AuditLog.id)
        .all()
    )


def test_admin_requires_sign_in(client):
    assert client.get("/api/admin/stores").status_code == 401


def test_admin_rejects_non_admin(client):
    resp = client.get("/api/admin/stores", headers={"X-User-Id": "buyer-1"})
    assert resp.status_code == 403


def test_list_pending_stores(client, pending_store):
    resp = client.get("/api/admin/stores?status=pending", headers=ADMIN)
    assert resp.status_code == 200
    stores = resp.get_json()["stores"]
    assert pending_store.id in [s["id"] for s in stores]
    assert {s["verification_status"] for s in stores} == {"PENDING"}


def test_verify_store(client, db, pending_store):
    resp = client.post(f"/api/admin/stores/{pending_store.id}/verify", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()["verification_status"] == "VERIFIED"

    db.session.expire_all()
    entries = _audit("STORE", pending_store.id)
    assert [e.action for e in entries] == ["VERIFY_STORE"]
    assert entries[0].admin_id == "admin-1"
    assert entries[0].payload["from"] == "PENDING"


def test_reject_store_needs_reason(client, pending_store):
    resp = client.post(f"/api/admin/stores/{pending_store.id}/reject", headers=ADMIN)
    assert resp.status_code == 400

    resp = client.post(
        f"/api/admin/stores/{pending_store.id}/reject",
        json={"reason": "KTP tidak terbaca"},
        headers=ADMIN,
    )
    data = resp.get_json()
    assert data["verification_status"] == "REJECTED"
    assert data["rejection_reason"] == "KTP tidak terbaca"


def test_store_action_in_wrong_state(client, pending_store):
    resp = client.post(
        f"/api/admin/stores/{pending_store.id}/suspend",
        json={"reason": "Penipuan"},
        headers=ADMIN,
    )
    assert resp.status_code == 409


def test_store_action_missing_or_unknown(client, pending_store):
    resp = client.post("/api/admin/stores/999999/verify", headers=ADMIN)
    assert resp.status_code == 404
    resp = client.post(f"/api/admin/stores/{pending_store.id}/delete", headers=ADMIN)
    assert resp.status_code == 400


def test_suspending_store_hides_products(client, db, store, make_product):
    product = make_product()
    assert client.get(f"/api/products/{product.id}").status_code == 200

    resp = client.post(
        f"/api/admin/stores/{store.id}/suspend",
        json={"reason": "Produk palsu"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert client.get(f"/api/products/{product.id}").status_code == 404

    client.post(f"/api/admin/stores/{store.id}/unsuspend", headers=ADMIN)
    assert client.get(f"/api/products/{product.id}").status_code == 200


def test_moderation_queue_and_approve(client, db, make_product):
    product = make_product(title="Produk Antre Moderasi", approve=False)

    resp = client.get("/api/admin/moderation?q=Antre%20Moderasi", headers=ADMIN)
    assert [p["id"] for p in resp.get_json()["products"]] == [product.id]

    resp = client.post(f"/api/admin/products/{product.id}/approve", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()["moderation_status"] == "APPROVED"
    assert client.get(f"/api/products/{product.id}").status_code == 200

    db.session.expire_all()
    assert [e.action for e in _audit("PRODUCT", product.id)] == ["APPROVE_PRODUCT"]


def test_block_needs_note_and_deactivates(client, db, make_product):
    product = make_product()
    resp = client.post(f"/api/admin/products/{product.id}/block", headers=ADMIN)
    assert resp.status_code == 400

    resp = client.post(
        f"/api/admin/products/{product.id}/block",
        json={"note": "Barang terlarang"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.get_json()["moderation_status"] == "BLOCKED"
    assert client.get(f"/api/products/{product.id}").status_code == 404


def test_flag_and_unflag(client, make_product):
    product = make_product(title="Produk Ditandai")
    client.post(
        f"/api/admin/products/{product.id}/flag",
        json={"note": "Foto mencurigakan"},
        headers=ADMIN,
    )
    resp = client.get("/api/admin/moderation?status=all&flagged=1&q=Ditandai", headers=ADMIN)
    flagged = resp.get_json()["products"]
    assert [p["id"] for p in flagged] == [product.id]
    assert flagged[0]["flagged_reason"] == "Foto mencurigakan"

    client.post(f"/api/admin/products/{product.id}/unflag", headers=ADMIN)
    resp = client.get("/api/admin/moderation?status=all&flagged=1&q=Ditandai", headers=ADMIN)
    assert resp.get_json()["products"] == []


def test_approve_clears_flag(client, db, make_product):
    product = make_product(title="Produk Ditinjau Ulang", approve=False)
    client.post(
        f"/api/admin/products/{product.id}/flag",
        json={"note": "Harga tidak wajar"},
        headers=ADMIN,
    )

    resp = client.post(f"/api/admin/products/{product.id}/approve", headers=ADMIN)
    assert resp.get_json()["moderation_status"] == "APPROVED"

    db.session.expire_all()
    approved = db.session.get(Product, product.id)
    assert approved.is_flagged is False
    assert approved.flagged_reason is None

    resp = client.get("/api/admin/moderation?status=all&flagged=1&q=Ditinjau%20Ulang", headers=ADMIN)
    assert resp.get_json()["products"] == []


def test_moderate_missing_product(client):
    resp = client.post("/api/admin/products/999999/approve", headers=ADMIN)
    assert resp.status_code == 404


def test_stats(client, pending_store):
    resp = client.get("/api/admin/stats", headers=ADMIN)
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["stores"]["PENDING"] >= 1
    assert "products" in data
    assert data["orders"] >= 0
    assert data["revenue"] >= 0
