import uuid
import pytest
from marketplace import create_app
from marketplace.extensions import db as _db
from marketplace.models.category import Category
from marketplace.models.store import Store
from marketplace.services import product_service


def unique(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    """Per-test database session with rollback."""
    with app.app_context():
        _db.session.begin_nested()
        yield _db
        _db.session.rollback()


@pytest.fixture
def category(db):
    cat = Category(name="Fashion", slug=unique("fashion"))
    db.session.add(cat)
    db.session.commit()
    return cat


@pytest.fixture
def store(db):
    s = Store(
        owner_id=unique("seller"),
        name="Toko Test",
        slug=unique("toko-test"),
        verification_status="VERIFIED",
    )
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def make_product(db, store, category):
    """Create products through the seller service, approved by default."""

    def _make(title="Kaos Polos", price=100000, stock=5, variant_types=None,
              combinations=None, approve=True, category_id=None):
        product = product_service.create_product(
            store.owner_id,
            {
                "title": title,
                "description": f"{title} description",
                "category_id": category_id or category.id,
                "price": price,
                "stock": stock,
                "variant_types": variant_types or [],
                "combinations": combinations or [],
            },
        )
        if approve:
            product.moderation_status = "APPROVED"
            db.session.commit()
        return product

    return _make