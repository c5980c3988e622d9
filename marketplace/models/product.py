from datetime import datetime, timezone
from marketplace.extensions import db
from marketplace.services.variant_service import group_options_by_type


def format_rupiah(amount):
    """Format whole rupiah with dot thousands separators: ``Rp 50.000``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(int(amount)):,}".replace(",", ".")


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(
        db.Integer,
        db.ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    price = db.Column(db.Integer, nullable=False, default=0)  # whole rupiah
    original_price = db.Column(db.Integer)
    stock = db.Column(db.Integer, nullable=False, default=0)
    images = db.Column(db.JSON, default=list)  # ["https://…/a.jpg", …]
    image = db.Column(db.String(500))
    brand = db.Column(db.String(100))
    condition = db.Column(db.String(20), nullable=False, default="new")
    weight_grams = db.Column(db.Integer)
    min_purchase = db.Column(db.Integer, nullable=False, default=1)
    max_purchase = db.Column(db.Integer)
    sku = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    total_sold = db.Column(db.Integer, nullable=False, default=0, index=True)
    moderation_status = db.Column(
        db.String(20), nullable=False, default="PENDING", index=True
    )
    moderation_note = db.Column(db.Text)
    moderated_at = db.Column(db.DateTime(timezone=True))
    is_flagged = db.Column(db.Boolean, nullable=False, default=False)
    flagged_reason = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    category = db.relationship("Category", lazy="joined")
    variant_options = db.relationship(
        "VariantOption",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="VariantOption.sort_order",
    )
    combinations = db.relationship(
        "VariantCombination",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="VariantCombination.id",
    )

    MODERATION_STATUSES = {"PENDING", "APPROVED", "REJECTED", "BLOCKED"}

    @property
    def price_display(self):
        return format_rupiah(self.price)

    @property
    def is_visible(self):
        return (
            self.is_active
            and self.moderation_status == "APPROVED"
            and self.store is not None
            and self.store.is_verified
        )

    @property
    def variant_types(self):
        return group_options_by_type(self.variant_options)

    @property
    def active_combinations(self):
        return [c.to_dict() for c in self.combinations if c.is_active]

    def to_summary(self):
        """Card-sized payload for catalogue listings."""
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "original_price": self.original_price,
            "stock": self.stock,
            "image": self.image,
            "category_id": self.category_id,
            "store_id": self.store_id,
            "total_sold": self.total_sold,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update(
            {
                "description": self.description,
                "images": self.images or [],
                "brand": self.brand,
                "condition": self.condition,
                "weight_grams": self.weight_grams,
                "min_purchase": self.min_purchase,
                "max_purchase": self.max_purchase,
                "sku": self.sku,
                "moderation_status": self.moderation_status,
                "store": self.store.to_dict() if self.store else None,
                "category": self.category.to_dict() if self.category else None,
            }
        )
        return data

    def __repr__(self):
        return f"<Product {self.id}: {self.title}>"
