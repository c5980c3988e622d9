from datetime import datetime, timezone
from marketplace.extensions import db


class VariantOption(db.Model):
    """One value of one option axis, e.g. type "Warna", value "Merah"."""

    __tablename__ = "variant_options"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = db.Column(db.String(50), nullable=False)  # "Warna", "Ukuran"
    value = db.Column(db.String(100), nullable=False)  # "Merah", "XL"
    image_url = db.Column(db.String(500))
    sort_order = db.Column(db.Integer, default=0)

    __table_args__ = (
        db.UniqueConstraint("product_id", "type", "value", name="uq_variant"),
    )

    def __repr__(self):
        return f"<Variant {self.type}: {self.value}>"


class VariantCombination(db.Model):
    __tablename__ = "variant_combinations"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # [{"type": "Warna", "value": "Merah"}, {"type": "Ukuran", "value": "S"}]
    combination = db.Column(db.JSON, nullable=False, default=list)
    price = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    sku = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def mapping(self):
        return {pair["type"]: pair["value"] for pair in self.combination or []}

    @staticmethod
    def pairs_from_mapping(mapping):
        return [{"type": t, "value": v} for t, v in mapping.items()]

    def to_dict(self):
        return {
            "id": self.id,
            "combination": self.mapping,
            "price": self.price,
            "stock": self.stock,
            "sku": self.sku or "",
        }

    def __repr__(self):
        return f"<VariantCombination {self.product_id} {self.mapping}>"
