from datetime import datetime, timezone
from marketplace.extensions import db


class CartItem(db.Model):
    __tablename__ = "cart_items"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    combination_id = db.Column(
        db.Integer,
        db.ForeignKey("variant_combinations.id", ondelete="CASCADE"),
        nullable=True,
    )
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    product = db.relationship("Product", lazy="joined")
    combination = db.relationship("VariantCombination", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "product_id", "combination_id", name="uq_cart_line"
        ),
    )

    def __repr__(self):
        return f"<CartItem {self.user_id} product={self.product_id} x{self.quantity}>"
