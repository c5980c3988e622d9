from datetime import datetime, timezone
from marketplace.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    shipping_cost = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="PENDING")
    payment_method = db.Column(db.String(50), nullable=False)
    shipping_address = db.Column(db.JSON, default=dict)
    tracking_number = db.Column(db.String(100))
    notes = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    items = db.relationship(
        "OrderItem", backref="order", lazy="select", cascade="all, delete-orphan"
    )

    STATUSES = {"PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED"}

    def to_dict(self):
        return {
            "order_number": self.order_number,
            "subtotal": self.subtotal,
            "shipping_cost": self.shipping_cost,
            "discount": self.discount,
            "total": self.total,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "shipping_address": self.shipping_address or {},
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "items": [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<Order {self.order_number} [{self.status}]>"


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    combination_id = db.Column(db.Integer, nullable=True)
    product_title = db.Column(db.String(255), nullable=False)
    product_image = db.Column(db.String(500))
    variant_label = db.Column(db.String(255), default="")
    price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "combination_id": self.combination_id,
            "product_title": self.product_title,
            "product_image": self.product_image,
            "variant_label": self.variant_label,
            "price": self.price,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }
