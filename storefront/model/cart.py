# storefront/model/cart.py
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.sql import func

from ..extensions import db
from ..utils.api import iso, utcnow
from ..utils.money import ZERO, D, round_money, to_string_money


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    # registered user id, or "guest-<uuid>"
    user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()",
    )

    # --------- money helpers / totals ----------
    def item_count(self) -> int:
        return sum(int(i.quantity) for i in self.items)

    def find_item(self, product_id: int) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def subtotal_dec(self) -> Decimal:
        # live prices; a line whose product vanished contributes nothing
        return round_money(sum((i.line_total_dec() for i in self.items), ZERO))

    def touch(self):
        self.updated_at = utcnow()

    def as_api(self, totals: dict | None = None):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": [i.as_api() for i in self.items],
            "item_count": self.item_count(),
            "totals": totals or {},
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    is_gift_wrapped = db.Column(db.Boolean, nullable=False, default=False)
    gift_message = db.Column(db.String(500), nullable=True)

    added_at = db.Column(db.DateTime, default=utcnow)

    product = db.relationship("Product", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        db.CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

    # ---- price helpers ----
    def unit_price_dec(self) -> Decimal:
        return D(self.product.price) if self.product is not None else ZERO

    def line_total_dec(self) -> Decimal:
        return round_money(self.unit_price_dec() * Decimal(self.quantity))

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_price": to_string_money(self.unit_price_dec()),
            "quantity": self.quantity,
            "line_total": to_string_money(self.line_total_dec()),
            "is_gift_wrapped": self.is_gift_wrapped,
            "gift_message": self.gift_message,
            "added_at": iso(self.added_at),
        }
