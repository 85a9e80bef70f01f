from ..extensions import db
from ..utils.api import iso, utcnow
from ..utils.money import to_string_money

ORDER_NUMBER_PREFIX = "ORD-"


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, index=True)  # e.g. "ORD-000042"
    user_id = db.Column(db.String(64), nullable=False, index=True)
    order_date = db.Column(db.DateTime, default=utcnow, index=True)
    # free-form label: Pending, Processing, Shipped, Delivered, Cancelled
    status = db.Column(db.String(20), default="Pending", index=True)

    # Customer snapshot
    customer_email = db.Column(db.String(255))
    shipping_address = db.Column(db.JSON)
    payment_method = db.Column(db.String(32), default="cod")
    shipping_method = db.Column(db.String(16), default="standard")
    order_notes = db.Column(db.Text)

    # Money snapshot, never re-priced after creation
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False)
    promotion_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)  # coupon only
    coupon_code = db.Column(db.String(64), nullable=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    def assign_number(self):
        self.order_number = f"{ORDER_NUMBER_PREFIX}{self.id:06d}"

    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "order_date": iso(self.order_date),
            "status": self.status,
            "customer_email": self.customer_email,
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "shipping_method": self.shipping_method,
            "order_notes": self.order_notes,
            "money": {
                "subtotal": to_string_money(self.subtotal),
                "tax": to_string_money(self.tax),
                "shipping_cost": to_string_money(self.shipping_cost),
                "promotion_discount": to_string_money(self.promotion_discount),
                "discount_amount": to_string_money(self.discount_amount),
                "total_amount": to_string_money(self.total_amount),
            },
            "coupon_code": self.coupon_code,
            "items": [i.as_api() for i in self.items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Link back for audit (not a FK: products may be deleted later)
    product_id = db.Column(db.Integer, index=True, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    is_gift_wrapped = db.Column(db.Boolean, default=False)
    gift_message = db.Column(db.String(500))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": to_string_money(self.unit_price),
            "quantity": self.quantity,
            "line_subtotal": to_string_money(self.line_subtotal),
            "is_gift_wrapped": self.is_gift_wrapped,
            "gift_message": self.gift_message,
        }
