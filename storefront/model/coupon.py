# --- storefront/model/coupon.py ---

from ..extensions import db
from ..utils.api import iso, utcnow
from ..utils.money import D, to_string_money

PERCENTAGE = "Percentage"
FIXED_AMOUNT = "FixedAmount"
DISCOUNT_TYPES = (PERCENTAGE, FIXED_AMOUNT)


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    # always stored upper-cased; lookups are case-insensitive
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(500), nullable=True)

    # "Percentage" or "FixedAmount"
    discount_type = db.Column(db.String(16), nullable=False, default=PERCENTAGE)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    minimum_order_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    usage_limit = db.Column(db.Integer, nullable=True)      # None = unlimited
    times_used = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_percentage(self) -> bool:
        return self.discount_type == PERCENTAGE

    def amount_dec(self):
        return D(self.discount_amount)

    def minimum_dec(self):
        return D(self.minimum_order_amount)

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.times_used >= self.usage_limit

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_amount": to_string_money(self.discount_amount),
            "minimum_order_amount": to_string_money(self.minimum_order_amount),
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "usage_limit": self.usage_limit,
            "times_used": self.times_used,
            "is_active": self.is_active,
        }
