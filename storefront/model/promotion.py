# storefront/model/promotion.py
from datetime import datetime

from ..extensions import db
from ..utils.api import iso, utcnow
from ..utils.money import D, to_string_money

PROMOTION_TYPES = ("FlashSale", "Seasonal", "Holiday", "Clearance", "NewProduct", "BundleDeal")

promotion_product = db.Table(
    "promotion_product",
    db.Column("promotion_id", db.Integer, db.ForeignKey("promotion.id", ondelete="CASCADE"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
)


class Promotion(db.Model):
    __tablename__ = "promotion"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    promotion_type = db.Column(db.String(32), nullable=False, default="Seasonal")
    created_at = db.Column(db.DateTime, default=utcnow)

    products = db.relationship("Product", secondary=promotion_product, lazy="selectin", order_by="Product.id")

    __table_args__ = (
        db.CheckConstraint("discount_percentage > 0 AND discount_percentage <= 100",
                           name="ck_promotion_percentage_range"),
    )

    def is_current(self, now: datetime) -> bool:
        return bool(self.is_active) and self.start_date <= now <= self.end_date

    def percentage_dec(self):
        return D(self.discount_percentage)

    def product_ids(self):
        return [p.id for p in self.products]

    def as_api(self, include_products=True):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "discount_percentage": str(self.percentage_dec()),
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "is_active": self.is_active,
            "type": self.promotion_type,
            "product_ids": self.product_ids(),
        }
        if include_products:
            data["products"] = [
                {"id": p.id, "name": p.name, "price": to_string_money(p.price)} for p in self.products
            ]
        return data
