# storefront/repositories.py
"""Data access used by the services.

Every method works on the current ``db.session``; none of them commit. Services
own the transaction boundary.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, update

from .errors import ConcurrentModificationError, InsufficientStockError, NotFoundError
from .extensions import db
from .model import Cart, Coupon, Order, Product, Promotion, promotion_product
from .utils.api import utcnow

log = logging.getLogger(__name__)

# one transparent retry after a lost compare-and-swap
CAS_ATTEMPTS = 2


class ProductRepository:
    @staticmethod
    def get(product_id: int) -> Product | None:
        return db.session.get(Product, product_id)

    @staticmethod
    def decrement_stock(product_id: int, quantity: int) -> Product:
        """Compare-and-swap ``stock_quantity`` down by ``quantity``."""
        for attempt in range(CAS_ATTEMPTS):
            product = db.session.get(Product, product_id, populate_existing=True)
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found", {"product_id": product_id})
            seen = int(product.stock_quantity or 0)
            if seen < quantity:
                raise InsufficientStockError(product_id, quantity, seen)

            result = db.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity == seen)
                .values(stock_quantity=seen - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                db.session.refresh(product)
                log.info("stock decremented product=%s qty=%s %s->%s",
                         product_id, quantity, seen, product.stock_quantity)
                return product
            log.warning("stock CAS lost for product=%s (attempt %s)", product_id, attempt + 1)

        raise ConcurrentModificationError(
            f"Stock for product {product_id} changed concurrently", {"product_id": product_id}
        )


class CouponRepository:
    @staticmethod
    def normalize(code: str | None) -> str:
        return str(code or "").strip().upper()

    @classmethod
    def find_by_code(cls, code: str) -> Coupon | None:
        return Coupon.query.filter(func.upper(Coupon.code) == cls.normalize(code)).first()

    @staticmethod
    def get(coupon_id: int) -> Coupon | None:
        return db.session.get(Coupon, coupon_id)

    @classmethod
    def increment_usage(cls, code: str) -> Coupon:
        """Compare-and-swap ``times_used`` up by one."""
        for attempt in range(CAS_ATTEMPTS):
            coupon = cls.find_by_code(code)
            if coupon is None:
                raise NotFoundError(f"Coupon with code '{code}' not found", {"code": code})
            db.session.refresh(coupon)
            seen = int(coupon.times_used or 0)

            result = db.session.execute(
                update(Coupon)
                .where(Coupon.id == coupon.id, Coupon.times_used == seen)
                .values(times_used=seen + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                db.session.refresh(coupon)
                return coupon
            log.warning("usage CAS lost for coupon=%s (attempt %s)", coupon.code, attempt + 1)

        raise ConcurrentModificationError(
            f"Usage count for coupon '{code}' changed concurrently", {"code": code}
        )


class CartRepository:
    @staticmethod
    def get(user_id: str) -> Cart | None:
        return Cart.query.filter_by(user_id=user_id).first()

    @staticmethod
    def get_by_id(cart_id: int) -> Cart | None:
        return db.session.get(Cart, cart_id)

    @staticmethod
    def save(cart: Cart) -> Cart:
        db.session.add(cart)
        db.session.flush()
        return cart

    @staticmethod
    def delete(cart: Cart):
        db.session.delete(cart)
        db.session.flush()


class PromotionRepository:
    @staticmethod
    def active_for(product_id: int, now: datetime) -> list[Promotion]:
        """Currently-active promotions linked to ``product_id``, best first.

        Ordering is ``discount_percentage`` descending, then ``id`` ascending.
        """
        return (
            Promotion.query
            .join(promotion_product, promotion_product.c.promotion_id == Promotion.id)
            .filter(
                promotion_product.c.product_id == product_id,
                Promotion.is_active.is_(True),
                Promotion.start_date <= now,
                Promotion.end_date >= now,
            )
            .order_by(Promotion.discount_percentage.desc(), Promotion.id.asc())
            .all()
        )

    @staticmethod
    def get(promotion_id: int) -> Promotion | None:
        return db.session.get(Promotion, promotion_id)


class OrderRepository:
    @staticmethod
    def save(order: Order) -> Order:
        db.session.add(order)
        db.session.flush()
        return order

    @staticmethod
    def get(order_id: int) -> Order | None:
        return db.session.get(Order, order_id)

    @staticmethod
    def for_user(user_id: str) -> list[Order]:
        return Order.query.filter_by(user_id=user_id).order_by(Order.order_date.desc(), Order.id.desc()).all()
