# storefront/services/promotion_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import PROMOTION_TYPES, Cart, Product, Promotion
from ..repositories import ProductRepository, PromotionRepository
from ..utils.api import parse_iso8601, utcnow
from ..utils.money import ZERO, D, clamp_money, finite_money, round_money

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedPromotion:
    product_id: int
    promotion_id: int
    promotion_name: str
    discount_percentage: Decimal
    discount_amount: Decimal

    def as_api(self):
        return {
            "product_id": self.product_id,
            "promotion_id": self.promotion_id,
            "promotion_name": self.promotion_name,
            "discount_percentage": str(self.discount_percentage),
            "discount_amount": str(self.discount_amount),
        }


@dataclass(frozen=True)
class PromotionDiscount:
    total_discount: Decimal = ZERO
    applied: list[AppliedPromotion] = field(default_factory=list)


# ---- resolver ---------------------------------------------------------------

def active_promotions_for(product_id: int, now: datetime | None = None) -> list[Promotion]:
    now = now or utcnow()
    return PromotionRepository.active_for(product_id, now)


def best_promotion_for(product_id: int, now: datetime | None = None) -> Promotion | None:
    # highest percentage wins; equal percentages fall back to the lowest id
    candidates = active_promotions_for(product_id, now)
    if not candidates:
        return None
    return min(candidates, key=lambda p: (-p.percentage_dec(), p.id))


def discounted_price(product: Product, promotion: Promotion) -> Decimal:
    price = D(product.price)
    return round_money(price * (Decimal("1") - promotion.percentage_dec() / Decimal("100")))


def cart_promotion_discount(cart: Cart, now: datetime | None = None) -> PromotionDiscount:
    """Sum the per-line promotion discounts of ``cart``.

    Each line gets at most one promotion (see ``best_promotion_for``). Lines
    whose product can no longer be found contribute zero.
    """
    now = now or utcnow()
    total = ZERO
    applied = []

    for item in cart.items:
        product = ProductRepository.get(item.product_id)
        if product is None:
            log.warning("promotion skipped: product %s missing from cart %s", item.product_id, cart.id)
            continue

        promotion = best_promotion_for(product.id, now)
        if promotion is None:
            continue

        per_unit = D(product.price) - discounted_price(product, promotion)
        line_discount = clamp_money(per_unit * item.quantity)
        total += line_discount
        applied.append(AppliedPromotion(
            product_id=product.id,
            promotion_id=promotion.id,
            promotion_name=promotion.name,
            discount_percentage=promotion.percentage_dec(),
            discount_amount=line_discount,
        ))
        log.info("promotion applied cart=%s user=%s product=%s promotion=%s %s%% x%s = %s",
                 cart.id, cart.user_id, product.id, promotion.id,
                 promotion.percentage_dec(), item.quantity, line_discount)

    return PromotionDiscount(total_discount=round_money(total), applied=applied)


# ---- admin ------------------------------------------------------------------

def list_promotions() -> list[Promotion]:
    return Promotion.query.order_by(Promotion.is_active.desc(), Promotion.start_date.desc()).all()


def list_active_promotions(now: datetime | None = None) -> list[Promotion]:
    now = now or utcnow()
    return (
        Promotion.query
        .filter(Promotion.is_active.is_(True), Promotion.start_date <= now, Promotion.end_date >= now)
        .order_by(Promotion.end_date.asc())
        .all()
    )


def get_promotion(promotion_id: int) -> Promotion:
    promotion = PromotionRepository.get(promotion_id)
    if promotion is None:
        raise NotFoundError(f"Promotion with ID {promotion_id} not found")
    return promotion


def product_promotion(product_id: int, now: datetime | None = None) -> Promotion:
    promotion = best_promotion_for(product_id, now)
    if promotion is None:
        raise NotFoundError(f"No active promotion found for product with ID {product_id}")
    return promotion


def promotion_products(promotion_id: int) -> list[dict]:
    promotion = get_promotion(promotion_id)
    rows = []
    for product in promotion.products:
        original = round_money(product.price)
        discounted = discounted_price(product, promotion)
        rows.append({
            "product": product.as_api(),
            "original_price": str(original),
            "discounted_price": str(discounted),
            "savings_amount": str(round_money(original - discounted)),
            "savings_percentage": str(promotion.percentage_dec()),
        })
    return rows


def _clean_payload(data: dict) -> dict:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    start_date = parse_iso8601(data.get("start_date"))
    end_date = parse_iso8601(data.get("end_date"))
    if not start_date or not end_date:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")
    if start_date >= end_date:
        raise ValidationError("End date must be after start date")

    try:
        pct = finite_money(data.get("discount_percentage"))
    except ArithmeticError:
        raise ValidationError("discount_percentage must be numeric")
    if pct <= 0 or pct > 100:
        raise ValidationError("Discount percentage must be between 0 and 100")

    product_ids = data.get("product_ids") or []
    try:
        product_ids = sorted({int(pid) for pid in product_ids})
    except (TypeError, ValueError):
        raise ValidationError("product_ids must be a list of integers")
    if not product_ids:
        raise ValidationError("At least one product must be selected for promotion")

    products = Product.query.filter(Product.id.in_(product_ids)).all()
    missing = sorted(set(product_ids) - {p.id for p in products})
    if missing:
        raise NotFoundError(
            f"Products with the following IDs do not exist: {', '.join(map(str, missing))}",
            {"missing_product_ids": missing},
        )

    ptype = data.get("type") or data.get("promotion_type") or "Seasonal"
    if ptype not in PROMOTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(PROMOTION_TYPES)}")

    return {
        "name": name,
        "description": data.get("description"),
        "discount_percentage": pct,
        "start_date": start_date,
        "end_date": end_date,
        "is_active": bool(data.get("is_active", True)),
        "promotion_type": ptype,
        "products": products,
    }


def create_promotion(data: dict) -> Promotion:
    promotion = Promotion(**_clean_payload(data))
    db.session.add(promotion)
    db.session.commit()
    log.info("promotion created id=%s name=%s pct=%s", promotion.id, promotion.name, promotion.discount_percentage)
    return promotion


def update_promotion(promotion_id: int, data: dict) -> Promotion:
    promotion = get_promotion(promotion_id)
    for key, value in _clean_payload(data).items():
        setattr(promotion, key, value)
    db.session.commit()
    return promotion


def delete_promotion(promotion_id: int) -> bool:
    promotion = PromotionRepository.get(promotion_id)
    if promotion is None:
        return False
    db.session.delete(promotion)
    db.session.commit()
    return True
