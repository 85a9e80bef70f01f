# storefront/services/pricing_service.py
"""Server-side checkout pricing.

Order of operations, which any client-side preview has to mirror exactly:

  1) subtotal from live product prices
  2) shipping from method + item count
  3) promotion discount (per line, best promotion per product)
  4) coupon on the post-promotion amount (minimum order checked pre-promotion)
  5) tax on the pre-discount subtotal
  6) total = max(0, subtotal + tax + shipping - promotion - coupon)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import EmptyCartError
from ..model import Cart
from ..utils.api import utcnow
from ..utils.money import ZERO, D, clamp_money, round_money
from .coupon_service import validate_coupon
from .promotion_service import AppliedPromotion, cart_promotion_discount

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedOrder:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    promotion_discount: Decimal
    coupon_discount: Decimal
    total: Decimal
    shipping_method: str
    item_count: int
    coupon_code: str | None = None
    coupon_message: str | None = None
    applied_promotions: list[AppliedPromotion] = field(default_factory=list)

    @property
    def total_savings(self) -> Decimal:
        return round_money(self.promotion_discount + self.coupon_discount)

    def as_api(self):
        return {
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "shipping_cost": str(self.shipping_cost),
            "shipping_method": self.shipping_method,
            "item_count": self.item_count,
            "promotion_discount": str(self.promotion_discount),
            "coupon_discount": str(self.coupon_discount),
            "coupon_code": self.coupon_code,
            "coupon_message": self.coupon_message,
            "total_savings": str(self.total_savings),
            "total": str(self.total),
            "applied_promotions": [p.as_api() for p in self.applied_promotions],
        }


def normalize_shipping_method(method: str | None) -> str:
    rates = current_app.config["SHIPPING_RATES"]
    method = method.strip().lower() if isinstance(method, str) else ""
    return method if method in rates else current_app.config["DEFAULT_SHIPPING_METHOD"]


def shipping_cost(method: str | None, item_count: int) -> Decimal:
    base, per_extra, allowance = current_app.config["SHIPPING_RATES"][normalize_shipping_method(method)]
    extra_items = max(0, int(item_count) - allowance)
    return round_money(D(base) + extra_items * D(per_extra))


def compute_tax(subtotal) -> Decimal:
    # deliberately on the undiscounted subtotal
    return round_money(D(subtotal) * D(current_app.config["TAX_RATE"]))


def price_cart(cart: Cart, coupon_code: str | None = None, shipping_method: str | None = None,
               now: datetime | None = None) -> PricedOrder:
    """Price ``cart`` without touching any state.

    An invalid coupon is logged and ignored; it never blocks the checkout.
    """
    if cart is None or not cart.items:
        raise EmptyCartError()
    now = now or utcnow()

    for item in cart.items:
        if item.product is None:
            log.warning("cart %s line %s references missing product %s", cart.id, item.id, item.product_id)
    subtotal = cart.subtotal_dec()
    item_count = cart.item_count()

    method = normalize_shipping_method(shipping_method)
    shipping = shipping_cost(method, item_count)

    promotions = cart_promotion_discount(cart, now)
    promotion_discount = promotions.total_discount

    coupon_discount = ZERO
    applied_code = None
    coupon_message = None
    if coupon_code and str(coupon_code).strip():
        result = validate_coupon(coupon_code, subtotal, promotion_discount, now=now)
        coupon_message = result.message
        if result.is_valid:
            coupon_discount = result.discount_amount
            applied_code = result.code
            log.info("coupon %s applied to cart %s user=%s: -%s", applied_code, cart.id, cart.user_id, coupon_discount)
        else:
            log.warning("coupon %r ignored for cart %s user=%s: %s",
                        coupon_code, cart.id, cart.user_id, result.message)

    tax = compute_tax(subtotal)
    total = clamp_money(subtotal + tax + shipping - promotion_discount - coupon_discount)

    priced = PricedOrder(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping,
        promotion_discount=promotion_discount,
        coupon_discount=coupon_discount,
        total=total,
        shipping_method=method,
        item_count=item_count,
        coupon_code=applied_code,
        coupon_message=coupon_message,
        applied_promotions=promotions.applied,
    )
    log.info("priced cart %s user=%s: subtotal=%s tax=%s shipping=%s promo=-%s coupon=-%s total=%s",
             cart.id, cart.user_id, subtotal, tax, shipping, promotion_discount, coupon_discount, total)
    return priced


def preview_totals(cart: Cart, coupon_code: str | None = None, shipping_method: str | None = None,
                   now: datetime | None = None) -> PricedOrder:
    """Same numbers ``checkout`` will charge; no usage increment, no stock change."""
    return price_cart(cart, coupon_code, shipping_method, now)
