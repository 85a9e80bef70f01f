# storefront/services/order_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..errors import EmptyCartError, NotFoundError, StorefrontError, ValidationError
from ..extensions import db
from ..model import Order, OrderItem
from ..model.order import ORDER_NUMBER_PREFIX
from ..repositories import CartRepository, OrderRepository, ProductRepository
from ..utils.api import iso, utcnow
from ..utils.money import D, round_money, to_string_money
from ..utils.session import SessionContext
from .cart_service import clear_cart
from .coupon_service import increment_usage
from .pricing_service import PricedOrder, normalize_shipping_method, price_cart

log = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("full_name", "address_line1", "city", "zip_code", "country")
ADDRESS_FIELDS = REQUIRED_ADDRESS_FIELDS + ("address_line2", "state", "phone_number", "email")

# business-day delivery windows
DELIVERY_WINDOWS = {"express": (1, 3), "standard": (5, 7)}


def _text(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", {"field": key})
    return value.strip() or None


@dataclass(frozen=True)
class CheckoutInputs:
    coupon_code: str | None = None
    shipping_method: str | None = None
    customer_email: str | None = None
    order_notes: str | None = None
    shipping_address: dict | None = None
    payment_method: str = "cod"

    @classmethod
    def from_payload(cls, data: dict, require_address: bool = False) -> "CheckoutInputs":
        address = data.get("shipping_address")
        if address is not None and not isinstance(address, dict):
            raise ValidationError("shipping_address must be an object")
        if address or require_address:
            address = address or {}
            missing = [f for f in REQUIRED_ADDRESS_FIELDS if not str(address.get(f) or "").strip()]
            if missing:
                raise ValidationError("Required address fields are missing", {"missing": missing})
            address = {f: address.get(f) for f in ADDRESS_FIELDS if address.get(f) is not None}

        email = _text(data, "customer_email") or (address or {}).get("email")
        return cls(
            coupon_code=_text(data, "coupon_code"),
            shipping_method=_text(data, "shipping_method"),
            customer_email=email,
            order_notes=_text(data, "order_notes"),
            shipping_address=address or None,
            payment_method=(_text(data, "payment_method") or "cod").lower(),
        )


def _discount_summary(priced: PricedOrder) -> str | None:
    if not priced.promotion_discount and not priced.coupon_discount:
        return None
    lines = []
    if priced.promotion_discount:
        lines.append("PROMOTIONS APPLIED:")
        for p in priced.applied_promotions:
            lines.append(f"- {p.promotion_name} ({p.discount_percentage}% off) = -${p.discount_amount}")
        lines.append(f"TOTAL PROMOTION SAVINGS: ${priced.promotion_discount}")
    if priced.coupon_discount:
        if lines:
            lines.append("")
        lines.append("COUPON APPLIED:")
        lines.append(f"- {priced.coupon_code} = -${priced.coupon_discount}")
    lines.append("")
    lines.append(f"TOTAL SAVINGS: ${priced.total_savings}")
    lines.append(f"FINAL TOTAL: ${priced.total}")
    return "\n".join(lines)


def _order_notes(notes: str | None, priced: PricedOrder) -> str | None:
    summary = _discount_summary(priced)
    notes = (notes or "").strip()
    if summary is None:
        return notes or None
    return f"{notes}\n\n{summary}" if notes else summary


def create_order(user_id: str, inputs: CheckoutInputs | None = None, now: datetime | None = None) -> Order:
    """Materialize the caller's cart into an order.

    Pricing, stock decrements, the order rows and clearing the cart share one
    transaction; any failure rolls all of it back. Coupon usage is recorded
    only after that transaction has committed.
    """
    inputs = inputs or CheckoutInputs()
    now = now or utcnow()

    cart = CartRepository.get(user_id)
    if cart is None or not cart.items:
        log.warning("checkout with empty cart user=%s", user_id)
        raise EmptyCartError()

    priced = price_cart(cart, inputs.coupon_code, inputs.shipping_method, now)

    try:
        order = Order(
            user_id=user_id,
            order_date=now,
            status="Pending",
            customer_email=inputs.customer_email,
            shipping_address=inputs.shipping_address,
            payment_method=inputs.payment_method,
            shipping_method=priced.shipping_method,
            order_notes=_order_notes(inputs.order_notes, priced),
            subtotal=priced.subtotal,
            tax=priced.tax,
            shipping_cost=priced.shipping_cost,
            promotion_discount=priced.promotion_discount,
            discount_amount=priced.coupon_discount,
            coupon_code=priced.coupon_code,
            total_amount=priced.total,
        )

        for item in cart.items:
            product = ProductRepository.decrement_stock(item.product_id, item.quantity)
            unit_price = round_money(product.price)
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                unit_price=unit_price,
                quantity=item.quantity,
                line_subtotal=round_money(unit_price * item.quantity),
                is_gift_wrapped=item.is_gift_wrapped,
                gift_message=item.gift_message,
            ))

        OrderRepository.save(order)
        order.assign_number()
        clear_cart(cart, commit=False)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log.warning("checkout rolled back for user=%s: %r", user_id, e)
        raise

    log.info("order %s created user=%s total=%s coupon=%s", order.order_number, user_id,
             order.total_amount, order.coupon_code)

    if priced.coupon_code:
        try:
            increment_usage(priced.coupon_code)
        except StorefrontError as e:
            # the order stands; the redemption count is the only casualty
            db.session.rollback()
            log.error("order %s committed but coupon %s usage was not recorded: %s",
                      order.order_number, priced.coupon_code, e.message)
    return order


def checkout(session: SessionContext, inputs: CheckoutInputs | None = None, now: datetime | None = None) -> Order:
    return create_order(session.owner_id, inputs, now)


# ---- lookups ----------------------------------------------------------------

def get_order(order_id: int) -> Order:
    order = OrderRepository.get(order_id)
    if order is None:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return order


def find_order_by_number(order_number: str | None) -> Order | None:
    """Accepts ``ORD-000042`` or a bare id; anything else finds nothing."""
    if not order_number:
        return None
    number = order_number.strip().upper()
    if number.startswith(ORDER_NUMBER_PREFIX):
        number = number[len(ORDER_NUMBER_PREFIX):].lstrip("0") or "0"
    if not number.isdigit():
        return None
    return OrderRepository.get(int(number))


def list_user_orders(user_id: str | None) -> list[Order]:
    if not user_id:
        return []
    return OrderRepository.for_user(user_id)


def update_order_status(order_id: int, status: str) -> Order:
    status = status.strip() if isinstance(status, str) else ""
    if not status:
        raise ValidationError("status is required")
    if len(status) > 20:
        raise ValidationError("status must be at most 20 characters")
    order = get_order(order_id)
    previous, order.status = order.status, status
    db.session.commit()
    log.info("order %s status %s -> %s", order.order_number, previous, status)
    return order


# ---- receipt ----------------------------------------------------------------

def add_business_days(start: datetime, days: int) -> datetime:
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def estimated_delivery(order_date: datetime, shipping_method: str | None) -> str:
    method = (shipping_method or "standard").lower()
    min_days, max_days = DELIVERY_WINDOWS.get(method, DELIVERY_WINDOWS["standard"])
    earliest = add_business_days(order_date, min_days)
    latest = add_business_days(order_date, max_days)
    return f"{earliest:%b %d} - {latest:%b %d, %Y}"


def generate_receipt(order_id: int) -> dict:
    order = get_order(order_id)
    promotion_discount = D(order.promotion_discount)
    coupon_discount = D(order.discount_amount)
    calculated = round_money(D(order.subtotal) + D(order.tax) + D(order.shipping_cost)
                             - promotion_discount - coupon_discount)
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "order_date": iso(order.order_date),
        "order_status": order.status,
        "customer_email": order.customer_email,
        "shipping_address": order.shipping_address,
        "items": [i.as_api() for i in order.items],
        "subtotal": to_string_money(order.subtotal),
        "shipping_cost": to_string_money(order.shipping_cost),
        "tax": to_string_money(order.tax),
        "promotion_discount": to_string_money(promotion_discount),
        "coupon_discount": to_string_money(coupon_discount),
        "coupon_code": order.coupon_code,
        "total_savings": to_string_money(promotion_discount + coupon_discount),
        "total": to_string_money(order.total_amount),
        "calculated_total": to_string_money(max(calculated, D(0))),
        "payment_method": order.payment_method,
        "shipping_method": normalize_shipping_method(order.shipping_method),
        "order_notes": order.order_notes,
        "estimated_delivery": estimated_delivery(order.order_date, order.shipping_method),
    }
