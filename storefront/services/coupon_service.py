# storefront/services/coupon_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import InvalidCouponError, NotFoundError, ValidationError
from ..extensions import db
from ..model import DISCOUNT_TYPES, PERCENTAGE, Coupon
from ..repositories import CouponRepository
from ..utils.api import parse_iso8601, utcnow
from ..utils.money import ZERO, D, clamp_money, finite_money, format_money, percent_of, round_money

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponValidationResult:
    is_valid: bool
    message: str
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO
    coupon: dict | None = None

    @property
    def code(self) -> str | None:
        return self.coupon["code"] if self.coupon else None

    def as_api(self):
        return {
            "is_valid": self.is_valid,
            "message": self.message,
            "discount_amount": str(self.discount_amount),
            "final_amount": str(self.final_amount),
            "coupon": self.coupon,
        }


def _invalid(message: str, order_amount: Decimal) -> CouponValidationResult:
    return CouponValidationResult(
        is_valid=False,
        message=message,
        discount_amount=ZERO,
        final_amount=round_money(order_amount),
    )


def validate_coupon(code: str | None, order_amount, promotion_discount=0,
                    now: datetime | None = None) -> CouponValidationResult:
    """Decide whether ``code`` applies to an order and what it takes off.

    ``order_amount`` is the pre-promotion subtotal; the minimum-order rule is
    checked against it so a promotion never disqualifies a coupon. The discount
    itself is taken from what remains after ``promotion_discount``.
    Never raises for bad user input: failures come back as an invalid result.
    """
    request_id = uuid.uuid4().hex[:8]
    order_amount = D(order_amount)
    promotion_discount = D(promotion_discount)
    now = now or utcnow()
    log.info("[%s] validating coupon %r for order amount %s (promotion discount %s)",
             request_id, code, order_amount, promotion_discount)

    if not code or not str(code).strip():
        log.warning("[%s] empty coupon code", request_id)
        return _invalid("Coupon code cannot be empty", order_amount)

    if not isinstance(code, str):
        log.warning("[%s] coupon code is not a string: %r", request_id, code)
        return _invalid("Invalid coupon code", order_amount)

    coupon = CouponRepository.find_by_code(code)
    if coupon is None:
        log.warning("[%s] coupon not found: %s", request_id, code)
        return _invalid("Invalid coupon code", order_amount)

    if not coupon.is_active:
        log.warning("[%s] coupon inactive: %s", request_id, coupon.code)
        return _invalid("This coupon is no longer active", order_amount)

    if now < coupon.start_date or now > coupon.end_date:
        log.warning("[%s] coupon %s outside window %s..%s (now %s)",
                    request_id, coupon.code, coupon.start_date, coupon.end_date, now)
        return _invalid("This coupon is not valid at this time", order_amount)

    if coupon.is_exhausted():
        log.warning("[%s] coupon %s usage limit reached (%s/%s)",
                    request_id, coupon.code, coupon.times_used, coupon.usage_limit)
        return _invalid("This coupon has reached its usage limit", order_amount)

    if order_amount < coupon.minimum_dec():
        log.warning("[%s] order amount %s below minimum %s for %s",
                    request_id, order_amount, coupon.minimum_dec(), coupon.code)
        return _invalid(
            f"This coupon requires a minimum order of {format_money(coupon.minimum_dec())}",
            order_amount,
        )

    amount_for_discount = max(ZERO, order_amount - promotion_discount)
    if coupon.is_percentage:
        discount = percent_of(amount_for_discount, coupon.amount_dec())
    else:
        discount = min(coupon.amount_dec(), amount_for_discount)
    final_amount = max(ZERO, amount_for_discount - discount)

    result = CouponValidationResult(
        is_valid=True,
        message="Coupon applied successfully",
        discount_amount=clamp_money(discount),
        final_amount=clamp_money(final_amount),
        coupon=coupon.as_api(),
    )
    log.info("[%s] coupon %s valid: %s %s on %s -> discount %s, final %s",
             request_id, coupon.code, coupon.discount_type, coupon.amount_dec(),
             amount_for_discount, result.discount_amount, result.final_amount)
    return result


def increment_usage(code: str) -> Coupon:
    """Record one redemption. Call only after the order has been committed."""
    if not code or not code.strip():
        raise ValidationError("Coupon code cannot be empty")
    coupon = CouponRepository.increment_usage(code)
    db.session.commit()
    log.info("coupon %s usage incremented to %s", coupon.code, coupon.times_used)
    return coupon


# ---- admin ------------------------------------------------------------------

def list_coupons(active: bool | None = None) -> list[Coupon]:
    q = Coupon.query
    if active is not None:
        q = q.filter(Coupon.is_active.is_(active))
    return q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def get_coupon(coupon_id: int) -> Coupon:
    coupon = CouponRepository.get(coupon_id)
    if coupon is None:
        raise NotFoundError(f"Coupon with ID {coupon_id} not found")
    return coupon


def get_coupon_by_code(code: str) -> Coupon:
    if not code or not code.strip():
        raise ValidationError("Coupon code cannot be empty")
    coupon = CouponRepository.find_by_code(code)
    if coupon is None:
        raise NotFoundError(f"Coupon with code '{code}' not found")
    return coupon


def _clean_payload(data: dict, coupon_id: int | None = None) -> dict:
    code = CouponRepository.normalize(data.get("code"))
    if not code:
        raise ValidationError("code is required")

    dtype = data.get("discount_type") or PERCENTAGE
    if dtype not in DISCOUNT_TYPES:
        raise ValidationError("discount_type must be 'Percentage' or 'FixedAmount'")

    try:
        amount = finite_money(data.get("discount_amount"))
        minimum = finite_money(data.get("minimum_order_amount"))
    except ArithmeticError:
        raise ValidationError("discount_amount and minimum_order_amount must be numeric")
    if amount <= 0:
        raise ValidationError("discount_amount must be > 0")
    if dtype == PERCENTAGE and amount > 100:
        raise ValidationError("percentage coupons must be <= 100")
    if minimum < 0:
        raise ValidationError("minimum_order_amount must be >= 0")

    start_date = parse_iso8601(data.get("start_date"))
    end_date = parse_iso8601(data.get("end_date"))
    if not start_date or not end_date:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")
    if start_date >= end_date:
        raise ValidationError("End date must be after start date")

    usage_limit = data.get("usage_limit")
    if usage_limit in ("", None):
        usage_limit = None
    else:
        try:
            usage_limit = int(usage_limit)
        except (TypeError, ValueError):
            raise ValidationError("usage_limit must be an integer")
        if usage_limit < 0:
            raise ValidationError("usage_limit must be >= 0")

    # unique case-insensitive
    q = Coupon.query.filter(func.upper(Coupon.code) == code)
    if coupon_id is not None:
        q = q.filter(Coupon.id != coupon_id)
    if q.first():
        raise InvalidCouponError(f"Coupon with code '{code}' already exists")

    return {
        "code": code,
        "description": data.get("description"),
        "discount_type": dtype,
        "discount_amount": round_money(amount),
        "minimum_order_amount": round_money(minimum),
        "start_date": start_date,
        "end_date": end_date,
        "usage_limit": usage_limit,
        "is_active": bool(data.get("is_active", True)),
    }


def create_coupon(data: dict) -> Coupon:
    coupon = Coupon(times_used=0, **_clean_payload(data))
    db.session.add(coupon)
    db.session.commit()
    log.info("coupon created id=%s code=%s", coupon.id, coupon.code)
    return coupon


def update_coupon(coupon_id: int, data: dict) -> Coupon:
    coupon = get_coupon(coupon_id)
    for key, value in _clean_payload(data, coupon_id=coupon_id).items():
        setattr(coupon, key, value)
    db.session.commit()
    return coupon


def delete_coupon(coupon_id: int) -> bool:
    coupon = CouponRepository.get(coupon_id)
    if coupon is None:
        return False
    db.session.delete(coupon)
    db.session.commit()
    return True
