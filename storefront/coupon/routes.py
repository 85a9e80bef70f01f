# storefront/coupon/routes.py
from __future__ import annotations

from flask import request

from ..errors import NotFoundError, ValidationError
from ..services import coupon_service
from ..utils.api import ok, request_json
from ..utils.decorators import role_required
from ..utils.money import finite_money
from . import bp


@bp.post("/validate")
def validate_coupon():
    """
    Body: { "code": str, "order_amount": number, "promotion_discount": number }
    Always 200: an unusable coupon is reported in data.is_valid / message.
    """
    data = request_json()
    try:
        order_amount = finite_money(data.get("order_amount"))
        promotion_discount = finite_money(data.get("promotion_discount"))
    except ArithmeticError:
        raise ValidationError("order_amount and promotion_discount must be numeric")

    result = coupon_service.validate_coupon(data.get("code"), order_amount, promotion_discount)
    return ok(result.message, result.as_api())


@bp.get("")
@role_required("admin")
def list_coupons():
    active = request.args.get("active")
    if active is not None:
        active = active.lower() == "true"
    return ok("coupons", [c.as_api() for c in coupon_service.list_coupons(active)])


@bp.get("/<int:coupon_id>")
@role_required("admin")
def get_coupon(coupon_id: int):
    return ok("coupon", coupon_service.get_coupon(coupon_id).as_api())


@bp.get("/code/<code>")
@role_required("admin")
def get_coupon_by_code(code: str):
    return ok("coupon", coupon_service.get_coupon_by_code(code).as_api())


@bp.post("")
@role_required("admin")
def create_coupon():
    coupon = coupon_service.create_coupon(request_json())
    return ok("Coupon created", coupon.as_api(), status=201)


@bp.put("/<int:coupon_id>")
@role_required("admin")
def update_coupon(coupon_id: int):
    coupon = coupon_service.update_coupon(coupon_id, request_json())
    return ok("Coupon updated", coupon.as_api())


@bp.delete("/<int:coupon_id>")
@role_required("admin")
def delete_coupon(coupon_id: int):
    if not coupon_service.delete_coupon(coupon_id):
        raise NotFoundError(f"Coupon with ID {coupon_id} not found")
    return ok("Coupon deleted")
