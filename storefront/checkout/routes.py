# storefront/checkout/routes.py
from flask import current_app

from ..repositories import CartRepository
from ..services import order_service, pricing_service
from ..services.order_service import CheckoutInputs
from ..utils.api import ok, request_json
from ..utils.session import resolve_session
from . import bp


@bp.post("/preview")
def preview():
    """
    Body: { "coupon_code": str?, "shipping_method": "standard" | "express" }
    Side-effect free: no stock change, no coupon usage.
    """
    session = resolve_session()
    inputs = CheckoutInputs.from_payload(request_json())
    cart = CartRepository.get(session.owner_id)
    priced = pricing_service.preview_totals(cart, inputs.coupon_code, inputs.shipping_method)
    return ok("checkout preview", priced.as_api())


@bp.post("")
def checkout():
    """
    Body: { "shipping_address": {...}, "shipping_method", "coupon_code",
            "customer_email", "order_notes", "payment_method" }
    """
    session = resolve_session()
    inputs = CheckoutInputs.from_payload(request_json(), require_address=True)
    order = order_service.checkout(session, inputs)
    current_app.logger.info("checkout complete order=%s owner=%s", order.order_number, session.owner_id)

    resp = ok("order created", {"order": order.as_api()}, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp
