# storefront/cart/routes.py
from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..services import cart_service
from ..services.cart_service import GiftOptions
from ..utils.api import ok, request_json
from ..utils.session import resolve_session
from . import bp


def _cart_response(msg, cart, status=200):
    return ok(msg, cart.as_api(cart_service.cart_totals(cart)), status=status)


def _current_cart():
    session = resolve_session()
    return cart_service.get_or_create_cart(session.owner_id)


@bp.get("")
def get_cart():
    return _cart_response("cart", _current_cart())


@bp.post("/items")
def add_item():
    """
    Body: { "product_id": int, "quantity": int, "is_gift_wrapped": bool, "gift_message": str }
    """
    data = request_json()
    product_id = data.get("product_id")
    if not product_id:
        raise ValidationError("product_id is required")

    cart = cart_service.add_item(
        _current_cart(),
        product_id,
        data.get("quantity", 1),
        GiftOptions.from_payload(data),
    )
    return _cart_response("item added", cart, status=201)


@bp.put("/items/<int:item_id>")
@bp.patch("/items/<int:item_id>")
def update_item(item_id: int):
    data = request_json()
    if "quantity" not in data:
        raise ValidationError("quantity is required")

    gift = GiftOptions.from_payload(data) if "is_gift_wrapped" in data or "gift_message" in data else None
    cart = cart_service.update_item(_current_cart(), item_id, data.get("quantity"), gift)
    return _cart_response("item updated", cart)


@bp.delete("/items/<int:item_id>")
def remove_item(item_id: int):
    cart = cart_service.remove_item(_current_cart(), item_id)
    return _cart_response("item removed", cart)


@bp.delete("/items")
def clear_cart_items():
    cart = cart_service.clear_cart(_current_cart())
    return _cart_response("all items removed", cart)


@bp.post("/merge")
def merge_guest_cart():
    """Fold the caller's guest cart into their user cart (call right after login)."""
    session = resolve_session()
    if session.is_guest:
        raise ValidationError("log in before merging a guest cart")
    if not session.guest_id:
        cart = cart_service.get_or_create_cart(session.user_id)
        return _cart_response("nothing to merge", cart)

    cart = cart_service.merge_carts(session.guest_owner_id, session.user_id)
    current_app.logger.info("guest %s merged into user %s", session.guest_id, session.user_id)
    return _cart_response("cart merged", cart)
