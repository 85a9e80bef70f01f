# storefront/services/cart_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..model import Cart, CartItem
from ..repositories import CartRepository, ProductRepository
from ..utils.money import D, round_money

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GiftOptions:
    is_gift_wrapped: bool = False
    gift_message: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "GiftOptions":
        message = data.get("gift_message")
        message = message.strip() if isinstance(message, str) and message.strip() else None
        return cls(is_gift_wrapped=bool(data.get("is_gift_wrapped", False)), gift_message=message)


def _check_quantity(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer")
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    return quantity


def _require_product(product_id):
    product = ProductRepository.get(product_id)
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} not found.", {"product_id": product_id})
    return product


def _check_stock(product, wanted: int):
    available = int(product.stock_quantity or 0)
    if wanted > available:
        log.info("stock check failed product=%s wanted=%s available=%s", product.id, wanted, available)
        raise InsufficientStockError(product.id, wanted, available)


# ---- lookup -----------------------------------------------------------------

def get_or_create_cart(user_id: str) -> Cart:
    cart = CartRepository.get(user_id)
    if cart is None:
        cart = CartRepository.save(Cart(user_id=user_id))
        db.session.commit()
        log.info("cart created id=%s user=%s", cart.id, user_id)
    return cart


def get_cart_by_id(cart_id: int) -> Cart:
    cart = CartRepository.get_by_id(cart_id)
    if cart is None:
        raise NotFoundError(f"Cart with ID {cart_id} not found.")
    return cart


def cart_totals(cart: Cart) -> dict:
    """Display totals for a cart: live subtotal, flat tax, no discounts."""
    subtotal = cart.subtotal_dec()
    tax = round_money(subtotal * D(current_app.config["TAX_RATE"]))
    return {
        "item_count": cart.item_count(),
        "subtotal": str(subtotal),
        "tax": str(tax),
        "total": str(round_money(subtotal + tax)),
    }


# ---- mutations ----------------------------------------------------------------

def add_item(cart: Cart, product_id: int, quantity: int = 1, gift: GiftOptions | None = None) -> Cart:
    """Add ``quantity`` of a product; an existing line is incremented, never duplicated."""
    quantity = _check_quantity(quantity)
    gift = gift or GiftOptions()
    product = _require_product(product_id)

    item = cart.find_item(product.id)
    _check_stock(product, quantity + (item.quantity if item else 0))

    if item:
        item.quantity += quantity
        item.is_gift_wrapped = gift.is_gift_wrapped
        item.gift_message = gift.gift_message
    else:
        cart.items.append(CartItem(
            product_id=product.id,
            quantity=quantity,
            is_gift_wrapped=gift.is_gift_wrapped,
            gift_message=gift.gift_message,
        ))

    cart.touch()
    db.session.commit()
    log.info("cart %s user=%s added product=%s qty=%s", cart.id, cart.user_id, product.id, quantity)
    return cart


def _require_item(cart: Cart, item_id: int) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError(f"Cart item with ID {item_id} not found.")
    return item


def update_item(cart: Cart, item_id: int, quantity: int, gift: GiftOptions | None = None) -> Cart:
    quantity = _check_quantity(quantity)
    item = _require_item(cart, item_id)
    _check_stock(_require_product(item.product_id), quantity)

    item.quantity = quantity
    if gift is not None:
        item.is_gift_wrapped = gift.is_gift_wrapped
        item.gift_message = gift.gift_message

    cart.touch()
    db.session.commit()
    return cart


def remove_item(cart: Cart, item_id: int) -> Cart:
    item = _require_item(cart, item_id)
    # delete-orphan cascade removes the row
    cart.items.remove(item)
    cart.touch()
    db.session.commit()
    return cart


def clear_cart(cart: Cart, commit: bool = True) -> Cart:
    """Remove every line; the cart itself survives."""
    cart.items.clear()
    cart.touch()
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return cart


def merge_into(source: Cart | None, target: Cart) -> Cart:
    """Fold ``source`` into ``target`` and delete ``source``.

    Matching products have their quantities summed and take the gift options of
    the source line; the rest are copied over. Empty or missing sources leave
    ``target`` untouched.
    """
    if source is None or not source.items or source.id == target.id:
        return target

    for src in source.items:
        existing = target.find_item(src.product_id)
        if existing:
            existing.quantity += src.quantity
            existing.is_gift_wrapped = src.is_gift_wrapped
            existing.gift_message = src.gift_message
        else:
            target.items.append(CartItem(
                product_id=src.product_id,
                quantity=src.quantity,
                is_gift_wrapped=src.is_gift_wrapped,
                gift_message=src.gift_message,
            ))

    log.info("cart %s (%s) merged into cart %s (%s): %s lines",
             source.id, source.user_id, target.id, target.user_id, len(source.items))
    target.touch()
    CartRepository.delete(source)
    db.session.commit()
    return target


def merge_carts(source_user_id: str, target_user_id: str) -> Cart:
    source = CartRepository.get(source_user_id)
    if source is None or not source.items:
        return get_or_create_cart(target_user_id)
    return merge_into(source, get_or_create_cart(target_user_id))


def transfer_guest_cart(guest_cart_id: int, user_id: str) -> Cart:
    guest_cart = CartRepository.get_by_id(guest_cart_id)
    if guest_cart is None:
        raise NotFoundError(f"Guest cart with ID {guest_cart_id} not found.")
    return merge_into(guest_cart, get_or_create_cart(user_id))
