from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import delete, false

import storefront.repositories as repositories
from storefront.errors import (
    ConcurrentModificationError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.model import Coupon, Order, Product
from storefront.repositories import CartRepository, OrderRepository
from storefront.services import order_service
from storefront.services.order_service import CheckoutInputs
from storefront.utils.session import SessionContext

ADDRESS = {
    "full_name": "Dara Sok",
    "address_line1": "12 Riverside",
    "city": "Phnom Penh",
    "zip_code": "12000",
    "country": "KH",
    "email": "dara@example.com",
}


@pytest.fixture
def basket(make_product, make_promotion, make_coupon, make_cart):
    a = make_product("Product A", "30.00", stock=10)
    b = make_product("Product B", "40.00", stock=10)
    make_promotion([b], percentage="37.5", name="B Week")
    make_coupon("SAVE10", amount="10", minimum="50", usage_limit=5)
    return make_cart("user-1", [(a, 2), (b, 1)])


def _stock():
    return {p.name: p.stock_quantity for p in Product.query.order_by(Product.id).all()}


def _times_used(code="SAVE10"):
    return Coupon.query.filter_by(code=code).one().times_used


def test_create_order_snapshots_the_cart(basket, now):
    inputs = CheckoutInputs(coupon_code="save10", shipping_method="standard", shipping_address=ADDRESS)

    order = order_service.create_order("user-1", inputs, now)

    assert order.order_number == "ORD-000001"
    assert order.status == "Pending"
    assert order.subtotal == Decimal("100.00")
    assert order.tax == Decimal("8.00")
    assert order.shipping_cost == Decimal("5.99")
    assert order.promotion_discount == Decimal("15.00")
    assert order.discount_amount == Decimal("8.50")
    assert order.total_amount == Decimal("90.49")
    assert order.coupon_code == "SAVE10"
    assert [(i.product_name, i.unit_price, i.quantity, i.line_subtotal) for i in order.items] == [
        ("Product A", Decimal("30.00"), 2, Decimal("60.00")),
        ("Product B", Decimal("40.00"), 1, Decimal("40.00")),
    ]
    assert _stock() == {"Product A": 8, "Product B": 9}
    assert CartRepository.get("user-1").items == []
    assert _times_used() == 1


def test_order_notes_carry_discount_summary(basket, now):
    order = order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10", order_notes="Leave at door"), now)

    notes = order.order_notes
    assert notes.startswith("Leave at door\n\n")
    assert "PROMOTIONS APPLIED:" in notes
    assert "- B Week (37.5" in notes
    assert "% off) = -$15.00" in notes
    assert "- SAVE10 = -$8.50" in notes
    assert notes.endswith("FINAL TOTAL: $90.49")


def test_plain_order_has_no_summary(make_product, make_cart, now):
    p = make_product(stock=3)
    make_cart("user-2", [(p, 1)])
    order = order_service.create_order("user-2", CheckoutInputs(), now)
    assert order.order_notes is None
    assert order.coupon_code is None


def test_invalid_coupon_does_not_block_checkout(basket, now):
    order = order_service.create_order("user-1", CheckoutInputs(coupon_code="NOPE"), now)
    assert order.coupon_code is None
    assert order.discount_amount == Decimal("0.00")
    assert order.total_amount == Decimal("98.99")


def test_empty_or_missing_cart(make_cart, now):
    with pytest.raises(EmptyCartError):
        order_service.create_order("nobody", CheckoutInputs(), now)
    make_cart("user-3")
    with pytest.raises(EmptyCartError):
        order_service.create_order("user-3", CheckoutInputs(), now)
    assert Order.query.count() == 0


def test_failure_rolls_back_everything(basket, now, monkeypatch):
    def boom(order):
        raise RuntimeError("disk full")

    monkeypatch.setattr(OrderRepository, "save", staticmethod(boom))

    with pytest.raises(RuntimeError):
        order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10"), now)

    assert Order.query.count() == 0
    assert _stock() == {"Product A": 10, "Product B": 10}
    assert _times_used() == 0
    assert len(CartRepository.get("user-1").items) == 2


def test_vanished_product_fails_without_partial_decrements(basket, db, now):
    b = Product.query.filter_by(name="Product B").one()
    db.session.execute(delete(Product).where(Product.id == b.id))
    db.session.commit()
    db.session.expunge_all()

    with pytest.raises(NotFoundError):
        order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10"), now)

    assert _stock() == {"Product A": 10}
    assert _times_used() == 0
    assert Order.query.count() == 0


def test_stock_sold_out_before_materialization(basket, db, now):
    a = Product.query.filter_by(name="Product A").one()
    a.stock_quantity = 1
    db.session.commit()

    with pytest.raises(InsufficientStockError) as exc:
        order_service.create_order("user-1", CheckoutInputs(), now)

    assert exc.value.available == 1
    assert _stock() == {"Product A": 1, "Product B": 10}


def test_lost_stock_race_raises_concurrent_modification(basket, now, monkeypatch):
    real_update = repositories.update
    monkeypatch.setattr(repositories, "update", lambda model: real_update(model).where(false()))

    with pytest.raises(ConcurrentModificationError) as exc:
        order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10"), now)

    assert exc.value.data["retryable"] is True
    assert Order.query.count() == 0
    assert _times_used() == 0


def test_one_lost_stock_race_is_retried(basket, now, monkeypatch):
    real_update = repositories.update
    calls = []

    def lose_first(model):
        calls.append(model)
        stmt = real_update(model)
        return stmt.where(false()) if len(calls) == 1 else stmt

    monkeypatch.setattr(repositories, "update", lose_first)

    order = order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10"), now)

    # lost + retried decrement of A, decrement of B, coupon usage
    assert [m.__name__ for m in calls] == ["Product", "Product", "Product", "Coupon"]
    assert order.total_amount == Decimal("90.49")
    assert _stock() == {"Product A": 8, "Product B": 9}
    assert _times_used() == 1


def test_usage_failure_after_commit_keeps_the_order(basket, now, monkeypatch):
    def lost(code):
        raise ConcurrentModificationError("lost", {"code": code})

    monkeypatch.setattr(order_service, "increment_usage", lost)

    order = order_service.create_order("user-1", CheckoutInputs(coupon_code="SAVE10"), now)

    assert Order.query.count() == 1
    assert order.coupon_code == "SAVE10"
    assert _times_used() == 0


def test_order_prices_are_a_snapshot(basket, db, now):
    order = order_service.create_order("user-1", CheckoutInputs(), now)
    Product.query.filter_by(name="Product A").one().price = Decimal("99.00")
    db.session.commit()

    reloaded = order_service.get_order(order.id)
    assert reloaded.items[0].unit_price == Decimal("30.00")
    assert reloaded.total_amount == Decimal("98.99")


def test_guest_checkout_uses_guest_owner(make_product, make_cart, now):
    p = make_product()
    make_cart("guest-abc", [(p, 1)])
    order = order_service.checkout(SessionContext(guest_id="abc"), CheckoutInputs(), now)
    assert order.user_id == "guest-abc"
    assert order_service.list_user_orders("guest-abc") == [order]


def test_checkout_inputs_require_address_fields():
    with pytest.raises(ValidationError) as exc:
        CheckoutInputs.from_payload({"shipping_address": {"full_name": "Dara"}}, require_address=True)
    assert exc.value.data["missing"] == ["address_line1", "city", "zip_code", "country"]

    inputs = CheckoutInputs.from_payload({"shipping_address": ADDRESS, "coupon_code": "  "})
    assert inputs.customer_email == "dara@example.com"
    assert inputs.coupon_code is None
    assert inputs.payment_method == "cod"


def test_find_order_by_number(basket, now):
    order = order_service.create_order("user-1", CheckoutInputs(), now)

    assert order_service.find_order_by_number("ORD-000001").id == order.id
    assert order_service.find_order_by_number("ord-000001").id == order.id
    assert order_service.find_order_by_number(str(order.id)).id == order.id
    assert order_service.find_order_by_number("ORD-000099") is None
    assert order_service.find_order_by_number("banana") is None
    assert order_service.find_order_by_number(None) is None


def test_update_order_status(basket, now):
    order = order_service.create_order("user-1", CheckoutInputs(), now)

    assert order_service.update_order_status(order.id, " Shipped ").status == "Shipped"
    with pytest.raises(ValidationError):
        order_service.update_order_status(order.id, "")
    with pytest.raises(ValidationError):
        order_service.update_order_status(order.id, "x" * 21)
    with pytest.raises(NotFoundError):
        order_service.update_order_status(404, "Shipped")


def test_add_business_days_skips_weekends():
    friday = datetime(2024, 3, 1, 10, 0)
    assert order_service.add_business_days(friday, 1) == datetime(2024, 3, 4, 10, 0)
    assert order_service.add_business_days(friday, 5) == datetime(2024, 3, 8, 10, 0)


def test_estimated_delivery_windows():
    friday = datetime(2024, 3, 1, 10, 0)
    assert order_service.estimated_delivery(friday, "standard") == "Mar 08 - Mar 12, 2024"
    assert order_service.estimated_delivery(friday, "express") == "Mar 04 - Mar 06, 2024"
    assert order_service.estimated_delivery(friday, None) == "Mar 08 - Mar 12, 2024"


def test_generate_receipt(make_product, make_cart):
    p = make_product("Sencha", "20.00", stock=5)
    make_cart("user-7", [(p, 2)])
    placed = datetime(2024, 3, 1, 10, 0)
    order = order_service.create_order(
        "user-7", CheckoutInputs(shipping_method="express", shipping_address=ADDRESS), placed
    )

    receipt = order_service.generate_receipt(order.id)

    assert receipt["order_number"] == "ORD-000001"
    assert receipt["subtotal"] == "40.00"
    assert receipt["tax"] == "3.20"
    assert receipt["shipping_cost"] == "12.99"
    assert receipt["total"] == receipt["calculated_total"] == "56.19"
    assert receipt["total_savings"] == "0.00"
    assert receipt["shipping_method"] == "express"
    assert receipt["estimated_delivery"] == "Mar 04 - Mar 06, 2024"
    assert receipt["items"][0]["product_name"] == "Sencha"

    with pytest.raises(NotFoundError):
        order_service.generate_receipt(999)
