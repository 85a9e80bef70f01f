from decimal import Decimal

import pytest

from storefront.errors import EmptyCartError
from storefront.model import Coupon, Product
from storefront.services import pricing_service


@pytest.fixture
def basket(make_product, make_promotion, make_coupon, make_cart):
    a = make_product("Product A", "30.00", stock=10)
    b = make_product("Product B", "40.00", stock=10)
    make_promotion([b], percentage="37.5", name="B Week")
    make_coupon("SAVE10", amount="10", minimum="50")
    return make_cart("user-1", [(a, 2), (b, 1)])


def test_full_checkout_pricing(basket, now):
    priced = pricing_service.price_cart(basket, "SAVE10", "standard", now)

    assert priced.subtotal == Decimal("100.00")
    assert priced.shipping_cost == Decimal("5.99")
    assert priced.promotion_discount == Decimal("15.00")
    assert priced.coupon_discount == Decimal("8.50")
    assert priced.tax == Decimal("8.00")
    assert priced.total == Decimal("90.49")
    assert priced.total_savings == Decimal("23.50")
    assert priced.coupon_code == "SAVE10"
    assert priced.coupon_message == "Coupon applied successfully"
    assert [p.promotion_name for p in priced.applied_promotions] == ["B Week"]


def test_tax_ignores_discounts(basket, now):
    with_coupon = pricing_service.price_cart(basket, "SAVE10", None, now)
    without = pricing_service.price_cart(basket, None, None, now)
    assert with_coupon.tax == without.tax == Decimal("8.00")


def test_invalid_coupon_is_ignored(basket, now):
    priced = pricing_service.price_cart(basket, "BOGUS", "standard", now)
    assert priced.coupon_discount == Decimal("0")
    assert priced.coupon_code is None
    assert priced.coupon_message == "Invalid coupon code"
    assert priced.total == Decimal("98.99")


def test_coupon_never_exceeds_post_promotion_subtotal(make_product, make_promotion, make_coupon, make_cart, now):
    p = make_product("Tea Tin", "10.00")
    make_promotion([p], percentage="50")
    make_coupon("BIG", discount_type="FixedAmount", amount="100")
    cart = make_cart("user-2", [(p, 1)])

    priced = pricing_service.price_cart(cart, "BIG", "standard", now)

    assert priced.promotion_discount == Decimal("5.00")
    assert priced.coupon_discount == Decimal("5.00")
    # 10.00 + 0.80 tax + 5.99 shipping - 5.00 - 5.00
    assert priced.total == Decimal("6.79")
    assert priced.total >= 0


def test_empty_cart_cannot_be_priced(make_cart, now):
    cart = make_cart("user-3")
    with pytest.raises(EmptyCartError):
        pricing_service.price_cart(cart, None, None, now)


@pytest.mark.parametrize("method,count,expected", [
    ("standard", 1, "5.99"),
    ("standard", 5, "5.99"),
    ("standard", 7, "7.49"),
    ("express", 3, "12.99"),
    ("express", 7, "15.99"),
    ("EXPRESS", 6, "14.49"),
    ("drone", 7, "7.49"),
    (None, 2, "5.99"),
])
def test_shipping_table(app, method, count, expected):
    assert pricing_service.shipping_cost(method, count) == Decimal(expected)


def test_shipping_counts_quantities_not_lines(make_product, make_cart, now):
    p = make_product(stock=50)
    cart = make_cart("user-4", [(p, 7)])
    priced = pricing_service.price_cart(cart, None, "standard", now)
    assert priced.item_count == 7
    assert priced.shipping_cost == Decimal("7.49")


def test_unknown_method_is_normalized(app):
    assert pricing_service.normalize_shipping_method("Overnight") == "standard"
    assert pricing_service.normalize_shipping_method(" Express ") == "express"
    assert pricing_service.normalize_shipping_method(5) == "standard"


def test_preview_has_no_side_effects(basket, now):
    first = pricing_service.preview_totals(basket, "SAVE10", "express", now)
    second = pricing_service.preview_totals(basket, "SAVE10", "express", now)

    assert first.as_api() == second.as_api()
    assert first.shipping_cost == Decimal("12.99")
    assert Coupon.query.filter_by(code="SAVE10").one().times_used == 0
    assert {p.name: p.stock_quantity for p in Product.query.all()} == {"Product A": 10, "Product B": 10}


def test_compute_tax_rounds_half_up(app):
    # 0.08 * 10.5625 = 0.845
    assert pricing_service.compute_tax(Decimal("10.5625")) == Decimal("0.85")
