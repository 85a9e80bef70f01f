from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from storefront import create_app
from storefront.config import TestingConfig
from storefront.extensions import db as _db
from storefront.model import Coupon, Product, Promotion
from storefront.services import cart_service
from storefront.utils.api import utcnow


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.drop_all()
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def make_product(db):
    def _make(name="Dark Chocolate Bar", price="10.00", stock=100):
        p = Product(name=name, price=Decimal(str(price)), stock_quantity=stock)
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def make_coupon(db, now):
    def _make(code="SAVE10", discount_type="Percentage", amount="10", minimum="0",
              usage_limit=None, times_used=0, is_active=True, start=None, end=None):
        c = Coupon(
            code=code.upper(),
            discount_type=discount_type,
            discount_amount=Decimal(str(amount)),
            minimum_order_amount=Decimal(str(minimum)),
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=1),
            usage_limit=usage_limit,
            times_used=times_used,
            is_active=is_active,
        )
        db.session.add(c)
        db.session.commit()
        return c
    return _make


@pytest.fixture
def make_promotion(db, now):
    def _make(products, percentage="10", name="Spring Sale", is_active=True, start=None, end=None):
        promo = Promotion(
            name=name,
            discount_percentage=Decimal(str(percentage)),
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=1),
            is_active=is_active,
            products=list(products),
        )
        db.session.add(promo)
        db.session.commit()
        return promo
    return _make


@pytest.fixture
def make_cart(app):
    def _make(user_id="user-1", lines=()):
        cart = cart_service.get_or_create_cart(user_id)
        for product, quantity in lines:
            cart_service.add_item(cart, product.id, quantity)
        return cart
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user_id="user-1", role="user", guest_id=None):
        token = create_access_token(identity=user_id, additional_claims={"role": role})
        headers = {"Authorization": f"Bearer {token}"}
        if guest_id:
            headers["X-Guest-Id"] = guest_id
        return headers
    return _headers
