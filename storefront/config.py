import os
from datetime import timedelta
from decimal import Decimal


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # pricing
    TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.08"))
    SHIPPING_RATES = {
        # method: (base, per extra item, free item allowance)
        "standard": (Decimal("5.99"), Decimal("0.75"), 5),
        "express": (Decimal("12.99"), Decimal("1.50"), 5),
    }
    DEFAULT_SHIPPING_METHOD = "standard"

    # guest identity
    GUEST_COOKIE_NAME = "GuestId"
    GUEST_HEADER_NAME = "X-Guest-Id"
    GUEST_COOKIE_MAX_AGE = int(timedelta(days=30).total_seconds())

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestingConfig(Config):
    TESTING = True
    LOG_LEVEL = "DEBUG"
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"

    @staticmethod
    def init_app(app):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
