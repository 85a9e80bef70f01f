import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("storefront").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_class=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    config_class.init_app(app)
    _configure_logging(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}}, expose_headers=["X-Guest-Id", "X-Order-Id"])
    migrate.init_app(app, db)

    from .errors import register_error_handlers
    from .utils.session import register_guest_cookie
    register_error_handlers(app)
    register_guest_cookie(app)

    # Register blueprints
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .promotion import bp as promotion_bp; app.register_blueprint(promotion_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()
        app.logger.debug("blueprints: %s", sorted(app.blueprints.keys()))

    return app
