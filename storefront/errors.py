# storefront/errors.py
from flask import jsonify

from .utils.api import api_error


class StorefrontError(Exception):
    status_code = 400

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}


class NotFoundError(StorefrontError):
    status_code = 404


class EmptyCartError(StorefrontError):
    status_code = 422

    def __init__(self, message: str = "Cannot create order from empty cart"):
        super().__init__(message)


class InsufficientStockError(StorefrontError):
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Not enough stock available (requested {requested}, available {available})",
            {"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ValidationError(StorefrontError):
    status_code = 422


class InvalidCouponError(StorefrontError):
    status_code = 422


class ConcurrentModificationError(StorefrontError):
    """Raised when a compare-and-swap on a shared row lost the race twice."""
    status_code = 409

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message, {**(data or {}), "retryable": True})


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e: StorefrontError):
        if e.status_code >= 500:
            app.logger.error("%s: %s", type(e).__name__, e.message)
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(404)
    def handle_not_found(e):
        r = jsonify(api_error("resource not found"))
        r.status_code = 404
        return r
