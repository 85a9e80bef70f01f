# ------- storefront/utils/decorators.py -------
from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from .api import api_error


def _current_role():
    verify_jwt_in_request()
    return (get_jwt() or {}).get("role", "user")


def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if _current_role() not in roles:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator

