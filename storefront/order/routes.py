# storefront/order/routes.py
from flask_jwt_extended import get_jwt

from ..errors import NotFoundError
from ..services import order_service
from ..utils.api import ok, request_json
from ..utils.decorators import role_required
from ..utils.session import resolve_session
from . import bp


def _visible_order(order_id: int):
    session = resolve_session()
    order = order_service.get_order(order_id)
    is_admin = (get_jwt() or {}).get("role") == "admin"
    # other people's orders are reported as missing
    if not is_admin and order.user_id != session.owner_id:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return order


@bp.get("")
def list_my_orders():
    session = resolve_session()
    orders = order_service.list_user_orders(session.owner_id)
    return ok("orders", [o.as_api() for o in orders])


@bp.get("/<int:order_id>")
def get_order(order_id: int):
    return ok("order", _visible_order(order_id).as_api())


@bp.get("/<int:order_id>/receipt")
def get_receipt(order_id: int):
    order = _visible_order(order_id)
    return ok("receipt", order_service.generate_receipt(order.id))


@bp.get("/by-number/<order_number>")
def get_order_by_number(order_number: str):
    order = order_service.find_order_by_number(order_number)
    if order is None:
        raise NotFoundError(f"Order {order_number} not found")
    return ok("order", _visible_order(order.id).as_api())


@bp.patch("/<int:order_id>/status")
@role_required("admin")
def update_status(order_id: int):
    order = order_service.update_order_status(order_id, request_json().get("status"))
    return ok("order status updated", order.as_api())
