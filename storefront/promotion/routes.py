# storefront/promotion/routes.py
from ..errors import NotFoundError
from ..services import promotion_service
from ..utils.api import ok, request_json
from ..utils.decorators import role_required
from . import bp


@bp.get("")
def list_promotions():
    return ok("promotions", [p.as_api() for p in promotion_service.list_promotions()])


@bp.get("/active")
def list_active_promotions():
    return ok("active promotions", [p.as_api() for p in promotion_service.list_active_promotions()])


@bp.get("/<int:promotion_id>")
def get_promotion(promotion_id: int):
    return ok("promotion", promotion_service.get_promotion(promotion_id).as_api())


@bp.get("/<int:promotion_id>/products")
def get_promotion_products(promotion_id: int):
    return ok("promotion products", promotion_service.promotion_products(promotion_id))


@bp.get("/product/<int:product_id>")
def get_product_promotion(product_id: int):
    promotion = promotion_service.product_promotion(product_id)
    return ok("product promotion", promotion.as_api(include_products=False))


@bp.post("")
@role_required("admin")
def create_promotion():
    promotion = promotion_service.create_promotion(request_json())
    return ok("Promotion created", promotion.as_api(), status=201)


@bp.put("/<int:promotion_id>")
@role_required("admin")
def update_promotion(promotion_id: int):
    promotion = promotion_service.update_promotion(promotion_id, request_json())
    return ok("Promotion updated", promotion.as_api())


@bp.delete("/<int:promotion_id>")
@role_required("admin")
def delete_promotion(promotion_id: int):
    if not promotion_service.delete_promotion(promotion_id):
        raise NotFoundError(f"Promotion with ID {promotion_id} not found")
    return ok("Promotion deleted")
