import logging

from fastapi import APIRouter, Query, Response

from marketplace.auth.dependencies import CurrentUser
from marketplace.config import settings
from marketplace.core.schemas import ApiResponse, Page
from marketplace.core.utils import content_range
from marketplace.coupons.dependencies import CouponServiceDep
from marketplace.coupons.models import CouponRead, CouponValidationRequest, CouponValidationResult

logger = logging.getLogger(__name__)

coupon_router = APIRouter(
    prefix="/coupons",
    tags=["Coupons"],
)


@coupon_router.post("/validate", response_model=ApiResponse[CouponValidationResult])
async def validate_coupon_endpoint(
    service: CouponServiceDep,
    current_user: CurrentUser,
    payload: CouponValidationRequest,
):
    """Vérifie un coupon pour un montant de commande et retourne la remise applicable."""
    quote = await service.validate(payload.code, payload.order_amount)
    logger.info(f"Coupon '{quote.coupon.code}' validé pour user {current_user.id}.")
    return ApiResponse(data=CouponValidationResult(
        code=quote.coupon.code,
        discount_type=quote.coupon.discount_type,
        discount_value=quote.coupon.discount_value,
        discount_amount=quote.discount,
    ))


@coupon_router.get("/active", response_model=ApiResponse[Page[CouponRead]])
async def list_active_coupons_endpoint(
    service: CouponServiceDep,
    current_user: CurrentUser,
    response: Response,
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
):
    """Liste les coupons actuellement utilisables."""
    coupons, total = await service.list_active(limit=limit, offset=offset)
    response.headers["Content-Range"] = content_range("coupons", offset, len(coupons), total)
    return ApiResponse(data=Page(items=coupons, total=total, limit=limit, offset=offset))
