from typing import List

from fastapi import APIRouter, Depends, Response, status

from storefront.api.dependencies_api import get_coupon_service, get_current_user, require_admin
from storefront.core.security import CurrentUser
from storefront.schemas.coupon_schemas import CouponApplyRequest, CouponApplyResponse, CouponCreate, CouponResponse
from storefront.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/apply", response_model=CouponApplyResponse)
def apply_coupon(
    body: CouponApplyRequest,
    current_user: CurrentUser = Depends(get_current_user),
    coupons: CouponService = Depends(get_coupon_service),
):
    """Preview a coupon's discount for a cart total; does not consume a use"""
    quote = coupons.validate_and_price(body.code, body.cart_total)
    return CouponApplyResponse(
        code=quote.coupon.code,
        type=quote.coupon.type,
        value=float(quote.coupon.value),
        discount_amount=float(quote.discount_amount),
    )


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
def create_coupon(
    body: CouponCreate,
    admin: CurrentUser = Depends(require_admin),
    coupons: CouponService = Depends(get_coupon_service),
):
    return coupons.create_coupon(body, actor_id=admin.id)


@router.get("", response_model=List[CouponResponse])
def list_coupons(
    admin: CurrentUser = Depends(require_admin),
    coupons: CouponService = Depends(get_coupon_service),
):
    return coupons.list_coupons()


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(
    coupon_id: str,
    admin: CurrentUser = Depends(require_admin),
    coupons: CouponService = Depends(get_coupon_service),
):
    coupons.delete_coupon(coupon_id, actor_id=admin.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
