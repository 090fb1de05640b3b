from typing import List

from fastapi import APIRouter, Depends, status

from storefront.api.dependencies_api import get_current_user, get_order_service
from storefront.core.security import CurrentUser
from storefront.schemas.order_schemas import (
    CancelOrderResponse,
    OrderCreate,
    OrderResponse,
    ReturnEligibilityResponse,
    ReturnRequestCreate,
)
from storefront.schemas.refund_schemas import RefundSummary, ReturnMessageResponse, ReturnResponse
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[OrderResponse])
def list_my_orders(
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    """Caller's orders, newest first"""
    return orders.list_orders(current_user.id)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    """
    Place an order from the caller's cart

    Prices are taken from the catalog at this moment; a coupon code is
    re-validated against the fresh subtotal.
    """
    return orders.create_order(
        current_user.id,
        shipping_address=body.shipping_address,
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
    )


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    return orders.get_order(order_id, current_user)


@router.post("/{order_id}/cancel", response_model=CancelOrderResponse)
def cancel_order(
    order_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    result = orders.cancel_order(order_id, current_user)

    refund = None
    if result.refund is not None:
        refund = RefundSummary(
            id=result.refund.id,
            amount=float(result.refund.amount),
            status=result.refund.status,
            estimated_days=result.estimated_days,
        )
    return CancelOrderResponse(
        message="Order cancelled successfully",
        order=OrderResponse.model_validate(result.order),
        refund=refund,
    )


@router.get("/{order_id}/return-eligibility", response_model=ReturnEligibilityResponse)
def check_return_eligibility(
    order_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    return ReturnEligibilityResponse.model_validate(orders.check_return_eligibility(order_id, current_user))


@router.post("/{order_id}/return", response_model=ReturnMessageResponse)
def request_return(
    order_id: str,
    body: ReturnRequestCreate,
    current_user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    order_return = orders.request_return(
        order_id,
        current_user,
        reason=body.reason,
        type=body.type,
        images=body.images,
    )
    return ReturnMessageResponse(
        message="Return request submitted",
        return_request=ReturnResponse.model_validate(order_return),
    )
