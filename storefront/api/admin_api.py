from typing import List

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies_api import get_order_service, get_refund_service, require_admin
from storefront.core.security import CurrentUser
from storefront.models.return_models import ReturnStatus
from storefront.schemas.order_schemas import (
    AdminStatsResponse,
    DeliveryUpdate,
    OrderMessageResponse,
    OrderResponse,
    ShippingUpdate,
)
from storefront.schemas.refund_schemas import (
    RefundCompleteRequest,
    RefundMessageResponse,
    RefundProcessRequest,
    RefundResponse,
    ReturnMessageResponse,
    ReturnResponse,
    ReturnStatusUpdate,
)
from storefront.services.order_service import OrderService
from storefront.services.refund_service import RefundService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsResponse)
def get_stats(
    admin: CurrentUser = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    return orders.get_stats()


@router.get("/orders", response_model=List[OrderResponse])
def list_orders(
    limit: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    return orders.list_all_orders(limit)


@router.patch("/orders/{order_id}/shipping", response_model=OrderMessageResponse)
def update_shipping(
    order_id: str,
    body: ShippingUpdate,
    admin: CurrentUser = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.update_shipping(
        order_id,
        body.status,
        tracking_number=body.tracking_number,
        shipped_at=body.shipped_at,
        actor_id=admin.id,
    )
    return OrderMessageResponse(message="Shipping status updated", order=OrderResponse.model_validate(order))


@router.patch("/orders/{order_id}/delivery", response_model=OrderMessageResponse)
def mark_delivered(
    order_id: str,
    body: DeliveryUpdate,
    admin: CurrentUser = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.mark_delivered(order_id, delivered_at=body.delivered_at, actor_id=admin.id)
    return OrderMessageResponse(message="Order marked as delivered", order=OrderResponse.model_validate(order))


@router.get("/returns", response_model=List[ReturnResponse])
def list_returns(
    admin: CurrentUser = Depends(require_admin),
    refunds: RefundService = Depends(get_refund_service),
):
    return refunds.list_returns()


@router.patch("/returns/{return_id}/status", response_model=ReturnMessageResponse)
def update_return_status(
    return_id: str,
    body: ReturnStatusUpdate,
    admin: CurrentUser = Depends(require_admin),
    refunds: RefundService = Depends(get_refund_service),
):
    status = ReturnStatus(body.status.value)
    order_return = refunds.update_return_status(return_id, status, body.admin_notes, actor_id=admin.id)
    return ReturnMessageResponse(
        message=f"Return request {status.value.lower()}",
        return_request=ReturnResponse.model_validate(order_return),
    )


@router.get("/refunds", response_model=List[RefundResponse])
def list_refunds(
    admin: CurrentUser = Depends(require_admin),
    refunds: RefundService = Depends(get_refund_service),
):
    return refunds.list_refunds()


@router.post("/refunds/{refund_id}/process", response_model=RefundMessageResponse)
def process_refund(
    refund_id: str,
    body: RefundProcessRequest,
    admin: CurrentUser = Depends(require_admin),
    refunds: RefundService = Depends(get_refund_service),
):
    refund = refunds.process_refund(refund_id, body.method, body.transaction_id, actor_id=admin.id)
    return RefundMessageResponse(message="Refund processing initiated", refund=RefundResponse.model_validate(refund))


@router.post("/refunds/{refund_id}/complete", response_model=RefundMessageResponse)
def complete_refund(
    refund_id: str,
    body: RefundCompleteRequest,
    admin: CurrentUser = Depends(require_admin),
    refunds: RefundService = Depends(get_refund_service),
):
    refund = refunds.complete_refund(refund_id, body.transaction_id, body.notes, actor_id=admin.id)
    return RefundMessageResponse(message="Refund completed successfully", refund=RefundResponse.model_validate(refund))
