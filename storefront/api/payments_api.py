from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.api.dependencies_api import get_current_user, get_payment_service
from storefront.core.security import CurrentUser
from storefront.schemas.payment_schemas import PaymentInitRequest, PaymentVerifyRequest, PaymentVerifyResponse
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/create-order")
def create_payment_order(
    body: PaymentInitRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> Dict[str, Any]:
    """Open a gateway order for an ONLINE order; returns the gateway payload as is"""
    return payments.initiate_payment(body.order_id, current_user)


@router.post("/verify", response_model=PaymentVerifyResponse)
def verify_payment(
    body: PaymentVerifyRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
):
    payment = payments.verify_payment(body.gateway_order_id, body.gateway_payment_id, body.signature)
    return PaymentVerifyResponse(order_id=payment.order_id)
