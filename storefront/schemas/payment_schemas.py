from typing import Literal

from pydantic import AliasChoices, Field

from storefront.schemas.base_schemas import CamelModel


class PaymentInitRequest(CamelModel):
    order_id: str = Field(..., min_length=1)


class PaymentVerifyRequest(CamelModel):
    """Checkout callback; accepts the gateway's own razorpay* field names too"""

    gateway_order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayOrderId", "razorpayOrderId", "gateway_order_id"),
    )
    gateway_payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayPaymentId", "razorpayPaymentId", "gateway_payment_id"),
    )
    signature: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpaySignature"),
    )


class PaymentVerifyResponse(CamelModel):
    status: Literal["success"] = "success"
    order_id: str
