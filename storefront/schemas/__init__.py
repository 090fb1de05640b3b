from .base_schemas import CamelModel, MessageResponse
from .cart_schemas import CartItemAdd, CartItemResponse, CartItemUpdate, CartResponse
from .coupon_schemas import CouponApplyRequest, CouponApplyResponse, CouponCreate, CouponResponse
from .order_schemas import (
    AdminStatsResponse,
    CancelOrderResponse,
    DeliveryUpdate,
    OrderCreate,
    OrderMessageResponse,
    OrderResponse,
    ReturnEligibilityResponse,
    ReturnRequestCreate,
    ShippingUpdate,
)
from .payment_schemas import PaymentInitRequest, PaymentVerifyRequest, PaymentVerifyResponse
from .refund_schemas import (
    RefundCompleteRequest,
    RefundMessageResponse,
    RefundProcessRequest,
    RefundResponse,
    RefundSummary,
    ReturnMessageResponse,
    ReturnResponse,
    ReturnStatusUpdate,
)

__all__ = [
    "CamelModel", "MessageResponse",
    "CartItemAdd", "CartItemUpdate", "CartItemResponse", "CartResponse",
    "CouponApplyRequest", "CouponApplyResponse", "CouponCreate", "CouponResponse",
    "OrderCreate", "OrderResponse", "OrderMessageResponse", "CancelOrderResponse",
    "ReturnEligibilityResponse", "ReturnRequestCreate", "ShippingUpdate", "DeliveryUpdate",
    "AdminStatsResponse",
    "PaymentInitRequest", "PaymentVerifyRequest", "PaymentVerifyResponse",
    "ReturnResponse", "ReturnStatusUpdate", "ReturnMessageResponse",
    "RefundResponse", "RefundSummary", "RefundProcessRequest", "RefundCompleteRequest", "RefundMessageResponse",
]
