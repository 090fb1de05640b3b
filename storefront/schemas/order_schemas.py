from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from storefront.models.coupon_models import normalize_code
from storefront.models.order_models import OrderStatus, PaymentMethod
from storefront.models.payment_models import PaymentStatus
from storefront.models.return_models import ReturnType
from storefront.schemas.base_schemas import CamelModel
from storefront.schemas.cart_schemas import ProductSummary
from storefront.schemas.refund_schemas import RefundSummary, ReturnResponse
from storefront.utils.date_utils import to_naive_utc


class OrderCreate(CamelModel):
    shipping_address: Dict[str, Any] = Field(..., description="Delivery address as entered at checkout")
    coupon_code: Optional[str] = Field(None, max_length=64)
    payment_method: PaymentMethod = PaymentMethod.ONLINE

    @field_validator("shipping_address")
    @classmethod
    def address_not_empty(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("shipping address is required")
        return v

    @field_validator("coupon_code")
    @classmethod
    def blank_code_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return normalize_code(v) or None


class OrderItemResponse(CamelModel):
    id: str
    product_id: str
    quantity: int
    price: float
    product: Optional[ProductSummary] = None


class PaymentSummary(CamelModel):
    id: str
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    amount: float
    currency: str
    status: PaymentStatus
    paid_at: Optional[datetime] = None


class OrderResponse(CamelModel):
    id: str
    user_id: str
    status: OrderStatus
    subtotal_amount: float
    discount_amount: float
    total_amount: float
    payment_method: PaymentMethod
    shipping_address: Optional[Dict[str, Any]] = None
    tracking_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = Field(default_factory=list)
    payment: Optional[PaymentSummary] = None
    returns: List[ReturnResponse] = Field(default_factory=list)


class OrderMessageResponse(CamelModel):
    message: str
    order: OrderResponse


class CancelOrderResponse(CamelModel):
    message: str
    order: OrderResponse
    refund: Optional[RefundSummary] = None


class ReturnEligibilityResponse(CamelModel):
    eligible: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    status: Optional[OrderStatus] = None
    return_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


class ReturnRequestCreate(CamelModel):
    type: ReturnType = ReturnType.RETURN
    reason: str = Field(..., min_length=1, max_length=1000)
    images: List[str] = Field(default_factory=list, max_length=5)


class ShippingUpdate(CamelModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)
    shipped_at: Optional[datetime] = None

    @field_validator("shipped_at")
    @classmethod
    def normalize_shipped_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class DeliveryUpdate(CamelModel):
    delivered_at: Optional[datetime] = None

    @field_validator("delivered_at")
    @classmethod
    def normalize_delivered_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class AdminStatsResponse(CamelModel):
    total_orders: int
    total_revenue: float
    orders_by_status: Dict[str, int]
    pending_returns: int
    pending_refunds: int
