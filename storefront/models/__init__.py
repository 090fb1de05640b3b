from storefront.models.base import Base
from storefront.models.catalog_models import Cart, CartItem, Product
from storefront.models.coupon_models import Coupon, CouponType, CouponUsage
from storefront.models.order_models import ORDER_TRANSITIONS, Order, OrderItem, OrderStatus, PaymentMethod
from storefront.models.payment_models import Payment, PaymentStatus
from storefront.models.return_models import (
    DEFAULT_REFUND_METHOD,
    OrderReturn,
    Refund,
    RefundReason,
    RefundStatus,
    ReturnStatus,
    ReturnType,
)

__all__ = [
    "Base",
    "Product", "Cart", "CartItem",
    "Coupon", "CouponType", "CouponUsage",
    "Order", "OrderItem", "OrderStatus", "PaymentMethod", "ORDER_TRANSITIONS",
    "Payment", "PaymentStatus",
    "OrderReturn", "ReturnType", "ReturnStatus",
    "Refund", "RefundReason", "RefundStatus", "DEFAULT_REFUND_METHOD",
]
