"""
Storefront exception hierarchy

Every business-rule violation is raised as a ``StorefrontException`` subclass
carrying a machine readable ``code`` and structured ``data`` so the client can
explain the failure to the user. The five kinds map onto HTTP statuses:

- NotFound        -> 404
- Validation      -> 400
- Forbidden       -> 403 (401 for missing credentials)
- StateConflict   -> 400
- UpstreamFailure -> 503
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class StorefrontException(HTTPException):
    """Base class for all storefront errors"""

    def __init__(
        self,
        detail: str,
        code: str = "STOREFRONT_ERROR",
        data: Any = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.data = data


# ---------- NotFound ----------

class NotFoundException(StorefrontException):
    """Resource not found"""

    def __init__(self, detail: str = "Resource not found", code: str = "NOT_FOUND", data: Any = None):
        super().__init__(detail=detail, code=code, data=data, status_code=status.HTTP_404_NOT_FOUND)


class OrderNotFoundException(NotFoundException):
    def __init__(self, order_id: str):
        super().__init__(detail="Order not found", code="ORDER_NOT_FOUND", data={"orderId": order_id})


class CouponNotFoundException(NotFoundException):
    def __init__(self, code: str):
        super().__init__(detail="Invalid coupon code", code="COUPON_NOT_FOUND", data={"code": code})


class ProductNotFoundException(NotFoundException):
    def __init__(self, product_id: str):
        super().__init__(detail="Product not found", code="PRODUCT_NOT_FOUND", data={"productId": product_id})


class CartItemNotFoundException(NotFoundException):
    def __init__(self, item_id: str):
        super().__init__(detail="Cart item not found", code="CART_ITEM_NOT_FOUND", data={"itemId": item_id})


class PaymentNotFoundException(NotFoundException):
    def __init__(self, gateway_order_id: str):
        super().__init__(
            detail="Payment not found",
            code="PAYMENT_NOT_FOUND",
            data={"gatewayOrderId": gateway_order_id},
        )


class ReturnNotFoundException(NotFoundException):
    def __init__(self, return_id: str):
        super().__init__(detail="Return request not found", code="RETURN_NOT_FOUND", data={"returnId": return_id})


class RefundNotFoundException(NotFoundException):
    def __init__(self, refund_id: str):
        super().__init__(detail="Refund not found", code="REFUND_NOT_FOUND", data={"refundId": refund_id})


# ---------- Validation ----------

class ValidationException(StorefrontException):
    """Malformed or unusable input"""

    def __init__(self, detail: str = "Validation failed", code: str = "VALIDATION_ERROR", data: Any = None):
        super().__init__(detail=detail, code=code, data=data, status_code=status.HTTP_400_BAD_REQUEST)


class EmptyCartException(ValidationException):
    def __init__(self):
        super().__init__(detail="Cart is empty", code="EMPTY_CART")


class ProductUnavailableException(ValidationException):
    def __init__(self, product_id: str):
        super().__init__(
            detail="Product is no longer available",
            code="PRODUCT_UNAVAILABLE",
            data={"productId": product_id},
        )


class TrackingNumberRequiredException(ValidationException):
    def __init__(self):
        super().__init__(
            detail="Tracking number is required to ship an order",
            code="TRACKING_NUMBER_REQUIRED",
            data={"fields": [{"field": "trackingNumber", "message": "required when status is SHIPPED"}]},
        )


class DuplicateCouponException(ValidationException):
    def __init__(self, code: str):
        super().__init__(detail="Coupon code already exists", code="DUPLICATE_COUPON", data={"code": code})


# ---------- Forbidden ----------

class AuthenticationException(StorefrontException):
    """Missing or invalid credentials"""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            detail=detail,
            code="AUTHENTICATION_FAILED",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(StorefrontException):
    """Ownership or role mismatch"""

    def __init__(self, detail: str = "Forbidden", data: Any = None):
        super().__init__(detail=detail, code="FORBIDDEN", data=data, status_code=status.HTTP_403_FORBIDDEN)


# ---------- StateConflict ----------

class StateConflictException(StorefrontException):
    """Request is well formed but the current state does not allow it"""

    def __init__(self, detail: str, code: str = "STATE_CONFLICT", data: Any = None):
        super().__init__(detail=detail, code=code, data=data, status_code=status.HTTP_400_BAD_REQUEST)


class CouponExpiredException(StateConflictException):
    def __init__(self, code: str, expires_at):
        super().__init__(
            detail="Coupon expired",
            code="COUPON_EXPIRED",
            data={"code": code, "expiresAt": expires_at.isoformat() if expires_at else None},
        )


class CouponUsageExhaustedException(StateConflictException):
    def __init__(self, code: str, usage_limit: Optional[int]):
        super().__init__(
            detail="Coupon usage limit reached",
            code="COUPON_USAGE_EXHAUSTED",
            data={"code": code, "usageLimit": usage_limit},
        )


class CouponMinimumNotMetException(StateConflictException):
    def __init__(self, code: str, min_order, cart_total):
        super().__init__(
            detail=f"Minimum order amount of ₹{min_order} required",
            code="COUPON_MINIMUM_NOT_MET",
            data={"code": code, "minOrder": float(min_order), "cartTotal": float(cart_total)},
        )


class InvalidStatusTransitionException(StateConflictException):
    def __init__(self, current: str, requested: str):
        super().__init__(
            detail=f"Invalid status transition from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            data={"currentStatus": current, "requestedStatus": requested},
        )


class CancellationWindowExpiredException(StateConflictException):
    def __init__(self, window_hours: int, created_at):
        super().__init__(
            detail=f"Cancellation window expired ({window_hours} hours)",
            code="CANCELLATION_WINDOW_EXPIRED",
            data={"windowHours": window_hours, "createdAt": created_at.isoformat()},
        )


class OrderAlreadyShippedException(StateConflictException):
    def __init__(self, current: str):
        super().__init__(
            detail="Cannot cancel shipped orders",
            code="ORDER_ALREADY_SHIPPED",
            data={"status": current},
        )


class OrderAlreadyCancelledException(StateConflictException):
    def __init__(self, order_id: str):
        super().__init__(
            detail="Order is already cancelled",
            code="ORDER_ALREADY_CANCELLED",
            data={"orderId": order_id},
        )


class OrderNotDeliveredException(StateConflictException):
    def __init__(self, current: str):
        super().__init__(detail="Order not delivered yet", code="NOT_DELIVERED", data={"status": current})


class ReturnAlreadyRequestedException(StateConflictException):
    def __init__(self, return_id: str):
        super().__init__(detail="Return already requested", code="ALREADY_REQUESTED", data={"returnId": return_id})


class ReturnWindowExpiredException(StateConflictException):
    def __init__(self, window_days: int, delivered_at, expires_at):
        super().__init__(
            detail=f"Return window expired ({window_days} days)",
            code="WINDOW_EXPIRED",
            data={"deliveredAt": delivered_at.isoformat(), "expiresAt": expires_at.isoformat()},
        )


class ReturnAlreadyProcessedException(StateConflictException):
    def __init__(self, return_id: str, current: str):
        super().__init__(
            detail=f"Return request already {current.lower()}",
            code="RETURN_ALREADY_PROCESSED",
            data={"returnId": return_id, "status": current},
        )


class InvalidRefundTransitionException(StateConflictException):
    def __init__(self, refund_id: str, current: str, requested: str):
        super().__init__(
            detail=f"Refund cannot move from {current} to {requested}",
            code="INVALID_REFUND_TRANSITION",
            data={"refundId": refund_id, "currentStatus": current, "requestedStatus": requested},
        )


class OrderNotPayableException(StateConflictException):
    def __init__(self, order_id: str, reason: str):
        super().__init__(detail=reason, code="ORDER_NOT_PAYABLE", data={"orderId": order_id})


class SignatureMismatchException(StateConflictException):
    def __init__(self):
        super().__init__(detail="Signature verification failed", code="SIGNATURE_MISMATCH")


class InsufficientStockException(StateConflictException):
    def __init__(self, product_id: str, requested: int):
        super().__init__(
            detail="Insufficient stock",
            code="INSUFFICIENT_STOCK",
            data={"productId": product_id, "requested": requested},
        )


# ---------- UpstreamFailure ----------

class UpstreamFailureException(StorefrontException):
    """Payment gateway or database failure"""

    def __init__(self, detail: str = "Upstream service error", code: str = "UPSTREAM_FAILURE", data: Any = None):
        super().__init__(
            detail=detail,
            code=code,
            data=data,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
