"""
Order lifecycle

Checkout, cancellation, return requests and the admin fulfilment steps. Every
mutating operation runs as one transaction: the status change, stock movement,
coupon usage and refund record are written together or not at all.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import Settings
from storefront.core.database import atomic
from storefront.core.exceptions import (
    CancellationWindowExpiredException,
    EmptyCartException,
    ForbiddenException,
    InvalidStatusTransitionException,
    OrderAlreadyCancelledException,
    OrderAlreadyShippedException,
    OrderNotDeliveredException,
    OrderNotFoundException,
    ProductUnavailableException,
    ReturnAlreadyRequestedException,
    ReturnWindowExpiredException,
    TrackingNumberRequiredException,
    ValidationException,
)
from storefront.core.logging import AuditLogger, BusinessLogger
from storefront.core.security import CurrentUser
from storefront.crud.cart_crud import CartCRUD
from storefront.crud.catalog_crud import CatalogCRUD
from storefront.models.order_models import ORDER_TRANSITIONS, Order, OrderItem, OrderStatus, PaymentMethod
from storefront.models.payment_models import Payment, PaymentStatus
from storefront.models.return_models import (
    OrderReturn,
    Refund,
    RefundReason,
    RefundStatus,
    ReturnStatus,
    ReturnType,
)
from storefront.services.coupon_service import ZERO, CouponQuote, CouponService, to_money
from storefront.utils.date_utils import Clock, DateUtils, utcnow

logger = logging.getLogger(__name__)
business_logger = BusinessLogger("order")

# return eligibility reasons
NOT_DELIVERED = "NOT_DELIVERED"
ALREADY_REQUESTED = "ALREADY_REQUESTED"
WINDOW_EXPIRED = "WINDOW_EXPIRED"
WITHIN_WINDOW = "WITHIN_WINDOW"

CANCELLABLE_STATUSES = [status for status, targets in ORDER_TRANSITIONS.items() if OrderStatus.CANCELLED in targets]


@dataclass
class ReturnEligibility:
    eligible: bool
    reason: str
    message: str
    status: Optional[OrderStatus] = None
    return_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


@dataclass
class CancelResult:
    order: Order
    refund: Optional[Refund] = None
    estimated_days: int = 0


def order_load_options():
    return (
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.payment),
        selectinload(Order.returns),
    )


class OrderService:
    """Order lifecycle manager"""

    def __init__(self, db: Session, settings: Settings, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.carts = CartCRUD(db)
        self.catalog = CatalogCRUD(db, stock_floor_enforced=settings.STOCK_FLOOR_ENFORCED)
        self.coupons = CouponService(db, clock)

    @property
    def cancellation_window(self) -> timedelta:
        return timedelta(hours=self.settings.CANCELLATION_WINDOW_HOURS)

    @property
    def return_window(self) -> timedelta:
        return timedelta(days=self.settings.RETURN_WINDOW_DAYS)

    # ---------- lookups ----------

    def get_order_or_404(self, order_id: str) -> Order:
        stmt = select(Order).where(Order.id == order_id).options(*order_load_options())
        order = self.db.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    def get_order(self, order_id: str, actor: CurrentUser) -> Order:
        order = self.get_order_or_404(order_id)
        ensure_owner_or_admin(order, actor)
        return order

    def list_orders(self, user_id: str) -> List[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .options(*order_load_options())
            .order_by(Order.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_all_orders(self, limit: int = 50) -> List[Order]:
        stmt = select(Order).options(*order_load_options()).order_by(Order.created_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    # ---------- checkout ----------

    def create_order(
        self,
        user_id: str,
        shipping_address: Dict[str, Any],
        payment_method: PaymentMethod = PaymentMethod.ONLINE,
        coupon_code: Optional[str] = None,
    ) -> Order:
        """
        Turn the caller's cart into an order.

        Lines are re-priced from the catalog at this moment and a coupon is
        re-validated against the fresh subtotal. COD orders consume stock and
        move to PROCESSING immediately; ONLINE orders stay PENDING until the
        payment is verified.

        Args:
            user_id: customer placing the order
            shipping_address: address snapshot stored on the order
            payment_method: ONLINE or COD
            coupon_code: optional coupon to apply

        Returns:
            Order: the persisted order

        Raises:
            EmptyCartException: no cart or no lines
            ProductUnavailableException: a line's product is gone or inactive
            CouponNotFoundException, CouponExpiredException, CouponUsageExhaustedException,
            CouponMinimumNotMetException: the coupon no longer applies
            InsufficientStockException: COD order exceeds stock and the floor is enforced
        """
        cart = self.carts.get_by_user(user_id)
        if cart is None or not cart.items:
            raise EmptyCartException()

        lines = []
        subtotal = ZERO
        for cart_item in cart.items:
            product = cart_item.product
            if product is None or not product.is_active:
                raise ProductUnavailableException(cart_item.product_id)
            unit_price = to_money(product.base_price)
            subtotal += unit_price * cart_item.quantity
            lines.append((product.id, cart_item.quantity, unit_price))
        subtotal = to_money(subtotal)

        quote: Optional[CouponQuote] = None
        discount = to_money(ZERO)
        if coupon_code:
            quote = self.coupons.validate_and_price(coupon_code, subtotal)
            discount = quote.discount_amount

        now = self.clock()
        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING,
            subtotal_amount=subtotal,
            discount_amount=discount,
            total_amount=to_money(max(ZERO, subtotal - discount)),
            payment_method=payment_method,
            shipping_address=shipping_address,
            stock_reserved=False,
            created_at=now,
            updated_at=now,
        )
        order.items = [
            OrderItem(product_id=product_id, quantity=quantity, price=unit_price)
            for product_id, quantity, unit_price in lines
        ]

        with atomic(self.db):
            self.db.add(order)
            self.db.flush()

            self.carts.clear(cart)

            if quote is not None:
                self.coupons.record_usage(quote.coupon, order.id, user_id)

            if payment_method == PaymentMethod.COD:
                for product_id, quantity, _ in lines:
                    self.catalog.adjust_stock(product_id, -quantity)
                order.stock_reserved = True
                self._transition(order, OrderStatus.PROCESSING)

        business_logger.log_operation(
            "ORDER_CREATE",
            user_id,
            order_id=order.id,
            payment_method=payment_method.value,
            total=str(order.total_amount),
            coupon=quote.coupon.code if quote else None,
        )
        return self.get_order_or_404(order.id)

    # ---------- cancellation ----------

    def cancel_order(self, order_id: str, actor: CurrentUser) -> CancelResult:
        """
        Cancel an order that has not shipped, within the cancellation window.

        Stock is given back only if this order consumed it. A refund intent is
        recorded when the order was already paid online. The status change and
        the stock release are guarded UPDATEs, so two overlapping cancels
        restore stock and raise a refund at most once.
        """
        order = self.get_order_or_404(order_id)
        ensure_owner_or_admin(order, actor)

        if order.status == OrderStatus.CANCELLED:
            raise OrderAlreadyCancelledException(order.id)

        now = self.clock()
        if not DateUtils.within_window(order.created_at, now, self.cancellation_window, inclusive=False):
            business_logger.log_rejection("ORDER_CANCEL", actor.id, "window expired", order_id=order.id)
            raise CancellationWindowExpiredException(self.settings.CANCELLATION_WINDOW_HOURS, order.created_at)

        if order.status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise OrderAlreadyShippedException(order.status.value)

        refund = None
        with atomic(self.db):
            cancelled = self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status.in_(CANCELLABLE_STATUSES))
                .values(status=OrderStatus.CANCELLED, cancelled_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if cancelled == 0:
                current = self.db.execute(select(Order.status).where(Order.id == order.id)).scalar_one()
                if current == OrderStatus.CANCELLED:
                    raise OrderAlreadyCancelledException(order.id)
                raise OrderAlreadyShippedException(current.value)

            released = self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.stock_reserved.is_(True))
                .values(stock_reserved=False)
                .execution_options(synchronize_session=False)
            ).rowcount
            if released:
                for item in order.items:
                    self.catalog.adjust_stock(item.product_id, item.quantity)

            payment_status = self.db.execute(
                select(Payment.status).where(Payment.order_id == order.id)
            ).scalar_one_or_none()
            if payment_status == PaymentStatus.COMPLETED:
                refund = Refund(
                    order_id=order.id,
                    amount=order.total_amount,
                    reason=RefundReason.CANCELLATION,
                    status=RefundStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(refund)
                self.db.flush()

        business_logger.log_operation("ORDER_CANCEL", actor.id, order_id=order.id, refund_id=refund.id if refund else None)
        if refund is not None:
            AuditLogger.log_refund_event("CREATED", refund.id, order.id, {"reason": "CANCELLATION",
                                                                         "amount": str(refund.amount)})

        return CancelResult(
            order=self.get_order_or_404(order.id),
            refund=refund,
            estimated_days=self.settings.REFUND_ESTIMATED_DAYS,
        )

    # ---------- returns ----------

    def check_return_eligibility(self, order_id: str, actor: CurrentUser) -> ReturnEligibility:
        order = self.get_order_or_404(order_id)
        ensure_owner(order, actor)
        return self._evaluate_return(order, self.clock())

    def request_return(
        self,
        order_id: str,
        actor: CurrentUser,
        reason: str,
        type: ReturnType = ReturnType.RETURN,
        images: Optional[List[str]] = None,
    ) -> OrderReturn:
        order = self.get_order_or_404(order_id)
        ensure_owner(order, actor)

        now = self.clock()
        eligibility = self._evaluate_return(order, now)
        if eligibility.reason == NOT_DELIVERED:
            raise OrderNotDeliveredException(order.status.value)
        if eligibility.reason == ALREADY_REQUESTED:
            raise ReturnAlreadyRequestedException(eligibility.return_id)
        if eligibility.reason == WINDOW_EXPIRED:
            raise ReturnWindowExpiredException(
                self.settings.RETURN_WINDOW_DAYS, eligibility.delivered_at, eligibility.expires_at
            )

        order_return = OrderReturn(
            order_id=order.id,
            type=type,
            reason=reason,
            images=list(images or []),
            status=ReturnStatus.REQUESTED,
            requested_at=now,
            updated_at=now,
        )
        with atomic(self.db):
            self.db.add(order_return)
            try:
                self.db.flush()
            except IntegrityError as e:
                # a concurrent request stored its return first
                self.db.rollback()
                existing_id = self.db.execute(
                    select(OrderReturn.id).where(OrderReturn.order_id == order_id)
                ).scalar_one_or_none()
                raise ReturnAlreadyRequestedException(existing_id) from e

        business_logger.log_operation("RETURN_REQUEST", actor.id, order_id=order.id, type=type.value)
        return order_return

    def _evaluate_return(self, order: Order, now: datetime) -> ReturnEligibility:
        window_days = self.settings.RETURN_WINDOW_DAYS

        if order.status != OrderStatus.DELIVERED or order.delivered_at is None:
            return ReturnEligibility(
                eligible=False,
                reason=NOT_DELIVERED,
                message="Order not delivered yet",
                status=order.status,
            )

        if order.returns:
            return ReturnEligibility(
                eligible=False,
                reason=ALREADY_REQUESTED,
                message="Return already requested",
                return_id=order.returns[0].id,
            )

        expires_at = order.delivered_at + self.return_window
        if not DateUtils.within_window(order.delivered_at, now, self.return_window, inclusive=True):
            return ReturnEligibility(
                eligible=False,
                reason=WINDOW_EXPIRED,
                message=f"Return window expired ({window_days} days)",
                delivered_at=order.delivered_at,
                expires_at=expires_at,
            )

        return ReturnEligibility(
            eligible=True,
            reason=WITHIN_WINDOW,
            message=f"Within {window_days}-day window",
            delivered_at=order.delivered_at,
            expires_at=expires_at,
            days_remaining=DateUtils.days_remaining(order.delivered_at, now, self.return_window),
        )

    # ---------- admin fulfilment ----------

    def update_shipping(
        self,
        order_id: str,
        status: OrderStatus,
        tracking_number: Optional[str] = None,
        shipped_at: Optional[datetime] = None,
        actor_id: Optional[str] = None,
    ) -> Order:
        if status not in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise ValidationException(
                "Shipping updates only move an order to SHIPPED or DELIVERED",
                data={"fields": [{"field": "status", "message": "must be SHIPPED or DELIVERED"}]},
            )

        order = self.get_order_or_404(order_id)
        if status == OrderStatus.SHIPPED and not (tracking_number or "").strip():
            raise TrackingNumberRequiredException()

        now = self.clock()
        with atomic(self.db):
            self._transition(order, status)
            if status == OrderStatus.SHIPPED:
                order.tracking_number = tracking_number.strip()
                order.shipped_at = shipped_at or now
            else:
                order.delivered_at = now

        business_logger.log_operation("ORDER_SHIPPING", actor_id, order_id=order.id, status=status.value)
        return self.get_order_or_404(order.id)

    def mark_delivered(
        self, order_id: str, delivered_at: Optional[datetime] = None, actor_id: Optional[str] = None
    ) -> Order:
        order = self.get_order_or_404(order_id)
        with atomic(self.db):
            self._transition(order, OrderStatus.DELIVERED)
            order.delivered_at = delivered_at or self.clock()

        business_logger.log_operation("ORDER_DELIVERED", actor_id, order_id=order.id)
        return self.get_order_or_404(order.id)

    def get_stats(self) -> Dict[str, Any]:
        """Dashboard counters"""
        by_status = dict(self.db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status)).all())
        revenue = self.db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status != OrderStatus.CANCELLED)
        ).scalar_one()
        pending_returns = self.db.execute(
            select(func.count(OrderReturn.id)).where(OrderReturn.status == ReturnStatus.REQUESTED)
        ).scalar_one()
        pending_refunds = self.db.execute(
            select(func.count(Refund.id)).where(Refund.status != RefundStatus.COMPLETED)
        ).scalar_one()

        return {
            "total_orders": sum(by_status.values()),
            "total_revenue": float(Decimal(str(revenue))),
            "orders_by_status": {status.value: by_status.get(status, 0) for status in OrderStatus},
            "pending_returns": pending_returns,
            "pending_refunds": pending_refunds,
        }

    def _transition(self, order: Order, new_status: OrderStatus) -> None:
        if not order.can_transition_to(new_status):
            raise InvalidStatusTransitionException(order.status.value, new_status.value)
        order.status = new_status
        order.updated_at = self.clock()


def ensure_owner(order: Order, actor: CurrentUser) -> None:
    if order.user_id != actor.id:
        AuditLogger.log_security_event("ORDER_ACCESS_DENIED", actor.id, {"order_id": order.id})
        raise ForbiddenException("Unauthorized")


def ensure_owner_or_admin(order: Order, actor: CurrentUser) -> None:
    if actor.is_admin:
        return
    ensure_owner(order, actor)
