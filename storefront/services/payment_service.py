"""
Payment reconciliation

ONLINE orders are paid through the gateway's checkout. ``initiate_payment``
opens a payable order at the gateway; ``verify_payment`` checks the checkout
callback signature and, on success, moves the order to PROCESSING and takes
its stock. Money that arrives for an order cancelled in the meantime is
recorded and turned into a refund intent.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import Settings
from storefront.core.database import atomic
from storefront.core.exceptions import (
    OrderNotFoundException,
    OrderNotPayableException,
    PaymentNotFoundException,
    SignatureMismatchException,
)
from storefront.core.logging import AuditLogger, BusinessLogger
from storefront.core.security import CurrentUser
from storefront.crud.catalog_crud import CatalogCRUD
from storefront.models.order_models import Order, OrderStatus, PaymentMethod
from storefront.models.payment_models import Payment, PaymentStatus
from storefront.models.return_models import Refund, RefundReason, RefundStatus
from storefront.services.order_service import ensure_owner_or_admin
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.date_utils import Clock, utcnow
from storefront.utils.security_utils import verify_payment_signature

logger = logging.getLogger(__name__)
business_logger = BusinessLogger("payment")


def to_minor_units(amount) -> int:
    """Rupees to paisa, rounded half-up"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """Payment initiation and verification"""

    def __init__(self, db: Session, settings: Settings, gateway: PaymentGateway, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.gateway = gateway
        self.clock = clock
        self.catalog = CatalogCRUD(db, stock_floor_enforced=settings.STOCK_FLOOR_ENFORCED)

    def initiate_payment(self, order_id: str, actor: CurrentUser) -> Dict[str, Any]:
        """
        Open a payable order at the gateway for an ONLINE order awaiting payment.

        A retry for the same order replaces the gateway order id on the existing
        PENDING payment, so only the latest checkout can be verified.

        Args:
            order_id: order to pay for
            actor: caller, must own the order or be an admin

        Returns:
            Dict[str, Any]: gateway order payload for the client checkout
        """
        order = self.db.execute(
            select(Order).where(Order.id == order_id).options(selectinload(Order.payment))
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundException(order_id)
        ensure_owner_or_admin(order, actor)

        if order.payment_method == PaymentMethod.COD:
            raise OrderNotPayableException(order.id, "Cash on delivery orders are not paid online")
        if order.status != OrderStatus.PENDING:
            raise OrderNotPayableException(order.id, f"Order is {order.status.value}, not awaiting payment")

        currency = self.settings.PAYMENT_CURRENCY
        amount_minor = to_minor_units(order.total_amount)
        gateway_order = self.gateway.create_payable_order(amount_minor, currency, order.id)
        gateway_order_id = str(gateway_order["id"])

        now = self.clock()
        with atomic(self.db):
            payment: Optional[Payment] = order.payment
            if payment is None:
                payment = Payment(
                    order_id=order.id,
                    gateway_order_id=gateway_order_id,
                    amount=order.total_amount,
                    currency=currency,
                    status=PaymentStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(payment)
            else:
                payment.gateway_order_id = gateway_order_id
                payment.amount = order.total_amount
                payment.currency = currency
                payment.updated_at = now

        AuditLogger.log_payment_event("INITIATED", order.id, gateway_order_id, {"amount_minor": amount_minor,
                                                                                 "currency": currency})
        return gateway_order

    def verify_payment(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> Payment:
        """
        Confirm a gateway checkout callback.

        The payment is claimed with a guarded UPDATE on its PENDING status, so
        a callback delivered twice takes stock once. When the order was
        cancelled before the money arrived, the payment is still recorded as
        COMPLETED and a CANCELLATION refund is raised for it; the order and
        its stock are left as they are.

        Args:
            gateway_order_id: gateway order id from ``initiate_payment``
            gateway_payment_id: payment id reported by the checkout
            signature: hex HMAC-SHA256 reported by the checkout

        Returns:
            Payment: the completed payment

        Raises:
            SignatureMismatchException: signature does not match; nothing is changed
            PaymentNotFoundException: no payment for the gateway order id
            OrderNotPayableException: order is neither awaiting payment nor cancelled
        """
        if not verify_payment_signature(
            gateway_order_id, gateway_payment_id, signature, self.settings.RAZORPAY_KEY_SECRET
        ):
            AuditLogger.log_payment_event("SIGNATURE_MISMATCH", "-", gateway_order_id,
                                          {"payment_id": gateway_payment_id})
            raise SignatureMismatchException()

        payment = self.db.execute(
            select(Payment)
            .where(Payment.gateway_order_id == gateway_order_id)
            .options(selectinload(Payment.order).selectinload(Order.items))
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundException(gateway_order_id)

        order = payment.order
        if payment.status == PaymentStatus.COMPLETED:
            logger.info(f"Payment already verified: order={order.id} gateway_order={gateway_order_id}")
            return payment

        if order.status not in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            raise OrderNotPayableException(order.id, f"Order is {order.status.value}, not awaiting payment")

        now = self.clock()
        refund: Optional[Refund] = None
        with atomic(self.db):
            claimed = self.db.execute(
                update(Payment)
                .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
                .values(
                    gateway_payment_id=gateway_payment_id,
                    signature=signature,
                    status=PaymentStatus.COMPLETED,
                    paid_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed == 0:
                logger.info(f"Payment already verified: order={order.id} gateway_order={gateway_order_id}")
            else:
                taken = self.db.execute(
                    update(Order)
                    .where(Order.id == order.id, Order.status == OrderStatus.PENDING)
                    .values(status=OrderStatus.PROCESSING, stock_reserved=True, updated_at=now)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if taken:
                    for item in order.items:
                        self.catalog.adjust_stock(item.product_id, -item.quantity)
                else:
                    refund = Refund(
                        order_id=order.id,
                        amount=payment.amount,
                        reason=RefundReason.CANCELLATION,
                        status=RefundStatus.PENDING,
                        created_at=now,
                        updated_at=now,
                    )
                    self.db.add(refund)
                    self.db.flush()

        self.db.refresh(payment)
        if claimed == 0:
            return payment

        AuditLogger.log_payment_event("VERIFIED", order.id, gateway_order_id, {"payment_id": gateway_payment_id,
                                                                                "amount": str(payment.amount)})
        if refund is not None:
            AuditLogger.log_refund_event("CREATED", refund.id, order.id, {"reason": "CANCELLATION",
                                                                         "amount": str(refund.amount)})
            business_logger.log_operation("PAYMENT_VERIFY", order.user_id, order_id=order.id,
                                          refund_id=refund.id)
        else:
            business_logger.log_operation("PAYMENT_VERIFY", order.user_id, order_id=order.id)
        return payment
