"""
Return decisions and refund processing (operator side)

Refund rows record the intent to give money back. Money moves outside this
system; operators mark progress through PROCESSING and COMPLETED.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.core.database import atomic
from storefront.core.exceptions import (
    InvalidRefundTransitionException,
    RefundNotFoundException,
    ReturnAlreadyProcessedException,
    ReturnNotFoundException,
    ValidationException,
)
from storefront.core.logging import AuditLogger, BusinessLogger
from storefront.models.return_models import (
    DEFAULT_REFUND_METHOD,
    OrderReturn,
    Refund,
    RefundReason,
    RefundStatus,
    ReturnStatus,
    ReturnType,
)
from storefront.utils.date_utils import Clock, utcnow

logger = logging.getLogger(__name__)
business_logger = BusinessLogger("refund")


class RefundService:
    """Return/refund workflow"""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def list_returns(self) -> List[OrderReturn]:
        stmt = select(OrderReturn).order_by(OrderReturn.requested_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_refunds(self) -> List[Refund]:
        stmt = select(Refund).order_by(Refund.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get_refund(self, refund_id: str) -> Refund:
        refund = self.db.get(Refund, refund_id)
        if refund is None:
            raise RefundNotFoundException(refund_id)
        return refund

    def update_return_status(
        self,
        return_id: str,
        status: ReturnStatus,
        admin_notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> OrderReturn:
        """
        Approve or reject a return request.

        An approved RETURN raises one PENDING refund for the order total; an
        approved EXCHANGE raises none.

        Args:
            return_id: return request to decide
            status: APPROVED or REJECTED
            admin_notes: optional operator notes
            actor_id: operator making the decision

        Returns:
            OrderReturn: the updated return request
        """
        status = ReturnStatus(status)
        if status == ReturnStatus.REQUESTED:
            raise ValidationException(
                "REQUESTED is not a valid decision",
                data={"fields": [{"field": "status", "message": "must be APPROVED or REJECTED"}]},
            )

        order_return = self.db.execute(
            select(OrderReturn).where(OrderReturn.id == return_id).options(selectinload(OrderReturn.order))
        ).scalar_one_or_none()
        if order_return is None:
            raise ReturnNotFoundException(return_id)
        if order_return.status != ReturnStatus.REQUESTED:
            raise ReturnAlreadyProcessedException(order_return.id, order_return.status.value)

        now = self.clock()
        refund = None
        with atomic(self.db):
            order_return.status = status
            order_return.updated_at = now
            if admin_notes:
                order_return.admin_notes = admin_notes

            if status == ReturnStatus.APPROVED:
                order_return.approved_at = now
                if order_return.type == ReturnType.RETURN:
                    refund = Refund(
                        order_id=order_return.order_id,
                        amount=order_return.order.total_amount,
                        method=DEFAULT_REFUND_METHOD,
                        reason=RefundReason.RETURN,
                        status=RefundStatus.PENDING,
                        created_at=now,
                        updated_at=now,
                    )
                    self.db.add(refund)
                    self.db.flush()

        business_logger.log_operation("RETURN_DECISION", actor_id, return_id=return_id, status=status.value)
        if refund is not None:
            AuditLogger.log_refund_event("CREATED", refund.id, refund.order_id, {"reason": "RETURN",
                                                                                "amount": str(refund.amount)})
        return order_return

    def process_refund(
        self,
        refund_id: str,
        method: str = DEFAULT_REFUND_METHOD,
        transaction_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Refund:
        refund = self.get_refund(refund_id)
        if refund.status != RefundStatus.PENDING:
            raise InvalidRefundTransitionException(refund.id, refund.status.value, RefundStatus.PROCESSING.value)

        with atomic(self.db):
            refund.status = RefundStatus.PROCESSING
            refund.method = method or DEFAULT_REFUND_METHOD
            refund.transaction_id = transaction_id
            refund.updated_at = self.clock()

        AuditLogger.log_refund_event("PROCESSING", refund.id, refund.order_id, {"method": refund.method,
                                                                               "actor": actor_id})
        return refund

    def complete_refund(
        self,
        refund_id: str,
        transaction_id: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Refund:
        refund = self.get_refund(refund_id)
        if refund.status == RefundStatus.COMPLETED:
            raise InvalidRefundTransitionException(refund.id, refund.status.value, RefundStatus.COMPLETED.value)

        now = self.clock()
        with atomic(self.db):
            refund.status = RefundStatus.COMPLETED
            refund.completed_at = now
            refund.updated_at = now
            if transaction_id:
                refund.transaction_id = transaction_id
            if notes:
                refund.notes = notes

        AuditLogger.log_refund_event("COMPLETED", refund.id, refund.order_id, {"transaction_id": refund.transaction_id,
                                                                              "actor": actor_id})
        return refund
