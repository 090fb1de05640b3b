"""
Return requests and refunds

A Refund only records the intent to give money back; an operator moves it
through PROCESSING to COMPLETED once the money has actually moved.
"""
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from storefront.models.base import Base, IdMixin, TimestampMixin
from storefront.utils.date_utils import utcnow


class ReturnType(str, Enum):
    RETURN = "RETURN"
    EXCHANGE = "EXCHANGE"


class ReturnStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RefundReason(str, Enum):
    CANCELLATION = "CANCELLATION"
    RETURN = "RETURN"


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


DEFAULT_REFUND_METHOD = "ORIGINAL_PAYMENT"


class OrderReturn(IdMixin, Base):
    __tablename__ = "order_returns"

    # one return per order
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    type = Column(SAEnum(ReturnType, native_enum=False, length=16), nullable=False, default=ReturnType.RETURN)
    reason = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    status = Column(SAEnum(ReturnStatus, native_enum=False, length=16), nullable=False,
                    default=ReturnStatus.REQUESTED, index=True)
    admin_notes = Column(Text, nullable=True)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    order = relationship("Order", back_populates="returns")


class Refund(IdMixin, TimestampMixin, Base):
    __tablename__ = "refunds"

    # plain reference: a refund outlives the order it was raised for
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(50), nullable=False, default=DEFAULT_REFUND_METHOD)
    reason = Column(SAEnum(RefundReason, native_enum=False, length=16), nullable=False)
    status = Column(SAEnum(RefundStatus, native_enum=False, length=16), nullable=False,
                    default=RefundStatus.PENDING, index=True)
    transaction_id = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="refunds")
