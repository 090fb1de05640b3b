from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from storefront.models.base import Base, IdMixin, TimestampMixin


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Payment(IdMixin, TimestampMixin, Base):
    __tablename__ = "payments"

    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    gateway_order_id = Column(String(100), nullable=False, unique=True, index=True)
    gateway_payment_id = Column(String(100), nullable=True)
    signature = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="INR")
    status = Column(SAEnum(PaymentStatus, native_enum=False, length=16), nullable=False,
                    default=PaymentStatus.PENDING)
    paid_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="payment")
