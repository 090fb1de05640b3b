from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from storefront.models.base import Base, IdMixin
from storefront.utils.date_utils import utcnow


class CouponType(str, Enum):
    FLAT = "FLAT"
    PERCENTAGE = "PERCENTAGE"


def normalize_code(code: str) -> str:
    return code.strip().upper()


class Coupon(IdMixin, Base):
    __tablename__ = "coupons"

    code = Column(String(64), unique=True, nullable=False, index=True)
    type = Column(SAEnum(CouponType, native_enum=False, length=16), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    min_order = Column(Numeric(12, 2), nullable=True)
    max_discount = Column(Numeric(12, 2), nullable=True)  # cap for PERCENTAGE coupons
    usage_limit = Column(Integer, nullable=True)
    current_usage = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # deleting a coupon detaches its usages, the per-order record stays
    usages = relationship("CouponUsage", back_populates="coupon")


class CouponUsage(IdMixin, Base):
    __tablename__ = "coupon_usages"

    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    coupon_id = Column(String(36), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True, index=True)
    code = Column(String(64), nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    coupon = relationship("Coupon", back_populates="usages")
    order = relationship("Order", back_populates="coupon_usages")
