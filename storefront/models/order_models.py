from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from storefront.models.base import Base, IdMixin, TimestampMixin


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    COD = "COD"


# allowed order status transitions; DELIVERED and CANCELLED are terminal
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
}


class Order(IdMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    user_id = Column(String(36), nullable=False, index=True)
    status = Column(SAEnum(OrderStatus, native_enum=False, length=20), nullable=False,
                    default=OrderStatus.PENDING, index=True)
    subtotal_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(SAEnum(PaymentMethod, native_enum=False, length=10), nullable=False,
                            default=PaymentMethod.ONLINE)
    shipping_address = Column(JSON, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    # true while this order holds a stock decrement
    stock_reserved = Column(Boolean, nullable=False, default=False)

    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payment = relationship("Payment", back_populates="order", uselist=False, cascade="all, delete-orphan")
    returns = relationship(
        "OrderReturn",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderReturn.requested_at.desc()",
    )
    refunds = relationship("Refund", back_populates="order")
    coupon_usages = relationship("CouponUsage", back_populates="order")

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ORDER_TRANSITIONS.get(self.status, [])

    def __repr__(self):
        return f"<Order {self.id} user={self.user_id} status={self.status}>"


class OrderItem(IdMixin, Base):
    __tablename__ = "order_items"

    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)  # unit price at purchase

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def line_total(self):
        return self.price * self.quantity
