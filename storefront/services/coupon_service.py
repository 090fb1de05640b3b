"""
Coupon engine

``price_coupon`` is the single pricing rule used both by the checkout preview
(``validate_and_price``) and by order creation, so the discount a customer is
shown is the discount they get for the same subtotal.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.core.database import atomic
from storefront.core.exceptions import (
    CouponExpiredException,
    CouponMinimumNotMetException,
    CouponNotFoundException,
    CouponUsageExhaustedException,
    DuplicateCouponException,
    NotFoundException,
)
from storefront.core.logging import BusinessLogger
from storefront.models.coupon_models import Coupon, CouponType, CouponUsage, normalize_code
from storefront.schemas.coupon_schemas import CouponCreate
from storefront.utils.date_utils import Clock, utcnow

logger = logging.getLogger(__name__)
business_logger = BusinessLogger("coupon")

CENT = Decimal("0.01")
ZERO = Decimal("0")


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CouponQuote:
    coupon: Coupon
    discount_amount: Decimal


def price_coupon(coupon: Coupon, cart_total: Decimal, now: datetime) -> Decimal:
    """
    Validate a coupon against a cart total and compute its discount.

    Args:
        coupon: coupon row
        cart_total: subtotal the discount applies to
        now: current time, compared against ``expires_at``

    Returns:
        Decimal: discount, clamped to [0, cart_total], two decimal places

    Raises:
        CouponExpiredException: expires_at is in the past
        CouponUsageExhaustedException: usage limit already reached
        CouponMinimumNotMetException: cart_total below min_order
    """
    cart_total = as_decimal(cart_total)

    if coupon.expires_at is not None and now > coupon.expires_at:
        raise CouponExpiredException(coupon.code, coupon.expires_at)

    if coupon.usage_limit is not None and coupon.current_usage >= coupon.usage_limit:
        raise CouponUsageExhaustedException(coupon.code, coupon.usage_limit)

    if coupon.min_order is not None and cart_total < as_decimal(coupon.min_order):
        raise CouponMinimumNotMetException(coupon.code, coupon.min_order, cart_total)

    if coupon.type == CouponType.FLAT:
        discount = as_decimal(coupon.value)
    else:
        discount = cart_total * as_decimal(coupon.value) / 100
        if coupon.max_discount is not None:
            discount = min(discount, as_decimal(coupon.max_discount))

    discount = max(ZERO, min(discount, cart_total))
    return to_money(discount)


class CouponService:
    """Coupon validation, usage accounting and admin management"""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def get_by_code(self, code: str) -> Optional[Coupon]:
        return self.db.execute(select(Coupon).where(Coupon.code == normalize_code(code))).scalar_one_or_none()

    def validate_and_price(self, code: str, cart_total: Decimal) -> CouponQuote:
        """Price a coupon for a cart without consuming it"""
        coupon = self.get_by_code(code)
        if coupon is None:
            business_logger.log_rejection("COUPON_APPLY", None, "unknown code", code=normalize_code(code))
            raise CouponNotFoundException(normalize_code(code))

        discount = price_coupon(coupon, cart_total, self.clock())
        return CouponQuote(coupon=coupon, discount_amount=discount)

    def record_usage(self, coupon: Coupon, order_id: str, user_id: str) -> CouponUsage:
        """
        Consume one use of a coupon for an order.

        Must run inside the order's transaction. The increment is guarded in the
        UPDATE itself so two checkouts racing for the last use cannot both win.
        """
        stmt = (
            update(Coupon)
            .where(Coupon.id == coupon.id)
            .values(current_usage=Coupon.current_usage + 1)
            .execution_options(synchronize_session=False)
        )
        if coupon.usage_limit is not None:
            stmt = stmt.where(Coupon.current_usage < Coupon.usage_limit)

        if self.db.execute(stmt).rowcount == 0:
            raise CouponUsageExhaustedException(coupon.code, coupon.usage_limit)
        self.db.expire(coupon, ["current_usage"])

        usage = CouponUsage(
            order_id=order_id,
            coupon_id=coupon.id,
            code=coupon.code,
            user_id=user_id,
            created_at=self.clock(),
        )
        self.db.add(usage)
        return usage

    # ---------- admin ----------

    def create_coupon(self, data: CouponCreate, actor_id: Optional[str] = None) -> Coupon:
        code = normalize_code(data.code)
        if self.get_by_code(code) is not None:
            raise DuplicateCouponException(code)

        coupon = Coupon(
            code=code,
            type=data.type,
            value=data.value,
            min_order=data.min_order,
            max_discount=data.max_discount,
            usage_limit=data.usage_limit,
            current_usage=0,
            expires_at=data.expires_at,
            created_at=self.clock(),
        )
        with atomic(self.db):
            self.db.add(coupon)

        business_logger.log_operation("COUPON_CREATE", actor_id, coupon_id=coupon.id, code=code)
        return coupon

    def list_coupons(self) -> List[Coupon]:
        stmt = select(Coupon).order_by(Coupon.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def delete_coupon(self, coupon_id: str, actor_id: Optional[str] = None) -> None:
        coupon = self.db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFoundException("Coupon not found", code="COUPON_NOT_FOUND", data={"couponId": coupon_id})

        code = coupon.code
        with atomic(self.db):
            self.db.delete(coupon)

        business_logger.log_operation("COUPON_DELETE", actor_id, coupon_id=coupon_id, code=code)
