"""
Request dependencies

Collaborators (settings, database, payment gateway, clock) are built by the
application factory and kept on ``app.state``; these helpers hand them to the
routes and build the per-request services.
"""
from typing import Iterator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.core.database import Database
from storefront.core.exceptions import AuthenticationException, ForbiddenException
from storefront.core.logging import AuditLogger
from storefront.core.security import CurrentUser, user_from_token
from storefront.services.cart_service import CartService
from storefront.services.coupon_service import CouponService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import PaymentService
from storefront.services.refund_service import RefundService
from storefront.utils.date_utils import Clock


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_db(database: Database = Depends(get_database)) -> Iterator[Session]:
    """One session per request"""
    db = database.session()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Caller identity from the bearer token"""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationException("Invalid authentication credentials")

    token = authorization[len("Bearer "):].strip()
    return user_from_token(token, settings)


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        AuditLogger.log_security_event("ADMIN_ACCESS_DENIED", current_user.id)
        raise ForbiddenException("Admin access required")
    return current_user


def get_coupon_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> CouponService:
    return CouponService(db, clock)


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_order_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> OrderService:
    return OrderService(db, settings, clock)


def get_payment_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_gateway),
    clock: Clock = Depends(get_clock),
) -> PaymentService:
    return PaymentService(db, settings, gateway, clock)


def get_refund_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> RefundService:
    return RefundService(db, clock)
