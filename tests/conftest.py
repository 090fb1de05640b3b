"""
Shared fixtures

Every test gets a fresh in-memory SQLite database, a controllable clock and a
recording payment gateway; API tests drive the app built by ``create_app``
with those same collaborators.
"""
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from storefront.core.config import Settings
from storefront.core.database import Database
from storefront.core.exceptions import UpstreamFailureException
from storefront.core.security import CurrentUser, UserRole
from storefront.main import create_app
from storefront.models.catalog_models import Cart, CartItem, Product
from storefront.models.coupon_models import Coupon, CouponType
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.security_utils import generate_payment_signature

JWT_SECRET = "test-jwt-secret"
GATEWAY_SECRET = "test-gateway-secret"
START_TIME = datetime(2026, 1, 15, 10, 0, 0)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"


class FakeClock:
    """Clock the tests can move"""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeGateway(PaymentGateway):
    """Records every payable order it is asked to create"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.fail = False

    def create_payable_order(self, amount_minor_units: int, currency: str, receipt: str) -> Dict[str, Any]:
        if self.fail:
            raise UpstreamFailureException("Payment gateway unreachable", code="GATEWAY_UNREACHABLE")
        gateway_order = {
            "id": f"order_test_{len(self.calls) + 1}",
            "entity": "order",
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }
        self.calls.append(gateway_order)
        return gateway_order


class Seed:
    """Test data helpers bound to one session"""

    def __init__(self, db):
        self.db = db

    def product(self, name: str = "Linen Shirt", price="1000.00", stock: int = 10, is_active: bool = True) -> Product:
        product = Product(name=name, base_price=Decimal(str(price)), stock=stock, is_active=is_active)
        self.db.add(product)
        self.db.commit()
        return product

    def coupon(
        self,
        code: str = "SAVE10",
        type: CouponType = CouponType.PERCENTAGE,
        value="10",
        min_order=None,
        max_discount=None,
        usage_limit: Optional[int] = None,
        current_usage: int = 0,
        expires_at: Optional[datetime] = None,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            type=type,
            value=Decimal(str(value)),
            min_order=Decimal(str(min_order)) if min_order is not None else None,
            max_discount=Decimal(str(max_discount)) if max_discount is not None else None,
            usage_limit=usage_limit,
            current_usage=current_usage,
            expires_at=expires_at,
            created_at=START_TIME,
        )
        self.db.add(coupon)
        self.db.commit()
        return coupon

    def cart(self, user_id: str, lines: List[Tuple[Product, int]]) -> Cart:
        cart = self.db.query(Cart).filter(Cart.user_id == user_id).one_or_none()
        if cart is None:
            cart = Cart(user_id=user_id)
            self.db.add(cart)
            self.db.flush()
        for product, quantity in lines:
            self.db.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity))
        self.db.commit()
        return cart

    def stock_of(self, product_id: str) -> int:
        self.db.expire_all()
        return self.db.get(Product, product_id).stock


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite:///:memory:",
        JWT_SECRET_KEY=JWT_SECRET,
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET=GATEWAY_SECRET,
        LOG_LEVEL="WARNING",
        LOG_DIR=None,
    )


@pytest.fixture
def database(settings) -> Generator[Database, None, None]:
    database = Database.from_settings(settings)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def second_session(database):
    """Another session on the same database, for overlapping requests"""
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def seed(db_session) -> Seed:
    return Seed(db_session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def customer() -> CurrentUser:
    return CurrentUser(id=USER_ID, role=UserRole.USER)


@pytest.fixture
def other_customer() -> CurrentUser:
    return CurrentUser(id=OTHER_USER_ID, role=UserRole.USER)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id=ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def client(settings, database, gateway, clock) -> Generator[TestClient, None, None]:
    app = create_app(settings=settings, database=database, gateway=gateway, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def make_token(user_id: str, role: str = "user", secret: str = JWT_SECRET) -> str:
    claims = {"id": user_id, "role": role, "exp": int(time.time()) + 3600}
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_id: str = USER_ID, role: str = "user") -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


def sign(gateway_order_id: str, gateway_payment_id: str, secret: str = GATEWAY_SECRET) -> str:
    return generate_payment_signature(gateway_order_id, gateway_payment_id, secret)


@pytest.fixture
def user_headers() -> Dict[str, str]:
    return auth_headers(USER_ID)


@pytest.fixture
def other_user_headers() -> Dict[str, str]:
    return auth_headers(OTHER_USER_ID)


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return auth_headers(ADMIN_ID, "ADMIN")
