"""
Order lifecycle tests

Checkout, the status machine, cancellation, returns and the admin
fulfilment steps, run against the service layer.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.core.exceptions import (
    CancellationWindowExpiredException,
    CouponExpiredException,
    CouponNotFoundException,
    CouponUsageExhaustedException,
    EmptyCartException,
    ForbiddenException,
    InsufficientStockException,
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
from storefront.models.catalog_models import CartItem
from storefront.models.coupon_models import CouponType, CouponUsage
from storefront.models.order_models import ORDER_TRANSITIONS, Order, OrderStatus, PaymentMethod
from storefront.models.payment_models import Payment, PaymentStatus
from storefront.models.return_models import OrderReturn, Refund, RefundReason, RefundStatus, ReturnStatus, ReturnType
from storefront.services.coupon_service import CouponService
from storefront.services.order_service import (
    ALREADY_REQUESTED,
    NOT_DELIVERED,
    WINDOW_EXPIRED,
    OrderService,
)
from tests.conftest import OTHER_USER_ID, START_TIME, USER_ID

ADDRESS = {"line1": "12 MG Road", "city": "Bengaluru", "pincode": "560001"}


@pytest.fixture
def orders(db_session, settings, clock) -> OrderService:
    return OrderService(db_session, settings, clock)


@pytest.fixture
def shirt(seed):
    return seed.product(name="Linen Shirt", price="1000.00", stock=10)


@pytest.fixture
def trousers(seed):
    return seed.product(name="Chinos", price="500.00", stock=5)


def deliver(orders: OrderService, order_id: str) -> Order:
    orders.update_shipping(order_id, OrderStatus.SHIPPED, tracking_number="TRK-1")
    return orders.update_shipping(order_id, OrderStatus.DELIVERED)


def place_cod(orders, seed, product, quantity=1, user_id=USER_ID) -> Order:
    seed.cart(user_id, [(product, quantity)])
    return orders.create_order(user_id, ADDRESS, PaymentMethod.COD)


class TestCreateOrder:

    def test_empty_cart_without_cart(self, orders):
        with pytest.raises(EmptyCartException):
            orders.create_order(USER_ID, ADDRESS)

    def test_empty_cart_with_no_lines(self, orders, seed):
        seed.cart(USER_ID, [])
        with pytest.raises(EmptyCartException):
            orders.create_order(USER_ID, ADDRESS)

    def test_snapshot_and_totals(self, orders, seed, shirt, trousers, db_session):
        seed.cart(USER_ID, [(shirt, 2), (trousers, 1)])

        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)

        assert order.status == OrderStatus.PENDING
        assert order.subtotal_amount == Decimal("2500.00")
        assert order.discount_amount == Decimal("0.00")
        assert order.total_amount == Decimal("2500.00")
        assert order.shipping_address == ADDRESS
        assert order.created_at == START_TIME
        assert sorted((item.quantity, item.price) for item in order.items) == [
            (1, Decimal("500.00")),
            (2, Decimal("1000.00")),
        ]
        assert db_session.query(CartItem).count() == 0

    def test_reprices_from_catalog(self, orders, seed, shirt, db_session):
        seed.cart(USER_ID, [(shirt, 1)])
        shirt.base_price = Decimal("1200.00")
        db_session.commit()

        order = orders.create_order(USER_ID, ADDRESS)

        assert order.total_amount == Decimal("1200.00")
        assert order.items[0].price == Decimal("1200.00")

    def test_inactive_product_rejected(self, orders, seed, shirt, db_session):
        seed.cart(USER_ID, [(shirt, 1)])
        shirt.is_active = False
        db_session.commit()

        with pytest.raises(ProductUnavailableException):
            orders.create_order(USER_ID, ADDRESS)
        assert db_session.query(CartItem).count() == 1

    def test_online_order_leaves_stock_untouched(self, orders, seed, shirt):
        seed.cart(USER_ID, [(shirt, 3)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)

        assert seed.stock_of(shirt.id) == 10
        assert order.stock_reserved is False
        assert order.status == OrderStatus.PENDING

    def test_cod_order_takes_stock_and_processes(self, orders, seed, shirt, trousers):
        seed.cart(USER_ID, [(shirt, 3), (trousers, 2)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.COD)

        assert order.status == OrderStatus.PROCESSING
        assert order.stock_reserved is True
        assert seed.stock_of(shirt.id) == 7
        assert seed.stock_of(trousers.id) == 3

    def test_cod_over_stock_rolls_everything_back(self, orders, seed, shirt, trousers, db_session):
        seed.coupon(code="SAVE10", usage_limit=5)
        seed.cart(USER_ID, [(shirt, 2), (trousers, 6)])

        with pytest.raises(InsufficientStockException):
            orders.create_order(USER_ID, ADDRESS, PaymentMethod.COD, coupon_code="SAVE10")

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.query(CartItem).count() == 2
        assert db_session.query(CouponUsage).count() == 0
        assert seed.stock_of(shirt.id) == 10
        assert seed.stock_of(trousers.id) == 5

    def test_unguarded_stock_can_go_negative(self, db_session, settings, clock, seed, trousers):
        settings.STOCK_FLOOR_ENFORCED = False
        orders = OrderService(db_session, settings, clock)
        seed.cart(USER_ID, [(trousers, 7)])

        orders.create_order(USER_ID, ADDRESS, PaymentMethod.COD)

        assert seed.stock_of(trousers.id) == -2

    def test_coupon_scenario_percentage_with_cap(self, orders, seed):
        product = seed.product(price="2000.00")
        seed.coupon(code="TENOFF", type=CouponType.PERCENTAGE, value="10", max_discount="150")
        seed.cart(USER_ID, [(product, 1)])

        order = orders.create_order(USER_ID, ADDRESS, coupon_code="TENOFF")

        assert order.subtotal_amount == Decimal("2000.00")
        assert order.discount_amount == Decimal("150.00")
        assert order.total_amount == Decimal("1850.00")

    def test_preview_and_commit_agree(self, orders, seed, shirt, trousers, db_session, clock):
        seed.coupon(code="P7", type=CouponType.PERCENTAGE, value="7.5")
        seed.cart(USER_ID, [(shirt, 1), (trousers, 3)])

        preview = CouponService(db_session, clock).validate_and_price("P7", Decimal("2500.00"))
        order = orders.create_order(USER_ID, ADDRESS, coupon_code="P7")

        assert order.discount_amount == preview.discount_amount
        assert order.total_amount == Decimal("2500.00") - preview.discount_amount

    def test_commit_uses_current_prices_over_preview(self, orders, seed, shirt, db_session, clock):
        seed.coupon(code="P10", type=CouponType.PERCENTAGE, value="10")
        seed.cart(USER_ID, [(shirt, 1)])
        preview = CouponService(db_session, clock).validate_and_price("P10", Decimal("1000.00"))

        shirt.base_price = Decimal("800.00")
        db_session.commit()
        order = orders.create_order(USER_ID, ADDRESS, coupon_code="P10")

        assert preview.discount_amount == Decimal("100.00")
        assert order.discount_amount == Decimal("80.00")
        assert order.total_amount == Decimal("720.00")

    def test_flat_coupon_larger_than_subtotal_gives_zero_total(self, orders, seed):
        product = seed.product(price="199.00")
        seed.coupon(code="BIGFLAT", type=CouponType.FLAT, value="500")
        seed.cart(USER_ID, [(product, 1)])

        order = orders.create_order(USER_ID, ADDRESS, coupon_code="BIGFLAT")

        assert order.discount_amount == Decimal("199.00")
        assert order.total_amount == Decimal("0.00")

    def test_coupon_usage_recorded_at_commit(self, orders, seed, shirt, db_session):
        coupon = seed.coupon(code="ONCE", usage_limit=3)
        seed.cart(USER_ID, [(shirt, 1)])

        order = orders.create_order(USER_ID, ADDRESS, coupon_code="ONCE")

        db_session.refresh(coupon)
        assert coupon.current_usage == 1
        usage = db_session.query(CouponUsage).one()
        assert usage.order_id == order.id
        assert usage.coupon_id == coupon.id
        assert usage.user_id == USER_ID

    @pytest.mark.parametrize("limit", [1, 2, 3])
    def test_usage_limit_allows_exactly_n_orders(self, orders, seed, shirt, limit):
        seed.coupon(code="LIMITED", usage_limit=limit)
        for _ in range(limit):
            seed.cart(USER_ID, [(shirt, 1)])
            orders.create_order(USER_ID, ADDRESS, coupon_code="LIMITED")

        seed.cart(USER_ID, [(shirt, 1)])
        with pytest.raises(CouponUsageExhaustedException):
            orders.create_order(USER_ID, ADDRESS, coupon_code="LIMITED")

    def test_invalid_coupon_fails_checkout(self, orders, seed, shirt, db_session):
        seed.cart(USER_ID, [(shirt, 1)])
        with pytest.raises(CouponNotFoundException):
            orders.create_order(USER_ID, ADDRESS, coupon_code="MISSING")
        assert db_session.query(Order).count() == 0

    def test_coupon_expired_between_preview_and_checkout(self, orders, seed, shirt, clock):
        seed.coupon(code="FLASH", expires_at=START_TIME + timedelta(minutes=5))
        seed.cart(USER_ID, [(shirt, 1)])
        clock.advance(minutes=10)

        with pytest.raises(CouponExpiredException):
            orders.create_order(USER_ID, ADDRESS, coupon_code="FLASH")


class TestStateMachine:

    def test_terminal_states_have_no_exits(self):
        assert ORDER_TRANSITIONS[OrderStatus.DELIVERED] == []
        assert ORDER_TRANSITIONS[OrderStatus.CANCELLED] == []

    def test_ship_requires_tracking_number(self, orders, seed, shirt):
        order = place_cod(orders, seed, shirt)
        with pytest.raises(TrackingNumberRequiredException):
            orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="  ")

    def test_ship_then_deliver(self, orders, seed, shirt, clock):
        order = place_cod(orders, seed, shirt)

        clock.advance(hours=1)
        shipped = orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="TRK-42")
        assert shipped.status == OrderStatus.SHIPPED
        assert shipped.tracking_number == "TRK-42"
        assert shipped.shipped_at == START_TIME + timedelta(hours=1)

        clock.advance(days=2)
        delivered = orders.update_shipping(order.id, OrderStatus.DELIVERED)
        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.delivered_at == START_TIME + timedelta(days=2, hours=1)

    def test_pending_online_order_cannot_ship(self, orders, seed, shirt):
        seed.cart(USER_ID, [(shirt, 1)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)

        with pytest.raises(InvalidStatusTransitionException) as exc_info:
            orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="TRK")
        assert exc_info.value.data == {"currentStatus": "PENDING", "requestedStatus": "SHIPPED"}

    def test_processing_cannot_skip_to_delivered(self, orders, seed, shirt):
        order = place_cod(orders, seed, shirt)
        with pytest.raises(InvalidStatusTransitionException):
            orders.mark_delivered(order.id)

    def test_shipping_endpoint_rejects_other_targets(self, orders, seed, shirt):
        order = place_cod(orders, seed, shirt)
        with pytest.raises(ValidationException):
            orders.update_shipping(order.id, OrderStatus.CANCELLED)

    def test_delivered_is_terminal(self, orders, seed, shirt):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)
        with pytest.raises(InvalidStatusTransitionException):
            orders.mark_delivered(order.id)

    def test_mark_delivered_with_explicit_time(self, orders, seed, shirt):
        order = place_cod(orders, seed, shirt)
        orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="TRK")
        when = START_TIME + timedelta(days=1)

        delivered = orders.mark_delivered(order.id, delivered_at=when)

        assert delivered.delivered_at == when

    def test_unknown_order(self, orders):
        with pytest.raises(OrderNotFoundException):
            orders.update_shipping("missing", OrderStatus.SHIPPED, tracking_number="TRK")


class TestCancelOrder:

    def test_owner_cancels_cod_order_and_stock_returns(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt, quantity=4)
        assert seed.stock_of(shirt.id) == 6

        clock.advance(hours=1)
        result = orders.cancel_order(order.id, customer)

        assert result.order.status == OrderStatus.CANCELLED
        assert result.order.cancelled_at == START_TIME + timedelta(hours=1)
        assert result.order.stock_reserved is False
        assert result.refund is None
        assert seed.stock_of(shirt.id) == 10

    def test_second_cancel_rejected_and_stock_restored_once(self, orders, seed, shirt, customer):
        order = place_cod(orders, seed, shirt, quantity=4)
        orders.cancel_order(order.id, customer)

        with pytest.raises(OrderAlreadyCancelledException):
            orders.cancel_order(order.id, customer)
        assert seed.stock_of(shirt.id) == 10

    def test_overlapping_cancels_restore_stock_once(self, orders, seed, shirt, customer, second_session,
                                                    settings, clock):
        order = place_cod(orders, seed, shirt, quantity=2)
        late = OrderService(second_session, settings, clock)
        stale = late.get_order_or_404(order.id)
        assert stale.status == OrderStatus.PROCESSING

        orders.cancel_order(order.id, customer)

        with pytest.raises(OrderAlreadyCancelledException):
            late.cancel_order(order.id, customer)
        assert seed.stock_of(shirt.id) == 10

    def test_overlapping_cancels_of_paid_order_raise_one_refund(self, orders, seed, shirt, customer, db_session,
                                                                second_session, settings, clock):
        seed.cart(USER_ID, [(shirt, 1)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)
        db_session.add(Payment(
            order_id=order.id,
            gateway_order_id="order_paid",
            amount=order.total_amount,
            currency="INR",
            status=PaymentStatus.COMPLETED,
            paid_at=clock(),
        ))
        order.status = OrderStatus.PROCESSING
        order.stock_reserved = True
        db_session.commit()
        late = OrderService(second_session, settings, clock)
        late.get_order_or_404(order.id)

        orders.cancel_order(order.id, customer)
        with pytest.raises(OrderAlreadyCancelledException):
            late.cancel_order(order.id, customer)

        assert db_session.query(Refund).count() == 1
        assert seed.stock_of(shirt.id) == 11

    def test_cancel_losing_to_shipment_reports_shipped(self, orders, seed, shirt, customer, second_session,
                                                      settings, clock):
        order = place_cod(orders, seed, shirt)
        late = OrderService(second_session, settings, clock)
        late.get_order_or_404(order.id)

        orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="TRK")

        with pytest.raises(OrderAlreadyShippedException):
            late.cancel_order(order.id, customer)
        assert seed.stock_of(shirt.id) == 9

    def test_unpaid_online_order_restores_nothing(self, orders, seed, shirt, customer):
        seed.cart(USER_ID, [(shirt, 2)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)

        result = orders.cancel_order(order.id, customer)

        assert result.order.status == OrderStatus.CANCELLED
        assert seed.stock_of(shirt.id) == 10

    def test_paid_order_creates_cancellation_refund(self, orders, seed, shirt, customer, db_session, clock):
        seed.cart(USER_ID, [(shirt, 1)])
        order = orders.create_order(USER_ID, ADDRESS, PaymentMethod.ONLINE)
        db_session.add(Payment(
            order_id=order.id,
            gateway_order_id="order_paid",
            amount=order.total_amount,
            currency="INR",
            status=PaymentStatus.COMPLETED,
            paid_at=clock(),
        ))
        order.status = OrderStatus.PROCESSING
        order.stock_reserved = True
        db_session.commit()
        shirt_stock = seed.stock_of(shirt.id)

        result = orders.cancel_order(order.id, customer)

        assert result.refund is not None
        assert result.refund.reason == RefundReason.CANCELLATION
        assert result.refund.status == RefundStatus.PENDING
        assert result.refund.amount == order.total_amount
        assert result.estimated_days == 7
        assert db_session.query(Refund).count() == 1
        assert seed.stock_of(shirt.id) == shirt_stock + 1

    def test_admin_may_cancel_any_order(self, orders, seed, shirt, admin):
        order = place_cod(orders, seed, shirt)
        assert orders.cancel_order(order.id, admin).order.status == OrderStatus.CANCELLED

    def test_other_user_forbidden(self, orders, seed, shirt, other_customer):
        order = place_cod(orders, seed, shirt)
        with pytest.raises(ForbiddenException):
            orders.cancel_order(order.id, other_customer)
        assert seed.stock_of(shirt.id) == 9

    def test_unknown_order(self, orders, customer):
        with pytest.raises(OrderNotFoundException):
            orders.cancel_order("missing", customer)

    def test_cancel_one_second_before_window_closes(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        clock.advance(hours=11, minutes=59, seconds=59)
        assert orders.cancel_order(order.id, customer).order.status == OrderStatus.CANCELLED

    def test_cancel_at_exactly_twelve_hours_rejected(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        clock.advance(hours=12)

        with pytest.raises(CancellationWindowExpiredException) as exc_info:
            orders.cancel_order(order.id, customer)
        assert exc_info.value.data["windowHours"] == 12
        assert seed.stock_of(shirt.id) == 9

    def test_shipped_order_cannot_be_cancelled(self, orders, seed, shirt, customer):
        order = place_cod(orders, seed, shirt)
        orders.update_shipping(order.id, OrderStatus.SHIPPED, tracking_number="TRK")

        with pytest.raises(OrderAlreadyShippedException):
            orders.cancel_order(order.id, customer)

    def test_delivered_order_cannot_be_cancelled(self, orders, seed, shirt, customer):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)

        with pytest.raises(OrderAlreadyShippedException):
            orders.cancel_order(order.id, customer)


class TestReturns:

    def test_not_delivered(self, orders, seed, shirt, customer):
        order = place_cod(orders, seed, shirt)

        eligibility = orders.check_return_eligibility(order.id, customer)
        assert eligibility.eligible is False
        assert eligibility.reason == NOT_DELIVERED
        assert eligibility.status == OrderStatus.PROCESSING

        with pytest.raises(OrderNotDeliveredException):
            orders.request_return(order.id, customer, reason="Too small")

    def test_eligible_within_window(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        delivered = deliver(orders, order.id)
        clock.advance(days=1, hours=12)

        eligibility = orders.check_return_eligibility(order.id, customer)

        assert eligibility.eligible is True
        assert eligibility.days_remaining == 2
        assert eligibility.expires_at == delivered.delivered_at + timedelta(days=3)

    def test_request_at_two_days_23_hours(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)
        clock.advance(days=2, hours=23)

        order_return = orders.request_return(order.id, customer, reason="Wrong size", images=["a.jpg"])

        assert order_return.status == ReturnStatus.REQUESTED
        assert order_return.type == ReturnType.RETURN
        assert order_return.images == ["a.jpg"]
        assert order_return.requested_at == clock()

    def test_request_at_three_days_one_hour_expired(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        delivered = deliver(orders, order.id)
        clock.advance(days=3, hours=1)

        eligibility = orders.check_return_eligibility(order.id, customer)
        assert eligibility.eligible is False
        assert eligibility.reason == WINDOW_EXPIRED

        with pytest.raises(ReturnWindowExpiredException) as exc_info:
            orders.request_return(order.id, customer, reason="Late")
        assert exc_info.value.data["deliveredAt"] == delivered.delivered_at.isoformat()

    def test_exactly_three_days_still_eligible(self, orders, seed, shirt, customer, clock):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)
        clock.advance(days=3)

        assert orders.check_return_eligibility(order.id, customer).eligible is True

    def test_second_request_already_requested(self, orders, seed, shirt, customer, db_session):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)
        first = orders.request_return(order.id, customer, reason="Defect", type=ReturnType.EXCHANGE)

        eligibility = orders.check_return_eligibility(order.id, customer)
        assert eligibility.reason == ALREADY_REQUESTED
        assert eligibility.return_id == first.id

        with pytest.raises(ReturnAlreadyRequestedException) as exc_info:
            orders.request_return(order.id, customer, reason="Again")
        assert exc_info.value.data == {"returnId": first.id}
        assert db_session.query(OrderReturn).count() == 1

    def test_overlapping_requests_store_one_return(self, orders, seed, shirt, customer, db_session,
                                                   second_session, settings, clock):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)
        late = OrderService(second_session, settings, clock)
        assert late.get_order_or_404(order.id).returns == []

        first = orders.request_return(order.id, customer, reason="Defect")

        with pytest.raises(ReturnAlreadyRequestedException) as exc_info:
            late.request_return(order.id, customer, reason="Defect again")
        assert exc_info.value.data == {"returnId": first.id}
        assert db_session.query(OrderReturn).count() == 1

    def test_returns_are_owner_only(self, orders, seed, shirt, other_customer, admin):
        order = place_cod(orders, seed, shirt)
        deliver(orders, order.id)

        with pytest.raises(ForbiddenException):
            orders.check_return_eligibility(order.id, other_customer)
        with pytest.raises(ForbiddenException):
            orders.request_return(order.id, admin, reason="Not mine")


class TestQueries:

    def test_list_orders_newest_first_and_scoped(self, orders, seed, shirt, clock):
        first = place_cod(orders, seed, shirt)
        clock.advance(minutes=5)
        second = place_cod(orders, seed, shirt)
        place_cod(orders, seed, shirt, user_id=OTHER_USER_ID)

        assert [o.id for o in orders.list_orders(USER_ID)] == [second.id, first.id]
        assert len(orders.list_all_orders()) == 3

    def test_get_order_access(self, orders, seed, shirt, customer, other_customer, admin):
        order = place_cod(orders, seed, shirt)

        assert orders.get_order(order.id, customer).id == order.id
        assert orders.get_order(order.id, admin).id == order.id
        with pytest.raises(ForbiddenException):
            orders.get_order(order.id, other_customer)

    def test_stats(self, orders, seed, shirt, customer):
        kept = place_cod(orders, seed, shirt, quantity=2)
        cancelled = place_cod(orders, seed, shirt)
        orders.cancel_order(cancelled.id, customer)

        stats = orders.get_stats()

        assert stats["total_orders"] == 2
        assert stats["total_revenue"] == float(kept.total_amount)
        assert stats["orders_by_status"]["PROCESSING"] == 1
        assert stats["orders_by_status"]["CANCELLED"] == 1
        assert stats["pending_returns"] == 0
        assert stats["pending_refunds"] == 0
