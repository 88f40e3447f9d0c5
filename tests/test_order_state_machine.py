"""Order status transitions and cancellation."""

import pytest

from app.domain.errors import InvalidTransition, NotFound, OrderNotCancellable
from app.domain.statuses import (
    CANCELLABLE_STATUSES,
    OrderPaymentStatus,
    OrderStatus,
    allowed_transitions,
    can_transition,
    can_transition_payment,
    payment_sources,
)


class TestTransitionTable:
    def test_forward_path(self):
        path = [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        for current, target in zip(path, path[1:]):
            assert can_transition(current, target)

    def test_no_skipping(self):
        assert not can_transition(OrderStatus.PENDING, OrderStatus.SHIPPED)
        assert not can_transition(OrderStatus.CONFIRMED, OrderStatus.DELIVERED)

    def test_terminal_states(self):
        assert allowed_transitions(OrderStatus.DELIVERED) == []
        assert allowed_transitions(OrderStatus.CANCELLED) == []

    def test_cancellable_statuses(self):
        assert CANCELLABLE_STATUSES == {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}

    def test_payment_axis(self):
        assert can_transition_payment(OrderPaymentStatus.PENDING, OrderPaymentStatus.PAID)
        assert can_transition_payment(OrderPaymentStatus.FAILED, OrderPaymentStatus.PAID)
        assert not can_transition_payment(OrderPaymentStatus.REFUNDED, OrderPaymentStatus.PAID)
        assert not can_transition_payment(OrderPaymentStatus.PENDING, OrderPaymentStatus.REFUNDED)

    def test_payment_sources(self):
        assert payment_sources(OrderPaymentStatus.PAID) == [OrderPaymentStatus.FAILED, OrderPaymentStatus.PENDING]
        assert payment_sources(OrderPaymentStatus.REFUNDED) == [
            OrderPaymentStatus.PAID,
            OrderPaymentStatus.PARTIALLY_REFUNDED,
        ]


class TestTransition:
    def test_walk_to_delivered(self, orders, place_order, notifier):
        order, _ = place_order()

        orders.transition(order.id, OrderStatus.CONFIRMED)
        orders.transition(order.id, OrderStatus.PROCESSING)
        shipped = orders.transition(order.id, OrderStatus.SHIPPED, tracking_number="TRK-123")
        assert shipped.shipped_at is not None
        assert shipped.tracking_number == "TRK-123"

        delivered = orders.transition(order.id, OrderStatus.DELIVERED)

        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.delivered_at is not None
        assert [s for _, s in notifier.status_changes] == [
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]

    def test_illegal_transition(self, orders, place_order, notifier):
        order, _ = place_order()

        with pytest.raises(InvalidTransition):
            orders.transition(order.id, OrderStatus.SHIPPED)

        assert orders.get_order(order.id).status == OrderStatus.PENDING
        assert notifier.status_changes == []

    def test_cancel_via_transition(self, orders, place_order):
        order, product = place_order(quantity=2, stock=5)

        cancelled = orders.transition(order.id, OrderStatus.CANCELLED, reason="Out of delivery area")

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancellation_reason == "Out of delivery area"
        assert product.stock_quantity == 5

    def test_unknown_order(self, orders):
        with pytest.raises(NotFound):
            orders.transition(999, OrderStatus.CONFIRMED)


class TestCancel:
    def test_processing_order_restores_stock(self, orders, place_order):
        order, product = place_order(quantity=3, stock=10)
        assert product.stock_quantity == 7
        orders.transition(order.id, OrderStatus.CONFIRMED)
        orders.transition(order.id, OrderStatus.PROCESSING)

        cancelled = orders.cancel(order.id, user_id=1, reason="Changed my mind")

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert product.stock_quantity == 10
        assert product.sales_count == 0

    def test_shipped_order_cannot_be_cancelled(self, orders, place_order):
        order, product = place_order(quantity=1, stock=10)
        for status in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED):
            orders.transition(order.id, status)

        with pytest.raises(OrderNotCancellable):
            orders.cancel(order.id, user_id=1)

        assert orders.get_order(order.id).status == OrderStatus.SHIPPED
        assert product.stock_quantity == 9

    def test_cancel_twice_is_rejected(self, orders, place_order):
        order, product = place_order(quantity=1, stock=10)
        orders.cancel(order.id)

        with pytest.raises(OrderNotCancellable):
            orders.cancel(order.id)

        assert product.stock_quantity == 10

    def test_paid_order_is_labelled_refunded(self, orders, place_order):
        order, _ = place_order()
        orders.mark_paid(order.id)
        orders.repo.commit()

        cancelled = orders.cancel(order.id, user_id=1)

        assert cancelled.payment_status == OrderPaymentStatus.REFUNDED

    def test_other_user_cannot_cancel(self, orders, place_order):
        order, _ = place_order(user_id=1)

        with pytest.raises(PermissionError):
            orders.cancel(order.id, user_id=2)

    def test_deleted_product_is_skipped(self, db, orders, place_order):
        order, product = place_order()
        order.items[0].product_id = None
        db.commit()

        cancelled = orders.cancel(order.id)

        assert cancelled.status == OrderStatus.CANCELLED


class TestMarkPaid:
    def test_mark_paid_is_idempotent(self, orders, place_order):
        order, _ = place_order()

        assert orders.mark_paid(order.id) is True
        assert orders.mark_paid(order.id) is False
        orders.repo.commit()

        paid = orders.get_order(order.id)
        assert paid.payment_status == OrderPaymentStatus.PAID
        assert paid.status == OrderStatus.CONFIRMED
        assert paid.paid_at is not None

    def test_cancelled_order_is_never_marked_paid(self, orders, place_order):
        order, _ = place_order()
        orders.cancel(order.id)

        assert orders.mark_paid(order.id) is False
        orders.repo.commit()

        cancelled = orders.get_order(order.id)
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.payment_status == OrderPaymentStatus.PENDING


class TestQueries:
    def test_list_orders_filters(self, orders, place_order):
        first, _ = place_order(user_id=5)
        second, _ = place_order(user_id=5)
        place_order(user_id=6)
        orders.cancel(first.id)

        assert {o.id for o in orders.list_orders(5)} == {first.id, second.id}
        assert [o.id for o in orders.list_orders(5, status=OrderStatus.PENDING)] == [second.id]

    def test_track_timeline(self, orders, place_order):
        order, _ = place_order()
        orders.mark_paid(order.id)
        orders.repo.commit()

        track = orders.track(order.id, user_id=1)

        steps = {t["status"]: t for t in track["timeline"]}
        assert steps["placed"]["completed"] is True
        assert steps["payment"]["label"] == "Payment Received"
        assert steps["processing"]["completed"] is True
        assert steps["shipped"]["completed"] is False

    def test_serialize_lists_allowed_transitions(self, orders, place_order):
        order, _ = place_order()

        data = orders.serialize(order)

        assert data["allowed_transitions"] == [OrderStatus.CANCELLED, OrderStatus.CONFIRMED]
        assert len(data["items"]) == 1
