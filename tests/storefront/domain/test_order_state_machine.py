"""Tests for the Order aggregate's state machine and item bookkeeping."""

import json

import pytest
from protean.exceptions import ValidationError
from storefront.exceptions import InvalidTransition
from storefront.order.events import (
    OrderCancelled,
    OrderItemsReturned,
    OrderPlaced,
    OrderRefunded,
    PaymentOpened,
)
from storefront.order.order import (
    CancellationActor,
    ItemStatus,
    Order,
    OrderStatus,
    ReturnType,
)

ADDRESS = {
    "name": "Grace Buyer",
    "line1": "1 Rue Sainte-Catherine",
    "city": "Montreal",
    "province": "QC",
    "postal_code": "H3B 1A1",
    "country": "CA",
}


def _make_order(items=None):
    return Order.place(
        tenant_id="tenant-001",
        customer_id="cust-001",
        customer_email="grace@example.com",
        items_data=items
        or [
            {"variant_id": "var-001", "quantity": 1, "unit_price": 4000, "sku": "SKU-1"},
            {"variant_id": "var-002", "quantity": 2, "unit_price": 1500, "sku": "SKU-2"},
        ],
        shipping_address=ADDRESS,
        shipping_method="standard",
        totals={"subtotal": 7000, "shipping": 1500, "tax": 1273, "total": 9773},
    )


def _advance(order, *steps):
    for step in steps:
        if step == "paid":
            order.mark_paid(rail_status="payment_intent.succeeded")
        elif step == "fulfilled":
            order.fulfill()
        elif step == "shipped":
            order.ship(tracking_number="TRK-1", carrier="Canada Post")
        elif step == "delivered":
            order.deliver()
    return order


class TestPlaceOrder:
    def test_place_creates_pending_order(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.is_pending
        assert len(order.items) == 2
        assert order.total == 9773
        assert order.shipping_address.province == "QC"

    def test_items_start_ordered(self):
        order = _make_order()
        assert all(item.item_status == ItemStatus.ORDERED.value for item in order.items)

    def test_place_with_pregenerated_id(self):
        order = Order.place(
            tenant_id="tenant-001",
            customer_id="cust-001",
            items_data=[{"variant_id": "var-001", "quantity": 1, "unit_price": 100}],
            shipping_address=ADDRESS,
            shipping_method="standard",
            totals={"subtotal": 100, "total": 100},
            order_id="8a4f31a6-7d37-4ad2-9a55-3d3a0b8f6f10",
        )
        assert str(order.id) == "8a4f31a6-7d37-4ad2-9a55-3d3a0b8f6f10"

    def test_place_raises_order_placed(self):
        order = _make_order()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        items = json.loads(event.items)
        assert [item["variant_id"] for item in items] == ["var-001", "var-002"]

    def test_place_without_items_rejected(self):
        with pytest.raises(ValidationError):
            Order.place(
                tenant_id="tenant-001",
                customer_id="cust-001",
                items_data=[],
                shipping_address=ADDRESS,
                shipping_method="standard",
                totals={"subtotal": 0, "total": 0},
            )

    def test_item_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            _make_order(items=[{"variant_id": "var-001", "quantity": 0, "unit_price": 100}])


class TestHappyPath:
    def test_full_lifecycle(self):
        order = _advance(_make_order(), "paid", "fulfilled", "shipped", "delivered")
        assert order.status == OrderStatus.DELIVERED.value
        assert order.paid_at is not None
        assert order.fulfilled_at is not None
        assert order.shipped_at is not None
        assert order.delivered_at is not None

    def test_ship_records_tracking(self):
        order = _advance(_make_order(), "paid", "fulfilled", "shipped")
        assert order.tracking_number == "TRK-1"
        assert order.carrier == "Canada Post"

    def test_mark_paid_keeps_rail_status(self):
        order = _advance(_make_order(), "paid")
        assert order.rail_status == "payment_intent.succeeded"


class TestInvalidTransitions:
    def test_cannot_fulfill_pending(self):
        with pytest.raises(InvalidTransition) as exc:
            _make_order().fulfill()
        assert exc.value.current == "Pending"
        assert exc.value.target == "Fulfilled"

    def test_cannot_ship_paid(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(InvalidTransition):
            order.ship()

    def test_cannot_pay_twice(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(InvalidTransition):
            order.mark_paid()

    def test_cannot_cancel_fulfilled(self):
        order = _advance(_make_order(), "paid", "fulfilled")
        with pytest.raises(InvalidTransition):
            order.cancel(reason="Too late")
        assert order.status == OrderStatus.FULFILLED.value

    def test_cancelled_is_terminal(self):
        order = _make_order()
        order.cancel(reason="Changed mind", cancelled_by=CancellationActor.CUSTOMER.value)
        for transition in (order.mark_paid, order.fulfill, order.refund):
            with pytest.raises(InvalidTransition):
                transition()

    def test_invalid_transition_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            _make_order().deliver()

    @pytest.mark.parametrize(
        "steps,target,allowed",
        [
            ((), OrderStatus.PAID, True),
            ((), OrderStatus.CANCELLED, True),
            ((), OrderStatus.REFUNDED, False),
            (("paid",), OrderStatus.CANCELLED, True),
            (("paid",), OrderStatus.REFUNDED, True),
            (("paid", "fulfilled"), OrderStatus.CANCELLED, False),
            (("paid", "fulfilled", "shipped", "delivered"), OrderStatus.REFUNDED, True),
            (("paid", "fulfilled", "shipped", "delivered"), OrderStatus.SHIPPED, False),
        ],
    )
    def test_can_transition_to(self, steps, target, allowed):
        order = _advance(_make_order(), *steps)
        assert order.can_transition_to(target) is allowed


class TestCancel:
    def test_cancel_returns_previous_status(self):
        order = _make_order()
        assert order.cancel(reason="Payment failed", cancelled_by="System") == OrderStatus.PENDING

        paid = _advance(_make_order(), "paid")
        assert paid.cancel(reason="Fraud check") == OrderStatus.PAID

    def test_cancel_records_actor_and_reason(self):
        order = _make_order()
        order.cancel(reason="Out of season", cancelled_by=CancellationActor.STAFF.value)
        assert order.cancellation_reason == "Out of season"
        assert order.cancelled_by == "Staff"
        assert order.cancelled_at is not None

    def test_cancel_raises_event(self):
        order = _advance(_make_order(), "paid")
        order.cancel(reason="Duplicate")
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "Paid"


class TestPaymentBookkeeping:
    def test_attach_payment(self):
        order = _make_order()
        order.attach_payment("card", "pi_123", "requires_payment_method")
        assert order.payment_rail == "card"
        assert order.payment_reference == "pi_123"
        assert isinstance(order._events[-1], PaymentOpened)

    def test_attach_payment_requires_pending(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(InvalidTransition):
            order.attach_payment("card", "pi_456")

    def test_record_rail_status_keeps_order_pending(self):
        order = _make_order()
        order.record_rail_status("confirming")
        assert order.rail_status == "confirming"
        assert order.status == OrderStatus.PENDING.value

    def test_record_rail_status_rejected_after_settlement(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(InvalidTransition):
            order.record_rail_status("confirming")


class TestReturns:
    def test_partial_return_keeps_status(self):
        order = _advance(_make_order(), "paid")
        first = order.items[0]
        order.record_return("ret-001", [first.id], ReturnType.RETURN.value)

        assert order.status == OrderStatus.PAID.value
        statuses = {str(item.id): item.item_status for item in order.items}
        assert statuses[str(first.id)] == ItemStatus.RETURNED.value
        assert list(statuses.values()).count(ItemStatus.ORDERED.value) == 1
        assert isinstance(order._events[-1], OrderItemsReturned)

    def test_returning_every_item_refunds(self):
        order = _advance(_make_order(), "paid", "fulfilled", "shipped", "delivered")
        order.record_return("ret-001", [item.id for item in order.items], ReturnType.RETURN.value)

        assert order.status == OrderStatus.REFUNDED.value
        assert order.refunded_at is not None
        assert isinstance(order._events[-1], OrderRefunded)

    def test_returns_across_calls_refund_on_last_item(self):
        order = _advance(_make_order(), "paid")
        first, second = order.items
        order.record_return("ret-001", [first.id], ReturnType.RETURN.value)
        order.record_return("ret-002", [second.id], ReturnType.RETURN.value)
        assert order.status == OrderStatus.REFUNDED.value

    def test_exchange_does_not_refund(self):
        order = _advance(_make_order(), "paid")
        order.record_return("ret-001", [item.id for item in order.items], ReturnType.EXCHANGE.value)
        assert order.status == OrderStatus.PAID.value
        assert all(item.item_status == ItemStatus.EXCHANGED.value for item in order.items)

    def test_return_rejected_for_pending_order(self):
        order = _make_order()
        with pytest.raises(InvalidTransition):
            order.record_return("ret-001", [order.items[0].id], ReturnType.RETURN.value)

    def test_unknown_item_rejected(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(ValidationError) as exc:
            order.items_for(["not-an-item"])
        assert "item_ids" in exc.value.messages

    def test_item_cannot_be_returned_twice(self):
        order = _advance(_make_order(), "paid")
        first = order.items[0]
        order.record_return("ret-001", [first.id], ReturnType.RETURN.value)
        with pytest.raises(ValidationError):
            order.items_for([first.id])

    def test_items_for_requires_ids(self):
        order = _advance(_make_order(), "paid")
        with pytest.raises(ValidationError):
            order.items_for([])

    def test_items_for_ignores_duplicates(self):
        order = _advance(_make_order(), "paid")
        first = order.items[0]
        assert len(order.items_for([first.id, str(first.id)])) == 1
