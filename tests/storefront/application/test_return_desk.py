"""Application tests for returns and exchanges."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.exceptions import InvalidTransition
from storefront.fulfillment.desk import FulfillmentDesk
from storefront.order.order import ItemStatus, OrderStatus
from storefront.returns.desk import ReturnDesk
from storefront.returns.returns import Return, ReturnStatus
from storefront.stock.ledger import StockLedger


@pytest.fixture
def two_item_order(place_order, make_variant, settle, card_event):
    """A paid order for 1 shirt and 2 socks; returns (order_id, shirt_id, socks_id)."""
    shirt = make_variant(stock=5, price=4000)
    socks = make_variant(stock=10, price=900)
    result = place_order([(shirt, 1), (socks, 2)])
    settle("card", card_event("payment_intent.succeeded", result.payment.reference))
    return result.order_id, shirt, socks


def _item_for(order, variant_id):
    return next(item for item in order.items if str(item.variant_id) == variant_id)


class TestRestock:
    def test_partial_return_restocks_without_refund(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, socks = two_item_order
        item = _item_for(order_of(order_id), socks)

        outcome = ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Too small")

        assert outcome.order_status == OrderStatus.PAID.value
        assert variant_of(socks).stock == 10
        assert variant_of(shirt).stock == 4
        order = order_of(order_id)
        assert _item_for(order, socks).item_status == ItemStatus.RETURNED.value
        assert _item_for(order, shirt).item_status == ItemStatus.ORDERED.value

    def test_returning_every_item_refunds(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, socks = two_item_order
        desk = ReturnDesk()
        order = order_of(order_id)

        desk.create_return(tenant_id, order_id, [_item_for(order, shirt).id], inventory_action="restock", reason="Faded")
        outcome = desk.create_return(
            tenant_id, order_id, [_item_for(order, socks).id], inventory_action="restock", reason="Faded"
        )

        assert outcome.order_status == OrderStatus.REFUNDED.value
        assert order_of(order_id).status == OrderStatus.REFUNDED.value
        assert variant_of(shirt).stock == 5
        assert variant_of(socks).stock == 10

    def test_restock_is_audited(self, two_item_order, order_of, ledger, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Wrong colour")

        latest = ledger.history(tenant_id, shirt)[0]
        assert latest.operation == "adjust"
        assert latest.stock_delta == 1
        assert latest.reason == "Return: Wrong colour"

    def test_return_record_is_processed(self, two_item_order, order_of, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        outcome = ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Defect")

        record = current_domain.repository_for(Return).get(outcome.return_id)
        assert record.status == ReturnStatus.PROCESSED.value
        assert record.returned_item_ids == [str(item.id)]
        assert record.processed_at is not None

    def test_return_after_delivery(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, _ = two_item_order
        desk = FulfillmentDesk()
        desk.fulfill(tenant_id, [order_id])
        desk.ship(tenant_id, [order_id])
        desk.deliver(tenant_id, [order_id])
        item = _item_for(order_of(order_id), shirt)

        outcome = ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Late")

        assert outcome.order_status == OrderStatus.DELIVERED.value
        assert variant_of(shirt).stock == 5


class TestWriteoffAndExchange:
    def test_writeoff_leaves_stock(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, socks = two_item_order
        order = order_of(order_id)
        item_ids = [item.id for item in order.items]

        outcome = ReturnDesk().create_return(tenant_id, order_id, item_ids, inventory_action="writeoff", reason="Damaged")

        assert outcome.order_status == OrderStatus.REFUNDED.value
        assert variant_of(shirt).stock == 4
        assert variant_of(socks).stock == 8

    def test_exchange_marks_items_without_refund(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        outcome = ReturnDesk().create_return(
            tenant_id, order_id, [item.id], inventory_action="restock", reason="Size swap", return_type="exchange"
        )

        assert outcome.order_status == OrderStatus.PAID.value
        assert _item_for(order_of(order_id), shirt).item_status == ItemStatus.EXCHANGED.value
        assert variant_of(shirt).stock == 5


class TestRejectedReturns:
    def test_pending_order_cannot_be_returned(self, place_order, make_variant, order_of, tenant_id):
        result = place_order([(make_variant(stock=5), 1)])
        item = order_of(result.order_id).items[0]

        with pytest.raises(InvalidTransition):
            ReturnDesk().create_return(tenant_id, result.order_id, [item.id], inventory_action="restock", reason="x")

    def test_cancelled_order_cannot_be_returned(self, place_order, make_variant, order_of, tenant_id):
        result = place_order([(make_variant(stock=5), 1)])
        FulfillmentDesk().cancel(tenant_id, [result.order_id])
        item = order_of(result.order_id).items[0]

        with pytest.raises(InvalidTransition):
            ReturnDesk().create_return(tenant_id, result.order_id, [item.id], inventory_action="restock", reason="x")

    def test_item_cannot_be_returned_twice(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)
        desk = ReturnDesk()
        desk.create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Defect")

        with pytest.raises(ValidationError):
            desk.create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason="Defect")
        assert variant_of(shirt).stock == 5

    def test_invalid_inventory_action(self, two_item_order, order_of, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        with pytest.raises(ValidationError) as exc:
            ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="donate", reason="x")
        assert "inventory_action" in exc.value.messages

    def test_reason_required(self, two_item_order, order_of, tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        with pytest.raises(ValidationError):
            ReturnDesk().create_return(tenant_id, order_id, [item.id], inventory_action="restock", reason=" ")

    def test_other_tenants_order_not_found(self, two_item_order, order_of, other_tenant_id):
        order_id, shirt, _ = two_item_order
        item = _item_for(order_of(order_id), shirt)

        with pytest.raises(ObjectNotFoundError):
            ReturnDesk().create_return(other_tenant_id, order_id, [item.id], inventory_action="restock", reason="x")


class _FlakyLedger(StockLedger):
    """Ledger whose Nth restock (positive adjust) fails."""

    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = fail_on
        self.restocks = 0

    def adjust(self, tenant_id, variant_id, delta, reason, actor):
        if delta > 0:
            self.restocks += 1
            if self.restocks == self.fail_on:
                raise RuntimeError("Database unavailable")
        return super().adjust(tenant_id, variant_id, delta, reason=reason, actor=actor)


class TestFailedRestock:
    def test_failure_leaves_order_untouched_and_stock_unchanged(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, socks = two_item_order
        order = order_of(order_id)
        item_ids = [_item_for(order, shirt).id, _item_for(order, socks).id]

        with pytest.raises(RuntimeError):
            ReturnDesk(ledger=_FlakyLedger(fail_on=2)).create_return(
                tenant_id, order_id, item_ids, inventory_action="restock", reason="Wrong size"
            )

        order = order_of(order_id)
        assert order.status == OrderStatus.PAID.value
        assert {item.item_status for item in order.items} == {ItemStatus.ORDERED.value}
        assert variant_of(shirt).stock == 4
        assert variant_of(socks).stock == 8
        assert current_domain.repository_for(Return)._dao.query.all().items == []

    def test_return_can_be_retried_after_failure(self, two_item_order, order_of, variant_of, tenant_id):
        order_id, shirt, socks = two_item_order
        order = order_of(order_id)
        item_ids = [_item_for(order, shirt).id, _item_for(order, socks).id]

        with pytest.raises(RuntimeError):
            ReturnDesk(ledger=_FlakyLedger(fail_on=2)).create_return(
                tenant_id, order_id, item_ids, inventory_action="restock", reason="Wrong size"
            )
        outcome = ReturnDesk().create_return(tenant_id, order_id, item_ids, inventory_action="restock", reason="Wrong size")

        assert outcome.order_status == OrderStatus.REFUNDED.value
        assert variant_of(shirt).stock == 5
        assert variant_of(socks).stock == 10
