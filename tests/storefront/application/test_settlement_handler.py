"""Application tests for settlement callbacks: exactly-once effects on orders and stock."""

import threading

from storefront.domain import storefront
from storefront.fulfillment.desk import FulfillmentDesk
from storefront.order.order import OrderStatus
from storefront.payment.rails.port import RailCallback
from storefront.settlement.handler import SettlementHandler, SettlementResult
from structlog.testing import capture_logs


def _ipn(result, status, **overrides):
    body = {
        "payment_id": 6000001,
        "invoice_id": result.payment.reference,
        "order_id": result.order_id,
        "payment_status": status,
        "pay_currency": "btc",
    }
    body.update(overrides)
    return body


class TestCardSuccess:
    def test_success_pays_and_finalizes(self, place_order, make_variant, variant_of, order_of, settle, card_event):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)])

        outcome = settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert outcome is SettlementResult.PAID
        order = order_of(result.order_id)
        assert order.status == OrderStatus.PAID.value
        assert order.rail_status == "payment_intent.succeeded"
        variant = variant_of(shirt)
        assert variant.stock == 4
        assert variant.reserved == 0

    def test_duplicate_success_is_a_noop(self, place_order, make_variant, variant_of, order_of, settle, card_event):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)])
        event = card_event("payment_intent.succeeded", result.payment.reference)

        settle("card", event)
        outcome = settle("card", event)

        assert outcome is SettlementResult.ALREADY_SETTLED
        assert order_of(result.order_id).status == OrderStatus.PAID.value
        variant = variant_of(shirt)
        assert variant.stock == 4
        assert variant.reserved == 0

    def test_concurrent_duplicate_callbacks_finalize_once(self, place_order, make_variant, variant_of, card_rail, card_event):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 2)])
        callback = card_rail.callback_from_event(card_event("payment_intent.succeeded", result.payment.reference))
        barrier = threading.Barrier(4)
        outcomes = []

        def deliver_callback():
            with storefront.domain_context():
                barrier.wait()
                outcomes.append(SettlementHandler().settle("tenant-north", "card", callback))

        threads = [threading.Thread(target=deliver_callback) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count(SettlementResult.PAID) == 1
        assert outcomes.count(SettlementResult.ALREADY_SETTLED) == 3
        variant = variant_of(shirt)
        assert variant.stock == 3
        assert variant.reserved == 0

    def test_each_item_is_finalized(self, place_order, make_variant, variant_of, settle, card_event):
        shirt = make_variant(stock=5)
        socks = make_variant(stock=8)
        result = place_order([(shirt, 1), (socks, 3)])

        settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert (variant_of(shirt).stock, variant_of(shirt).reserved) == (4, 0)
        assert (variant_of(socks).stock, variant_of(socks).reserved) == (5, 0)

    def test_paid_notification_sent(self, place_order, make_variant, settle, card_event, notifier):
        result = place_order([(make_variant(stock=5), 1)])
        settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert notifier.sent_for(result.order_id) == ["order_paid"]


class TestCardFailure:
    def test_failure_cancels_and_releases(self, place_order, make_variant, variant_of, order_of, settle, card_event):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 2)])

        outcome = settle("card", card_event("payment_intent.payment_failed", result.payment.reference))

        assert outcome is SettlementResult.CANCELLED
        order = order_of(result.order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "System"
        assert order.rail_status == "payment_intent.payment_failed"
        variant = variant_of(shirt)
        assert variant.stock == 5
        assert variant.reserved == 0

    def test_duplicate_failure_releases_once(self, place_order, make_variant, variant_of, ledger, settle, card_event, tenant_id):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 2)])
        # Another checkout holds one unit; a double release would eat into it
        ledger.reserve(tenant_id, shirt, 1)
        event = card_event("payment_intent.canceled", result.payment.reference)

        settle("card", event)
        outcome = settle("card", event)

        assert outcome is SettlementResult.ALREADY_SETTLED
        assert variant_of(shirt).reserved == 1

    def test_success_after_failure_is_ignored(self, place_order, make_variant, variant_of, order_of, settle, card_event):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)])
        settle("card", card_event("payment_intent.payment_failed", result.payment.reference))

        with capture_logs() as logs:
            outcome = settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert outcome is SettlementResult.ALREADY_SETTLED
        assert order_of(result.order_id).status == OrderStatus.CANCELLED.value
        assert variant_of(shirt).stock == 5
        assert any(log["event"] == "settlement.paid_after_cancel" for log in logs)

    def test_cancelled_notification_sent(self, place_order, make_variant, settle, card_event, notifier):
        result = place_order([(make_variant(stock=5), 1)])
        settle("card", card_event("payment_intent.payment_failed", result.payment.reference))

        assert notifier.sent_for(result.order_id) == ["order_cancelled"]


class TestSettlementAfterStaffCancel:
    def test_success_after_staff_cancel_leaves_stock(self, place_order, make_variant, variant_of, order_of, settle, card_event, tenant_id):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)])
        FulfillmentDesk().cancel(tenant_id, [result.order_id], reason="Customer called")

        outcome = settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert outcome is SettlementResult.ALREADY_SETTLED
        assert order_of(result.order_id).status == OrderStatus.CANCELLED.value
        variant = variant_of(shirt)
        assert variant.stock == 5
        assert variant.reserved == 0


class TestCryptoStages:
    def test_intermediate_statuses_are_recorded(self, place_order, make_variant, variant_of, order_of, settle):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)], rail="crypto")

        for status in ("confirming", "sending"):
            outcome = settle("crypto", _ipn(result, status))
            assert outcome is SettlementResult.RAIL_STATUS_RECORDED

        order = order_of(result.order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.rail_status == "sending"
        assert variant_of(shirt).reserved == 1
        assert variant_of(shirt).stock == 5

    def test_finished_pays_the_order(self, place_order, make_variant, variant_of, order_of, settle):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 1)], rail="crypto")
        settle("crypto", _ipn(result, "confirming"))

        outcome = settle("crypto", _ipn(result, "finished"))

        assert outcome is SettlementResult.PAID
        assert order_of(result.order_id).status == OrderStatus.PAID.value
        assert variant_of(shirt).stock == 4

    def test_late_intermediate_status_is_ignored(self, place_order, make_variant, order_of, settle):
        result = place_order([(make_variant(stock=5), 1)], rail="crypto")
        settle("crypto", _ipn(result, "finished"))

        outcome = settle("crypto", _ipn(result, "confirming"))

        assert outcome is SettlementResult.ALREADY_SETTLED
        order = order_of(result.order_id)
        assert order.status == OrderStatus.PAID.value
        assert order.rail_status == "finished"

    def test_expired_invoice_cancels(self, place_order, make_variant, variant_of, order_of, settle):
        shirt = make_variant(stock=5)
        result = place_order([(shirt, 2)], rail="crypto")

        assert settle("crypto", _ipn(result, "expired")) is SettlementResult.CANCELLED
        assert order_of(result.order_id).status == OrderStatus.CANCELLED.value
        assert variant_of(shirt).reserved == 0

    def test_located_by_order_id_without_invoice(self, place_order, make_variant, order_of, settle):
        result = place_order([(make_variant(stock=5), 1)], rail="crypto")

        outcome = settle("crypto", _ipn(result, "finished", invoice_id=None))

        assert outcome is SettlementResult.PAID
        assert order_of(result.order_id).status == OrderStatus.PAID.value


class TestUnmatchedCallbacks:
    def test_unknown_reference_is_acknowledged(self, settle, card_event):
        outcome = settle("card", card_event("payment_intent.succeeded", "pi_unknown"))
        assert outcome is SettlementResult.UNKNOWN_ORDER

    def test_other_tenants_callback_is_unknown(self, place_order, make_variant, order_of, settle, card_event, other_tenant_id):
        result = place_order([(make_variant(stock=5), 1)])

        outcome = settle(
            "card",
            card_event("payment_intent.succeeded", result.payment.reference, result.order_id),
            tenant_id=other_tenant_id,
        )

        assert outcome is SettlementResult.UNKNOWN_ORDER
        assert order_of(result.order_id).status == OrderStatus.PENDING.value

    def test_order_id_on_the_wrong_rail_is_unknown(self, place_order, make_variant, settle):
        result = place_order([(make_variant(stock=5), 1)], rail="card")

        outcome = settle("crypto", _ipn(result, "finished", invoice_id="inv-elsewhere"))

        assert outcome is SettlementResult.UNKNOWN_ORDER

    def test_unrecognized_status_is_ignored(self, place_order, make_variant, order_of, settle, card_event):
        result = place_order([(make_variant(stock=5), 1)])

        outcome = settle("card", card_event("charge.dispute.created", result.payment.reference))

        assert outcome is SettlementResult.IGNORED_STATUS
        assert order_of(result.order_id).status == OrderStatus.PENDING.value


class TestNotificationFailures:
    def test_notifier_failure_does_not_undo_settlement(self, place_order, make_variant, order_of, settle, card_event, notifier):
        result = place_order([(make_variant(stock=5), 1)])
        notifier.configure(should_succeed=False)

        with capture_logs() as logs:
            outcome = settle("card", card_event("payment_intent.succeeded", result.payment.reference))

        assert outcome is SettlementResult.PAID
        assert order_of(result.order_id).status == OrderStatus.PAID.value
        assert any(log["event"] == "notification.dispatch_failed" for log in logs)


class TestStockEffectFailures:
    def test_finalize_failure_keeps_order_paid(self, place_order, make_variant, order_of, ledger, card_rail, card_event, monkeypatch):
        result = place_order([(make_variant(stock=5), 1)])

        def broken_finalize(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(ledger, "finalize", broken_finalize)
        callback = card_rail.callback_from_event(card_event("payment_intent.succeeded", result.payment.reference))

        with capture_logs() as logs:
            outcome = SettlementHandler(ledger=ledger).settle("tenant-north", "card", callback)

        assert outcome is SettlementResult.PAID
        assert order_of(result.order_id).status == OrderStatus.PAID.value
        assert any(log["event"] == "order.stock_finalize_failed" and log["log_level"] == "critical" for log in logs)

    def test_callback_without_reference_or_order(self):
        handler = SettlementHandler()
        outcome = handler.settle("tenant-north", "card", RailCallback(provider_status="payment_intent.succeeded"))
        assert outcome is SettlementResult.UNKNOWN_ORDER
