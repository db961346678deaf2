"""Fulfillment desk: bulk staff operations over lists of order ids.

Every operation reports per order instead of failing the batch: an unknown
id or an order in the wrong state becomes ``{"success": False, "error": ...}``
and the remaining orders are still processed.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.fulfillment.transitions import DeliverOrder, FulfillOrder, ShipOrder
from storefront.notification.dispatch import dispatch
from storefront.notification.port import OrderNotification
from storefront.order.inventory import release_order_items
from storefront.order.order import CancellationActor, Order, OrderStatus
from storefront.stock.ledger import StockLedger
from storefront.utils.locks import order_locks
from storefront.utils.tenancy import get_for_tenant

logger = structlog.get_logger(__name__)


def _error_text(exc):
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return "; ".join(str(message) for values in messages.values() for message in values)
    return str(exc)


def _result_error(exc):
    if isinstance(exc, ObjectNotFoundError):
        return "Order not found"
    if isinstance(exc, ExpectedVersionError):
        return "Order was changed by another request; retry"
    return _error_text(exc)


def summarize(results):
    succeeded = sum(1 for result in results if result["success"])
    return {
        "processed": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


class FulfillmentDesk:
    def __init__(self, ledger=None):
        self.ledger = ledger or StockLedger()

    def fulfill(self, tenant_id, order_ids, actor="staff"):
        return self._each(tenant_id, order_ids, "fulfill", actor, self._fulfill_one)

    def ship(self, tenant_id, order_ids, tracking_number=None, carrier=None, actor="staff"):
        def ship_one(tenant_id, order_id):
            order = current_domain.process(
                ShipOrder(
                    tenant_id=tenant_id,
                    order_id=order_id,
                    tracking_number=tracking_number,
                    carrier=carrier,
                ),
                asynchronous=False,
            )
            dispatch(OrderNotification.ORDER_SHIPPED, tenant_id, order)

        return self._each(tenant_id, order_ids, "ship", actor, ship_one)

    def deliver(self, tenant_id, order_ids, actor="staff"):
        return self._each(tenant_id, order_ids, "deliver", actor, self._deliver_one)

    def cancel(self, tenant_id, order_ids, reason=None, actor="staff"):
        """Cancel pending or paid orders.

        A pending order gives its reservations back. A paid order's stock
        was already finalized and stays sold; restocking goes through a
        return.
        """

        def cancel_one(tenant_id, order_id):
            repo = current_domain.repository_for(Order)
            order = get_for_tenant(Order, tenant_id, order_id)
            previous_status = order.cancel(reason=reason, cancelled_by=CancellationActor.STAFF.value)
            repo.add(order)
            if previous_status == OrderStatus.PENDING:
                release_order_items(self.ledger, tenant_id, order, actor=actor)
            dispatch(OrderNotification.ORDER_CANCELLED, tenant_id, order)

        return self._each(tenant_id, order_ids, "cancel", actor, cancel_one)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    @staticmethod
    def _fulfill_one(tenant_id, order_id):
        current_domain.process(FulfillOrder(tenant_id=tenant_id, order_id=order_id), asynchronous=False)

    @staticmethod
    def _deliver_one(tenant_id, order_id):
        current_domain.process(DeliverOrder(tenant_id=tenant_id, order_id=order_id), asynchronous=False)

    def _each(self, tenant_id, order_ids, operation, actor, apply_one):
        results = []
        for order_id in order_ids:
            order_id = str(order_id)
            try:
                with order_locks.hold(order_id):
                    apply_one(tenant_id, order_id)
            except (ValidationError, ObjectNotFoundError, ExpectedVersionError) as exc:
                error = _result_error(exc)
                logger.info(
                    f"fulfillment.{operation}_rejected",
                    tenant_id=str(tenant_id),
                    order_id=order_id,
                    actor=actor,
                    error=error,
                )
                results.append({"order_id": order_id, "success": False, "error": error})
                continue

            logger.info(
                f"fulfillment.{operation}_applied",
                tenant_id=str(tenant_id),
                order_id=order_id,
                actor=actor,
            )
            results.append({"order_id": order_id, "success": True})
        return results
