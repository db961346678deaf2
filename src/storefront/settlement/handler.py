"""Settlement Handler: applies payment callbacks to orders, exactly once.

Callbacks arrive at-least-once and possibly out of order, so every call is
treated as a potential retry:

    1. Find the order by the rail's correlation reference (tenant scoped).
       No order → acknowledge and do nothing.
    2. Map the provider status through the rail.
    3. Only a pending order is ever settled. Anything else is already
       settled and the callback is acknowledged without reprocessing.
    4. Success claims ``Paid`` then finalizes every item; failure claims
       ``Cancelled`` then releases every item.
    5. Intermediate statuses are stored as the order's rail status.

The status claim is committed under the order's lock before the ledger is
touched, so a duplicate callback or a racing staff cancel always observes
a non-pending order and becomes a no-op.
"""

from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.notification.dispatch import dispatch
from storefront.notification.port import OrderNotification
from storefront.order.inventory import finalize_order_items, release_order_items
from storefront.order.order import CancellationActor, Order, OrderStatus
from storefront.payment.rails import get_rail
from storefront.payment.rails.port import SettlementOutcome
from storefront.stock.ledger import StockLedger
from storefront.utils.locks import order_locks
from storefront.utils.tenancy import find_for_tenant, get_for_tenant

logger = structlog.get_logger(__name__)


class SettlementResult(Enum):
    PAID = "paid"
    CANCELLED = "cancelled"
    RAIL_STATUS_RECORDED = "rail_status_recorded"
    ALREADY_SETTLED = "already_settled"
    UNKNOWN_ORDER = "unknown_order"
    IGNORED_STATUS = "ignored_status"


class SettlementHandler:
    def __init__(self, ledger=None):
        self.ledger = ledger or StockLedger()

    def settle(self, tenant_id, rail_name, callback):
        rail = get_rail(rail_name)
        log = logger.bind(
            tenant_id=str(tenant_id),
            rail=rail_name,
            reference=callback.reference,
            provider_status=callback.provider_status,
        )

        order_id = self._locate(tenant_id, rail_name, callback)
        if order_id is None:
            log.warning("settlement.unknown_callback", order_id=callback.order_id)
            return SettlementResult.UNKNOWN_ORDER

        outcome = rail.map_status(callback.provider_status)
        if outcome is SettlementOutcome.UNKNOWN:
            log.info("settlement.unhandled_status", order_id=order_id)
            return SettlementResult.IGNORED_STATUS

        repo = current_domain.repository_for(Order)
        with order_locks.hold(order_id):
            order = get_for_tenant(Order, tenant_id, order_id)
            log = log.bind(order_id=order_id, order_status=order.status)

            if not order.is_pending:
                if outcome is SettlementOutcome.SUCCEEDED and order.current_status == OrderStatus.CANCELLED:
                    log.warning("settlement.paid_after_cancel")
                else:
                    log.info("settlement.already_settled")
                return SettlementResult.ALREADY_SETTLED

            if outcome is SettlementOutcome.INTERMEDIATE:
                order.record_rail_status(callback.provider_status)
                repo.add(order)
                log.info("settlement.rail_status_recorded")
                return SettlementResult.RAIL_STATUS_RECORDED

            if outcome is SettlementOutcome.SUCCEEDED:
                order.mark_paid(rail_status=callback.provider_status)
                repo.add(order)
                finalize_order_items(self.ledger, tenant_id, order, actor=f"settlement:{rail_name}")
                log.info("settlement.order_paid", total=order.total)
                dispatch(OrderNotification.ORDER_PAID, tenant_id, order)
                return SettlementResult.PAID

            order.cancel(
                reason=f"Payment {callback.provider_status}",
                cancelled_by=CancellationActor.SYSTEM.value,
            )
            order.rail_status = callback.provider_status
            repo.add(order)
            release_order_items(self.ledger, tenant_id, order, actor=f"settlement:{rail_name}")
            log.info("settlement.order_cancelled")
            dispatch(OrderNotification.ORDER_CANCELLED, tenant_id, order)
            return SettlementResult.CANCELLED

    @staticmethod
    def _locate(tenant_id, rail_name, callback):
        """Resolve a callback to an order id within the tenant, or None."""
        if callback.reference:
            matches = find_for_tenant(
                Order,
                tenant_id,
                payment_rail=rail_name,
                payment_reference=callback.reference,
            )
            if matches:
                return str(matches[0].id)

        if callback.order_id:
            try:
                order = get_for_tenant(Order, tenant_id, callback.order_id)
            except ObjectNotFoundError:
                return None
            if order.payment_rail == rail_name:
                return str(order.id)

        return None
