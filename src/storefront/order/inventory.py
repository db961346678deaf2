"""Stock effects of order transitions, applied item by item through the ledger.

Callers claim the order's new status first and commit it; these helpers
then move the counters. A failure here cannot be retried by re-sending the
callback (the order is no longer pending), so it is logged critical for an
operator to reconcile.
"""

import structlog

from storefront.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


def finalize_order_items(ledger: StockLedger, tenant_id, order, actor):
    return _apply_to_items(ledger.finalize, "finalize", tenant_id, order, actor)


def release_order_items(ledger: StockLedger, tenant_id, order, actor):
    return _apply_to_items(ledger.release, "release", tenant_id, order, actor)


def _apply_to_items(operation, name, tenant_id, order, actor):
    failures = []
    for item in order.items:
        try:
            operation(tenant_id, item.variant_id, item.quantity, actor=actor, reference=str(order.id))
        except Exception as exc:
            logger.critical(
                f"order.stock_{name}_failed",
                tenant_id=str(tenant_id),
                order_id=str(order.id),
                variant_id=str(item.variant_id),
                quantity=item.quantity,
                error=str(exc),
            )
            failures.append((str(item.variant_id), item.quantity, exc))
    return failures
