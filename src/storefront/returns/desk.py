"""Return desk: staff-created returns and exchanges.

Restocking runs first, through the Stock Ledger's audited ``adjust`` so on-hand
stock never moves outside the ledger. The order's item bookkeeping (and the
refund, once every item is back) is committed with the processed return
afterwards; if any step fails the restocks already applied are reversed and
the call can be retried.
"""

from dataclasses import dataclass

import structlog
from protean import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.exceptions import InvalidTransition
from storefront.order.order import RETURNABLE_STATES, Order, ReturnType
from storefront.returns.returns import InventoryAction, Return
from storefront.stock.ledger import StockLedger
from storefront.utils.locks import order_locks
from storefront.utils.tenancy import get_for_tenant

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReturnOutcome:
    return_id: str
    order_id: str
    order_status: str
    inventory_action: str
    item_ids: tuple[str, ...]


class ReturnDesk:
    def __init__(self, ledger=None):
        self.ledger = ledger or StockLedger()

    def create_return(
        self,
        tenant_id,
        order_id,
        item_ids,
        inventory_action,
        reason,
        return_type=ReturnType.RETURN.value,
        actor="staff",
    ):
        errors = {}
        if inventory_action not in {action.value for action in InventoryAction}:
            errors["inventory_action"] = ["must be one of restock, writeoff"]
        if return_type not in {kind.value for kind in ReturnType}:
            errors["return_type"] = ["must be one of return, exchange"]
        if not reason or not str(reason).strip():
            errors["reason"] = ["is required"]
        if errors:
            raise ValidationError(errors)

        order_repo = current_domain.repository_for(Order)
        return_repo = current_domain.repository_for(Return)

        with order_locks.hold(order_id):
            order = get_for_tenant(Order, tenant_id, order_id)
            if order.current_status not in RETURNABLE_STATES:
                raise InvalidTransition(order.id, order.status, "return")

            items = order.items_for(item_ids)
            record = Return.open(
                tenant_id=tenant_id,
                order_id=order.id,
                item_ids=[item.id for item in items],
                return_type=return_type,
                inventory_action=inventory_action,
                reason=reason,
                created_by=actor,
            )

            # Stock moves first; the order and the return are only written once
            # every unit is back, so a failed call leaves nothing to repair.
            restocked = []
            try:
                if inventory_action == InventoryAction.RESTOCK.value:
                    for item in items:
                        self.ledger.adjust(
                            tenant_id,
                            item.variant_id,
                            item.quantity,
                            reason=f"Return: {reason}",
                            actor=actor,
                        )
                        restocked.append(item)

                order.record_return(record.id, [item.id for item in items], return_type)
                record.mark_processed()
                with UnitOfWork():
                    return_repo.add(record)
                    order_repo.add(order)
            except Exception as exc:
                logger.error(
                    "returns.failed",
                    tenant_id=str(tenant_id),
                    order_id=str(order.id),
                    return_id=str(record.id),
                    restocked=len(restocked),
                    error=str(exc),
                )
                self._undo_restock(tenant_id, order, record, restocked, reason, actor)
                raise

        logger.info(
            "returns.processed",
            tenant_id=str(tenant_id),
            order_id=str(order.id),
            return_id=str(record.id),
            return_type=return_type,
            inventory_action=inventory_action,
            items=len(items),
            order_status=order.status,
        )
        return ReturnOutcome(
            return_id=str(record.id),
            order_id=str(order.id),
            order_status=order.status,
            inventory_action=inventory_action,
            item_ids=tuple(str(item.id) for item in items),
        )

    def _undo_restock(self, tenant_id, order, record, restocked, reason, actor):
        for item in reversed(restocked):
            try:
                self.ledger.adjust(
                    tenant_id,
                    item.variant_id,
                    -item.quantity,
                    reason=f"Return rolled back: {reason}",
                    actor=actor,
                )
            except Exception as exc:
                logger.critical(
                    "returns.restock_rollback_failed",
                    tenant_id=str(tenant_id),
                    order_id=str(order.id),
                    return_id=str(record.id),
                    variant_id=str(item.variant_id),
                    quantity=item.quantity,
                    error=str(exc),
                )
