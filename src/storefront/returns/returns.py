"""Return aggregate (CQRS): post-sale disposition of order items.

A return is opened ``Pending`` and becomes ``Processed`` once its
inventory action has been applied: ``restock`` puts units back into
on-hand stock through an audited adjustment, ``writeoff`` leaves stock
untouched.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String, Text

from storefront.domain import storefront
from storefront.order.order import ReturnType
from storefront.returns.events import ReturnProcessed


class InventoryAction(Enum):
    RESTOCK = "restock"
    WRITEOFF = "writeoff"


class ReturnStatus(Enum):
    PENDING = "Pending"
    PROCESSED = "Processed"


@storefront.aggregate
class Return:
    tenant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON array of order item ids
    return_type = String(choices=ReturnType, default=ReturnType.RETURN.value)
    inventory_action = String(required=True, choices=InventoryAction)
    status = String(choices=ReturnStatus, default=ReturnStatus.PENDING.value)
    reason = String(required=True, max_length=500)
    created_by = String(max_length=255)
    created_at = DateTime()
    processed_at = DateTime()

    @classmethod
    def open(cls, tenant_id, order_id, item_ids, return_type, inventory_action, reason, created_by=None):
        return cls(
            tenant_id=tenant_id,
            order_id=order_id,
            item_ids=json.dumps([str(item_id) for item_id in item_ids]),
            return_type=return_type,
            inventory_action=inventory_action,
            status=ReturnStatus.PENDING.value,
            reason=reason,
            created_by=created_by,
            created_at=datetime.now(UTC),
        )

    @property
    def returned_item_ids(self):
        return json.loads(self.item_ids)

    def mark_processed(self):
        now = datetime.now(UTC)
        self.status = ReturnStatus.PROCESSED.value
        self.processed_at = now
        self.raise_(
            ReturnProcessed(
                return_id=str(self.id),
                tenant_id=str(self.tenant_id),
                order_id=str(self.order_id),
                item_ids=self.item_ids,
                return_type=self.return_type,
                inventory_action=self.inventory_action,
                processed_at=now,
            )
        )
