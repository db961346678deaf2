"""Domain events for the Return aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Return")
class ReturnProcessed:
    """Returned items were dispositioned (restocked or written off)."""

    __version__ = 1

    return_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON: list of order item ids
    return_type = String(required=True, max_length=20)
    inventory_action = String(required=True, max_length=20)
    processed_at = DateTime(required=True)
