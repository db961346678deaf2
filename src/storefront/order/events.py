"""Domain events for the Order aggregate.

One event per status transition, plus the payment bookkeeping recorded
while the order is still pending.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """Stock was reserved and a pending order was created at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Integer(required=True)
    shipping = Integer()
    tax = Integer()
    total = Integer(required=True)
    currency = String(max_length=3)
    shipping_method = String(max_length=50)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentOpened:
    """An external payment context was opened for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    payment_rail = String(required=True, max_length=20)
    payment_reference = String(required=True, max_length=255)


@storefront.event(part_of="Order")
class RailStatusRecorded:
    """The payment rail reported an intermediate status (e.g. confirming)."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    rail_status = String(required=True, max_length=50)


@storefront.event(part_of="Order")
class OrderPaid:
    """Payment settled successfully; reserved stock is now sold."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    total = Integer(required=True)
    payment_rail = String(max_length=20)
    payment_reference = String(max_length=255)
    paid_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderFulfilled:
    """Staff packed the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    fulfilled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    """The order left the store, optionally with carrier tracking."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    shipped_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    """The customer received the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled by staff or by a failed payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    reason = String(max_length=500)
    cancelled_by = String(required=True, max_length=50)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderItemsReturned:
    """Items came back through the return/exchange flow."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    return_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON: list of item ids
    return_type = String(required=True, max_length=20)


@storefront.event(part_of="Order")
class OrderRefunded:
    """Every item of the order was returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    total = Integer(required=True)
    refunded_at = DateTime(required=True)
