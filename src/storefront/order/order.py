"""Order aggregate (CQRS): one checkout attempt that got past reservation.

State Machine:
    PENDING → PAID → FULFILLED → SHIPPED → DELIVERED
    PENDING → CANCELLED            (payment failure or staff cancel)
    PAID → CANCELLED               (staff cancel, no stock effect)
    PAID/FULFILLED/SHIPPED/DELIVERED → REFUNDED   (every item returned)

Stock effects are not applied here. The settlement handler, fulfillment
desk and return desk drive the Stock Ledger around these transitions.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.exceptions import InvalidTransition
from storefront.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderFulfilled,
    OrderItemsReturned,
    OrderPaid,
    OrderPlaced,
    OrderRefunded,
    OrderShipped,
    PaymentOpened,
    RailStatusRecorded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FULFILLED = "Fulfilled"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class ItemStatus(Enum):
    ORDERED = "Ordered"
    RETURNED = "Returned"
    EXCHANGED = "Exchanged"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    STAFF = "Staff"


class ReturnType(Enum):
    RETURN = "return"
    EXCHANGE = "exchange"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.FULFILLED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.FULFILLED: {OrderStatus.SHIPPED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# States in which items may be sent back
RETURNABLE_STATES = {
    OrderStatus.PAID,
    OrderStatus.FULFILLED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships. Captured at checkout and never edited afterwards."""

    name = String(required=True, max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    province = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A line item. ``unit_price`` is frozen at checkout even if the variant's price changes."""

    variant_id = Identifier(required=True)
    sku = String(max_length=50)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    item_status = String(
        choices=ItemStatus,
        default=ItemStatus.ORDERED.value,
    )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    tenant_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    shipping_method = String(max_length=50)
    subtotal = Integer(default=0, min_value=0)
    shipping = Integer(default=0, min_value=0)
    tax = Integer(default=0, min_value=0)
    total = Integer(default=0, min_value=0)
    currency = String(max_length=3, default="cad")
    payment_rail = String(max_length=20)
    payment_reference = String(max_length=255)
    rail_status = String(max_length=50)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=CancellationActor)
    created_at = DateTime()
    paid_at = DateTime()
    fulfilled_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        tenant_id,
        customer_id,
        items_data,
        shipping_address,
        shipping_method,
        totals,
        customer_email=None,
        currency="cad",
        order_id=None,
    ):
        """Create a pending order for lines whose stock is already reserved.

        Args:
            items_data: List of dicts with variant_id, quantity, unit_price and
                optionally sku and title.
            shipping_address: Dict matching ShippingAddress.
            totals: Dict with subtotal, shipping, tax and total in minor units.
            order_id: Optional pre-generated identity, so reservations made
                before the order exists can already reference it.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        identity = {"id": order_id} if order_id else {}
        order = cls(
            **identity,
            tenant_id=tenant_id,
            customer_id=customer_id,
            customer_email=customer_email,
            status=OrderStatus.PENDING.value,
            items=[OrderItem(**item) for item in items_data],
            shipping_address=ShippingAddress(**shipping_address)
            if isinstance(shipping_address, dict)
            else shipping_address,
            shipping_method=shipping_method,
            subtotal=totals["subtotal"],
            shipping=totals.get("shipping", 0),
            tax=totals.get("tax", 0),
            total=totals["total"],
            currency=currency,
            created_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                tenant_id=str(tenant_id),
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {
                            "item_id": str(item.id),
                            "variant_id": str(item.variant_id),
                            "quantity": item.quantity,
                            "unit_price": item.unit_price,
                        }
                        for item in order.items
                    ]
                ),
                subtotal=order.subtotal,
                shipping=order.shipping,
                tax=order.tax,
                total=order.total,
                currency=currency,
                shipping_method=shipping_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self):
        return OrderStatus(self.status)

    @property
    def is_pending(self):
        return self.current_status == OrderStatus.PENDING

    def can_transition_to(self, target_status):
        return target_status in _VALID_TRANSITIONS.get(self.current_status, set())

    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        if not self.can_transition_to(target_status):
            raise InvalidTransition(self.id, self.status, target_status.value)

    # -------------------------------------------------------------------
    # Payment bookkeeping (pending only)
    # -------------------------------------------------------------------
    def attach_payment(self, payment_rail, payment_reference, rail_status=None):
        """Correlate the order with the external payment opened for it."""
        if not self.is_pending:
            raise InvalidTransition(self.id, self.status, "payment opened")

        self.payment_rail = payment_rail
        self.payment_reference = payment_reference
        self.rail_status = rail_status
        self.raise_(
            PaymentOpened(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                payment_rail=payment_rail,
                payment_reference=payment_reference,
            )
        )

    def record_rail_status(self, rail_status):
        """Persist an intermediate rail status without moving the primary status."""
        if not self.is_pending:
            raise InvalidTransition(self.id, self.status, f"rail status {rail_status}")

        self.rail_status = rail_status
        self.raise_(
            RailStatusRecorded(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                rail_status=rail_status,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def mark_paid(self, rail_status=None):
        self._assert_can_transition(OrderStatus.PAID)
        now = datetime.now(UTC)
        self.status = OrderStatus.PAID.value
        self.paid_at = now
        if rail_status:
            self.rail_status = rail_status

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                total=self.total,
                payment_rail=self.payment_rail,
                payment_reference=self.payment_reference,
                paid_at=now,
            )
        )

    def fulfill(self):
        self._assert_can_transition(OrderStatus.FULFILLED)
        now = datetime.now(UTC)
        self.status = OrderStatus.FULFILLED.value
        self.fulfilled_at = now

        self.raise_(OrderFulfilled(order_id=str(self.id), tenant_id=str(self.tenant_id), fulfilled_at=now))

    def ship(self, tracking_number=None, carrier=None):
        self._assert_can_transition(OrderStatus.SHIPPED)
        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.shipped_at = now
        if tracking_number:
            self.tracking_number = tracking_number
        if carrier:
            self.carrier = carrier

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                tracking_number=tracking_number,
                carrier=carrier,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), tenant_id=str(self.tenant_id), delivered_at=now))

    def cancel(self, reason=None, cancelled_by=CancellationActor.STAFF.value):
        """Cancel the order. Returns the status it was cancelled from."""
        self._assert_can_transition(OrderStatus.CANCELLED)
        previous_status = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                previous_status=previous_status,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )
        return OrderStatus(previous_status)

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def items_for(self, item_ids):
        """Resolve item ids to this order's items, rejecting unknown or already returned ones."""
        if not item_ids:
            raise ValidationError({"item_ids": ["At least one item is required"]})

        by_id = {str(item.id): item for item in self.items}
        resolved = []
        for item_id in dict.fromkeys(str(i) for i in item_ids):
            item = by_id.get(item_id)
            if item is None:
                raise ValidationError({"item_ids": [f"Item {item_id} does not belong to order {self.id}"]})
            if item.item_status != ItemStatus.ORDERED.value:
                raise ValidationError({"item_ids": [f"Item {item_id} was already {item.item_status.lower()}"]})
            resolved.append(item)
        return resolved

    def record_return(self, return_id, item_ids, return_type):
        """Mark items returned or exchanged; refund the order once every item is returned."""
        if self.current_status not in RETURNABLE_STATES:
            raise InvalidTransition(self.id, self.status, "return")

        items = self.items_for(item_ids)
        item_status = (
            ItemStatus.RETURNED.value if return_type == ReturnType.RETURN.value else ItemStatus.EXCHANGED.value
        )
        for item in items:
            item.item_status = item_status
            self.add_items(item)

        self.raise_(
            OrderItemsReturned(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                return_id=str(return_id),
                item_ids=json.dumps([str(item.id) for item in items]),
                return_type=return_type,
            )
        )

        if all(item.item_status == ItemStatus.RETURNED.value for item in self.items):
            self.refund()

    def refund(self):
        self._assert_can_transition(OrderStatus.REFUNDED)
        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.refunded_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                tenant_id=str(self.tenant_id),
                total=self.total,
                refunded_at=now,
            )
        )
