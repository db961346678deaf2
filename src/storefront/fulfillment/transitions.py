"""Staff fulfillment transitions: commands and handler.

These transitions have no stock effect, so each one is a single-aggregate
command processed in its own unit of work.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order
from storefront.utils.tenancy import get_for_tenant


@storefront.command(part_of="Order")
class FulfillOrder:
    tenant_id = Identifier(required=True)
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class ShipOrder:
    tenant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)


@storefront.command(part_of="Order")
class DeliverOrder:
    tenant_id = Identifier(required=True)
    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(FulfillOrder)
    def fulfill_order(self, command):
        order = get_for_tenant(Order, command.tenant_id, command.order_id)
        order.fulfill()
        current_domain.repository_for(Order).add(order)
        return order

    @handle(ShipOrder)
    def ship_order(self, command):
        order = get_for_tenant(Order, command.tenant_id, command.order_id)
        order.ship(tracking_number=command.tracking_number, carrier=command.carrier)
        current_domain.repository_for(Order).add(order)
        return order

    @handle(DeliverOrder)
    def deliver_order(self, command):
        order = get_for_tenant(Order, command.tenant_id, command.order_id)
        order.deliver()
        current_domain.repository_for(Order).add(order)
        return order
