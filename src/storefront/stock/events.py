"""Domain events for the Variant aggregate.

Each event mirrors one Stock Ledger operation and carries the counters as
they stand after the change.
"""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Variant")
class VariantRegistered:
    """A sellable variant was added to a tenant's catalogue with opening stock."""

    __version__ = 1

    variant_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    sku = String(required=True)
    price = Integer(required=True)
    stock = Integer(required=True)
    registered_at = DateTime(required=True)


@storefront.event(part_of="Variant")
class StockReserved:
    """Units were put on hold for an in-flight checkout."""

    __version__ = 1

    variant_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved = Integer(required=True)


@storefront.event(part_of="Variant")
class ReservationReleased:
    """A hold was given back to available stock."""

    __version__ = 1

    variant_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved = Integer(required=True)


@storefront.event(part_of="Variant")
class ReservationFinalized:
    """Held units were converted into a sale and left on-hand stock."""

    __version__ = 1

    variant_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved = Integer(required=True)


@storefront.event(part_of="Variant")
class StockAdjusted:
    """Staff corrected on-hand stock (count correction, restock, damage)."""

    __version__ = 1

    variant_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    delta = Integer(required=True)
    stock = Integer(required=True)
    reserved = Integer(required=True)
    reason = String(required=True, max_length=500)
    adjusted_by = String(max_length=255)
