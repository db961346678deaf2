"""Variant aggregate (CQRS): one sellable size/condition of a catalogue item.

A variant owns two counters:

    stock     total units the store owns
    reserved  units held by in-flight checkouts

``available = stock - reserved``. The invariant ``0 <= reserved <= stock``
is enforced on every change. The counters are only ever moved through the
methods below, which the Stock Ledger calls inside its locked,
version-checked read-modify-write.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock
from storefront.stock.events import (
    ReservationFinalized,
    ReservationReleased,
    StockAdjusted,
    StockReserved,
    VariantRegistered,
)


@storefront.aggregate
class Variant:
    tenant_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    title = String(max_length=255)
    price = Integer(required=True, min_value=0)  # minor currency units
    stock = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_cannot_exceed_stock(self):
        if (self.reserved or 0) > (self.stock or 0):
            raise ValidationError({"reserved": [f"Reserved ({self.reserved}) cannot exceed stock ({self.stock})"]})

    @property
    def available(self):
        return self.stock - self.reserved

    @classmethod
    def register(cls, tenant_id, sku, price, stock=0, title=None):
        now = datetime.now(UTC)
        variant = cls(
            tenant_id=tenant_id,
            sku=sku,
            title=title,
            price=price,
            stock=stock,
            reserved=0,
            created_at=now,
            updated_at=now,
        )
        variant.raise_(
            VariantRegistered(
                variant_id=str(variant.id),
                tenant_id=str(tenant_id),
                sku=sku,
                price=price,
                stock=stock,
                registered_at=now,
            )
        )
        return variant

    # -------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------
    def reserve(self, quantity):
        """Hold ``quantity`` units, or raise InsufficientStock with no effect."""
        _require_positive(quantity)
        if self.available < quantity:
            raise InsufficientStock(self.id, quantity, self.available)

        self.reserved += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockReserved(
                variant_id=str(self.id),
                tenant_id=str(self.tenant_id),
                quantity=quantity,
                stock=self.stock,
                reserved=self.reserved,
            )
        )

    def release(self, quantity):
        """Give back up to ``quantity`` held units. Returns the amount actually released."""
        _require_positive(quantity)
        released = min(quantity, self.reserved)

        self.reserved -= released
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ReservationReleased(
                variant_id=str(self.id),
                tenant_id=str(self.tenant_id),
                quantity=released,
                stock=self.stock,
                reserved=self.reserved,
            )
        )
        return released

    def finalize(self, quantity):
        """Convert held units into a sale: both counters drop by ``quantity``."""
        _require_positive(quantity)
        if self.reserved < quantity:
            raise ValidationError(
                {"reserved": [f"Cannot finalize {quantity} units, only {self.reserved} reserved"]}
            )

        with atomic_change(self):
            self.stock -= quantity
            self.reserved -= quantity
            self.updated_at = datetime.now(UTC)

        self.raise_(
            ReservationFinalized(
                variant_id=str(self.id),
                tenant_id=str(self.tenant_id),
                quantity=quantity,
                stock=self.stock,
                reserved=self.reserved,
            )
        )

    def adjust(self, delta, reason, adjusted_by=None):
        """Correct on-hand stock. Never touches ``reserved``."""
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Adjustment reason is required"]})
        if not delta:
            raise ValidationError({"delta": ["Adjustment delta cannot be zero"]})

        new_stock = self.stock + delta
        if new_stock < self.reserved:
            raise ValidationError(
                {"stock": [f"Adjustment would leave stock ({new_stock}) below reserved ({self.reserved})"]}
            )

        self.stock = new_stock
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockAdjusted(
                variant_id=str(self.id),
                tenant_id=str(self.tenant_id),
                delta=delta,
                stock=self.stock,
                reserved=self.reserved,
                reason=reason,
                adjusted_by=adjusted_by,
            )
        )


def _require_positive(quantity):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
