"""Quote engine port: prices a cart for a destination and shipping method."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class QuoteLine:
    variant_id: str
    quantity: int
    unit_price: int
    sku: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class Quote:
    """Priced totals in minor currency units."""

    subtotal: int
    shipping: int
    tax: int
    total: int
    selected_method: str
    currency: str = "cad"
    lines: tuple[QuoteLine, ...] = field(default_factory=tuple)

    def totals(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
        }


class QuoteEngine(ABC):
    @abstractmethod
    def quote(self, tenant_id: str, lines: list[tuple[str, int]], address: dict, requested_method: str | None) -> Quote:
        """Price ``lines`` of ``(variant_id, quantity)``.

        Raises ValidationError for unknown variants and InsufficientStock
        when a line exceeds current availability. The stock check is a
        pre-check only; reservation is what actually claims units.
        """
        ...
