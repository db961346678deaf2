"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own tenant and ids; nothing is shared
across users.
"""

from dataclasses import dataclass, field


@dataclass
class StoreState:
    """A simulated tenant with the variants it sells."""

    tenant_id: str | None = None
    variant_ids: list[str] = field(default_factory=list)


@dataclass
class OrderState:
    """Tracks one order through checkout, settlement and fulfillment."""

    order_id: str | None = None
    reference: str | None = None
    status: str = "Pending"
