"""Payment rail port: the capability every payment rail provides.

A rail opens an external payment for an order, authenticates the callbacks
the provider sends back, and maps provider statuses onto the four outcomes
the settlement handler understands.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class SettlementOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERMEDIATE = "intermediate"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PaymentHandle:
    """What the shopper needs to complete payment out-of-band."""

    rail: str
    reference: str
    client_secret: str | None = None
    payment_url: str | None = None
    initial_status: str | None = None


@dataclass(frozen=True)
class RailCallback:
    """An authenticated provider callback, reduced to what settlement needs."""

    provider_status: str
    reference: str | None = None
    order_id: str | None = None
    details: dict = field(default_factory=dict)


class PaymentRail(ABC):
    """Abstract interface for payment rail adapters."""

    name: str = ""
    status_map: dict[str, SettlementOutcome] = {}

    @abstractmethod
    def open_payment(self, tenant_id: str, order) -> PaymentHandle:
        """Open an external payment sized to ``order.total``.

        Raises PaymentInitError when the provider is unreachable or rejects
        the request.
        """
        ...

    @abstractmethod
    def verify_callback(self, payload: bytes, signature: str) -> RailCallback:
        """Authenticate and parse a raw callback body.

        Raises InvalidCallbackSignature when verification fails.
        """
        ...

    def map_status(self, provider_status: str) -> SettlementOutcome:
        return self.status_map.get(provider_status, SettlementOutcome.UNKNOWN)
