"""Append-only audit trail of every Stock Ledger mutation."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


class LedgerOperation(Enum):
    RESERVE = "reserve"
    RELEASE = "release"
    FINALIZE = "finalize"
    ADJUST = "adjust"


@storefront.aggregate
class StockAuditEntry:
    """One row per ledger mutation: what moved, why, who asked, and when.

    Entries are written in the same step as the counter change and are
    never updated afterwards.
    """

    tenant_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    operation = String(required=True, choices=LedgerOperation)
    stock_delta = Integer(default=0)
    reserved_delta = Integer(default=0)
    reason = String(max_length=500)
    actor = String(max_length=255)
    reference = String(max_length=255)
    recorded_at = DateTime(required=True)

    @classmethod
    def record(
        cls,
        tenant_id,
        variant_id,
        operation,
        stock_delta=0,
        reserved_delta=0,
        reason=None,
        actor=None,
        reference=None,
    ):
        return cls(
            tenant_id=tenant_id,
            variant_id=variant_id,
            operation=operation.value,
            stock_delta=stock_delta,
            reserved_delta=reserved_delta,
            reason=reason,
            actor=actor,
            reference=reference,
            recorded_at=datetime.now(UTC),
        )
