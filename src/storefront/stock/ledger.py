"""Stock Ledger: the only way the stock/reserved counters move.

Each operation is one read-modify-write on a single variant:

    1. take the variant's in-process lock
    2. load the variant (tenant scoped)
    3. apply the change through the aggregate, which enforces
       ``0 <= reserved <= stock``
    4. persist the variant and its audit entry in one unit of work

The repository rejects a write whose version no longer matches the stored
record, so a concurrent writer in another process forces a reload and a
bounded retry instead of a lost update.
"""

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from storefront.config import get_settings
from storefront.stock.audit import LedgerOperation, StockAuditEntry
from storefront.stock.variant import Variant
from storefront.utils.locks import variant_locks
from storefront.utils.tenancy import find_for_tenant, get_for_tenant

logger = structlog.get_logger(__name__)


class StockLedger:
    def __init__(self, max_retries=None):
        self.max_retries = max_retries or get_settings().ledger_max_retries

    # -------------------------------------------------------------------
    # Atomic operations
    # -------------------------------------------------------------------
    def reserve(self, tenant_id, variant_id, quantity, actor="checkout", reference=None):
        """Hold ``quantity`` units iff they are available; raises InsufficientStock otherwise."""

        def change(variant):
            variant.reserve(quantity)
            return 0, quantity

        variant = self._apply(tenant_id, variant_id, LedgerOperation.RESERVE, change, actor=actor, reference=reference)
        logger.info(
            "stock.reserved",
            tenant_id=str(tenant_id),
            variant_id=str(variant_id),
            quantity=quantity,
            reserved=variant.reserved,
            reference=reference,
        )
        return variant

    def release(self, tenant_id, variant_id, quantity, actor="checkout", reference=None, reason=None):
        """Give back held units, floored at zero."""

        def change(variant):
            held = variant.reserved
            released = variant.release(quantity)
            if released < quantity:
                logger.warning(
                    "stock.release_exceeds_reserved",
                    tenant_id=str(tenant_id),
                    variant_id=str(variant_id),
                    requested=quantity,
                    reserved=held,
                    reference=reference,
                )
            return 0, -released

        return self._apply(
            tenant_id, variant_id, LedgerOperation.RELEASE, change, actor=actor, reference=reference, reason=reason
        )

    def finalize(self, tenant_id, variant_id, quantity, actor="settlement", reference=None):
        """Turn held units into a sale. Callers must gate this per order."""

        def change(variant):
            variant.finalize(quantity)
            return -quantity, -quantity

        return self._apply(tenant_id, variant_id, LedgerOperation.FINALIZE, change, actor=actor, reference=reference)

    def adjust(self, tenant_id, variant_id, delta, reason, actor):
        """Audited manual correction of on-hand stock. Never touches reserved."""

        def change(variant):
            variant.adjust(delta, reason, adjusted_by=actor)
            return delta, 0

        variant = self._apply(tenant_id, variant_id, LedgerOperation.ADJUST, change, actor=actor, reason=reason)
        logger.info(
            "stock.adjusted",
            tenant_id=str(tenant_id),
            variant_id=str(variant_id),
            delta=delta,
            stock=variant.stock,
            reason=reason,
            actor=actor,
        )
        return variant

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def stock_level(self, tenant_id, variant_id):
        variant = get_for_tenant(Variant, tenant_id, variant_id)
        return {
            "variant_id": str(variant.id),
            "stock": variant.stock,
            "reserved": variant.reserved,
            "available": variant.available,
        }

    def history(self, tenant_id, variant_id, limit=100):
        """Audit entries for a variant, newest first."""
        get_for_tenant(Variant, tenant_id, variant_id)
        entries = find_for_tenant(StockAuditEntry, tenant_id, variant_id=str(variant_id))
        return sorted(entries, key=lambda entry: entry.recorded_at, reverse=True)[:limit]

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _apply(self, tenant_id, variant_id, operation, change, actor=None, reference=None, reason=None):
        variant_repo = current_domain.repository_for(Variant)
        audit_repo = current_domain.repository_for(StockAuditEntry)

        attempt = 0
        while True:
            attempt += 1
            with variant_locks.hold(variant_id):
                variant = get_for_tenant(Variant, tenant_id, variant_id)
                stock_delta, reserved_delta = change(variant)
                entry = StockAuditEntry.record(
                    tenant_id=tenant_id,
                    variant_id=variant_id,
                    operation=operation,
                    stock_delta=stock_delta,
                    reserved_delta=reserved_delta,
                    reason=reason,
                    actor=actor,
                    reference=reference,
                )
                try:
                    with UnitOfWork():
                        variant_repo.add(variant)
                        audit_repo.add(entry)
                except ExpectedVersionError:
                    if attempt >= self.max_retries:
                        logger.error(
                            "stock.version_conflict_exhausted",
                            tenant_id=str(tenant_id),
                            variant_id=str(variant_id),
                            operation=operation.value,
                            attempts=attempt,
                        )
                        raise
                    logger.warning(
                        "stock.version_conflict",
                        tenant_id=str(tenant_id),
                        variant_id=str(variant_id),
                        operation=operation.value,
                        attempt=attempt,
                    )
                    continue
                return variant
