"""Reservation Coordinator: all-or-nothing stock holds for one checkout.

Each ``reserve`` is atomic on its own; the set is made all-or-nothing by
walking the already-reserved prefix backwards and releasing it whenever a
later step fails. The ReservationSet is that compensation log and lives
only for the duration of the checkout call.
"""

from dataclasses import dataclass, field

import structlog

from storefront.exceptions import InsufficientStock, ReservationCompensationFailure
from storefront.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@dataclass
class ReservationSet:
    tenant_id: str
    reference: str
    ledger: StockLedger
    entries: list[tuple[str, int]] = field(default_factory=list)
    compensated: bool = False

    def record(self, variant_id, quantity):
        self.entries.append((str(variant_id), quantity))

    def compensate(self, reason="checkout_failed"):
        """Release every held entry in reverse order.

        Every entry is attempted even if an earlier release fails. Failed
        releases are logged as critical and raised together as
        ReservationCompensationFailure; nothing retries them.
        """
        if self.compensated:
            return
        self.compensated = True

        failures = []
        for variant_id, quantity in reversed(self.entries):
            try:
                self.ledger.release(
                    self.tenant_id,
                    variant_id,
                    quantity,
                    actor="checkout",
                    reference=self.reference,
                    reason=reason,
                )
            except Exception as exc:
                logger.critical(
                    "reservation.compensation_failed",
                    tenant_id=str(self.tenant_id),
                    variant_id=variant_id,
                    quantity=quantity,
                    reference=self.reference,
                    error=str(exc),
                )
                failures.append((variant_id, quantity, exc))

        logger.info(
            "reservation.compensated",
            tenant_id=str(self.tenant_id),
            reference=self.reference,
            released=len(self.entries) - len(failures),
            failed=len(failures),
            reason=reason,
        )
        if failures:
            raise ReservationCompensationFailure(failures)


class ReservationCoordinator:
    def __init__(self, ledger=None):
        self.ledger = ledger or StockLedger()

    def reserve_all(self, tenant_id, lines, reference):
        """Reserve ``lines`` of ``(variant_id, quantity)`` in the order given.

        Returns the ReservationSet on success. On the first failure the
        reserved prefix is compensated and the failure is re-raised; if the
        compensation itself fails, ReservationCompensationFailure is raised
        chained from the original error.
        """
        reservation = ReservationSet(tenant_id=tenant_id, reference=reference, ledger=self.ledger)
        for variant_id, quantity in lines:
            try:
                self.ledger.reserve(tenant_id, variant_id, quantity, actor="checkout", reference=reference)
            except Exception as exc:
                if isinstance(exc, InsufficientStock):
                    logger.info(
                        "reservation.insufficient_stock",
                        tenant_id=str(tenant_id),
                        variant_id=str(variant_id),
                        requested=exc.requested,
                        available=exc.available,
                        reference=reference,
                    )
                else:
                    logger.error(
                        "reservation.reserve_failed",
                        tenant_id=str(tenant_id),
                        variant_id=str(variant_id),
                        reference=reference,
                        error=str(exc),
                    )
                try:
                    reservation.compensate(reason="reservation_failed")
                except ReservationCompensationFailure as failure:
                    raise failure from exc
                raise
            reservation.record(variant_id, quantity)

        return reservation
