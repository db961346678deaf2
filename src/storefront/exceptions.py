"""Storefront error taxonomy.

``InsufficientStock`` and ``InvalidTransition`` are client-facing validation
failures and subclass Protean's ``ValidationError`` so they carry the usual
``messages`` dict. The remaining errors signal infrastructure trouble.
"""

from protean.exceptions import ValidationError


class InsufficientStock(ValidationError):
    """A variant cannot cover the requested quantity."""

    def __init__(self, variant_id, requested, available):
        self.variant_id = str(variant_id)
        self.requested = requested
        self.available = available
        super().__init__(
            {
                "variant_id": [
                    f"Insufficient stock for variant {variant_id}: {available} available, {requested} requested"
                ]
            }
        )


class InvalidTransition(ValidationError):
    """An order was asked to move to a status its current status does not allow."""

    def __init__(self, order_id, current, target):
        self.order_id = str(order_id)
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


class PaymentInitError(Exception):
    """The payment provider could not open a payment for an order."""

    def __init__(self, rail, reason):
        self.rail = rail
        self.reason = reason
        super().__init__(f"Could not open {rail} payment: {reason}")


class ReservationCompensationFailure(Exception):
    """Releasing a reservation during cleanup failed; `reserved` stays inflated.

    ``entries`` holds ``(variant_id, quantity, error)`` for every release that
    could not be applied. No automatic retry happens; an operator must
    reconcile the listed variants.
    """

    def __init__(self, entries):
        self.entries = list(entries)
        variants = ", ".join(f"{variant_id} x{quantity}" for variant_id, quantity, _ in self.entries)
        super().__init__(f"Reservation compensation failed for: {variants}")


class InvalidCallbackSignature(Exception):
    """A settlement callback failed authenticity verification."""

    def __init__(self, rail, reason="Invalid signature"):
        self.rail = rail
        self.reason = reason
        super().__init__(f"{rail} callback rejected: {reason}")
