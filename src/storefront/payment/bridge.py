"""Payment Bridge: opens the external payment for a pending order.

The bridge never marks an order paid; it only correlates the order with the
provider's reference so the settlement callback can find it later.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.exceptions import PaymentInitError
from storefront.order.order import Order
from storefront.payment.rails import RAILS, get_rail
from storefront.utils.locks import order_locks

logger = structlog.get_logger(__name__)


class PaymentBridge:
    def open(self, tenant_id, order, rail_name):
        """Open a payment sized to ``order.total`` and record its reference on the order.

        Any provider failure, including failing to persist the reference,
        surfaces as PaymentInitError so the caller can run compensation.
        """
        if rail_name not in RAILS:
            raise PaymentInitError(rail_name, "Unsupported payment rail")

        rail = get_rail(rail_name)
        try:
            handle = rail.open_payment(tenant_id, order)
        except PaymentInitError:
            raise
        except Exception as exc:
            logger.error(
                "payment.open_failed",
                tenant_id=str(tenant_id),
                order_id=str(order.id),
                rail=rail_name,
                error=str(exc),
            )
            raise PaymentInitError(rail_name, "Payment provider error") from exc

        try:
            with order_locks.hold(order.id):
                repo = current_domain.repository_for(Order)
                persisted = repo.get(order.id)
                persisted.attach_payment(handle.rail, handle.reference, handle.initial_status)
                repo.add(persisted)
        except Exception as exc:
            logger.error(
                "payment.reference_not_recorded",
                tenant_id=str(tenant_id),
                order_id=str(order.id),
                rail=rail_name,
                reference=handle.reference,
                error=str(exc),
            )
            raise PaymentInitError(rail_name, "Could not record payment reference") from exc

        logger.info(
            "payment.opened",
            tenant_id=str(tenant_id),
            order_id=str(order.id),
            rail=rail_name,
            reference=handle.reference,
            amount=order.total,
        )
        return handle
