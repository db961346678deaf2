"""Notifier that emits a structured log line per notification.

The delivery service tails these entries; rendering and sending emails is
outside the storefront.
"""

import structlog

from storefront.notification.port import OrderNotification, OrderNotifier

logger = structlog.get_logger(__name__)


class LoggingNotifier(OrderNotifier):
    def notify(self, notification: OrderNotification, tenant_id: str, order) -> None:
        logger.info(
            "notification.requested",
            notification=notification.value,
            tenant_id=str(tenant_id),
            order_id=str(order.id),
            customer_email=order.customer_email,
            status=order.status,
            tracking_number=order.tracking_number,
        )
