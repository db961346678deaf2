"""Fire-and-forget notification dispatch for order transitions."""

import structlog

from storefront.notification import get_notifier
from storefront.notification.port import OrderNotification

logger = structlog.get_logger(__name__)


def dispatch(notification: OrderNotification, tenant_id, order) -> bool:
    """Hand a notification to the notifier. Failures are logged, never raised."""
    try:
        get_notifier().notify(notification, tenant_id, order)
    except Exception as exc:
        logger.error(
            "notification.dispatch_failed",
            notification=notification.value,
            tenant_id=str(tenant_id),
            order_id=str(order.id),
            error=str(exc),
        )
        return False
    return True
