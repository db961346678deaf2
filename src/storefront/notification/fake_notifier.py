"""Fake notifier: records notifications for testing."""

from storefront.notification.port import OrderNotification, OrderNotifier


class FakeNotifier(OrderNotifier):
    """Notifier that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, notification: OrderNotification, tenant_id: str, order) -> None:
        if not self.should_succeed:
            raise RuntimeError(self.failure_reason)

        self.sent.append(
            {
                "notification": notification.value,
                "tenant_id": str(tenant_id),
                "order_id": str(order.id),
                "customer_email": order.customer_email,
                "status": order.status,
            }
        )

    def sent_for(self, order_id) -> list[str]:
        return [record["notification"] for record in self.sent if record["order_id"] == str(order_id)]

    def reset(self):
        """Clear recorded notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
