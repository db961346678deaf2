"""Notifier port: abstract interface for order notifications."""

from abc import ABC, abstractmethod
from enum import Enum


class OrderNotification(Enum):
    ORDER_PAID = "order_paid"
    ORDER_SHIPPED = "order_shipped"
    ORDER_CANCELLED = "order_cancelled"


class OrderNotifier(ABC):
    """Abstract interface for order notification adapters."""

    @abstractmethod
    def notify(self, notification: OrderNotification, tenant_id: str, order) -> None:
        """Deliver (or enqueue) a notification about ``order``.

        Adapters may raise; callers go through ``dispatch`` which never lets
        a notification failure affect the order.
        """
        ...
