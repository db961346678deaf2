"""Notifier registry: hands order transitions to the notification collaborator.

Tests and local development record notifications with the fake adapter;
other environments log them for the delivery service to pick up.
"""

import os

_notifier = None


def get_notifier():
    """Return the configured notifier (singleton)."""
    global _notifier
    if _notifier is None:
        if os.getenv("PROTEAN_ENV", "development") in ("production", "staging"):
            from storefront.notification.logging_notifier import LoggingNotifier

            _notifier = LoggingNotifier()
        else:
            from storefront.notification.fake_notifier import FakeNotifier

            _notifier = FakeNotifier()
    return _notifier


def set_notifier(notifier):
    global _notifier
    _notifier = notifier


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier
    _notifier = None
