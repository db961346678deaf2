"""Card rail: payment intents confirmed by webhook events.

The shopper completes the card payment client-side with the returned
client secret; the order only becomes paid when the provider's
``payment_intent.succeeded`` event arrives.
"""

from storefront.payment.rails.port import PaymentRail, RailCallback, SettlementOutcome


class CardRail(PaymentRail):
    name = "card"
    status_map = {
        "payment_intent.succeeded": SettlementOutcome.SUCCEEDED,
        "payment_intent.payment_failed": SettlementOutcome.FAILED,
        "payment_intent.canceled": SettlementOutcome.FAILED,
        "payment_intent.created": SettlementOutcome.INTERMEDIATE,
        "payment_intent.processing": SettlementOutcome.INTERMEDIATE,
        "payment_intent.requires_action": SettlementOutcome.INTERMEDIATE,
    }

    @staticmethod
    def callback_from_event(event) -> RailCallback:
        """Reduce a webhook event (``{"type", "data": {"object": {...}}}``) to a RailCallback."""
        intent = event["data"]["object"]
        metadata = intent.get("metadata") or {}
        return RailCallback(
            provider_status=event["type"],
            reference=intent.get("id"),
            order_id=metadata.get("order_id"),
            details={
                "event_id": event.get("id"),
                "intent_status": intent.get("status"),
                "amount": intent.get("amount"),
            },
        )
