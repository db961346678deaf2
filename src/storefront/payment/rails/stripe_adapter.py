"""Stripe card rail: payment intents and signed webhook events via stripe-python."""

import json

import structlog
import stripe

from storefront.exceptions import InvalidCallbackSignature, PaymentInitError
from storefront.payment.rails.card import CardRail
from storefront.payment.rails.port import PaymentHandle, RailCallback

logger = structlog.get_logger(__name__)


class StripeCardRail(CardRail):
    def __init__(self, api_key: str, webhook_secret: str, currency: str = "cad"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def open_payment(self, tenant_id: str, order) -> PaymentHandle:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=order.total,
                currency=order.currency or self.currency,
                metadata={"order_id": str(order.id), "tenant_id": str(tenant_id)},
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"order-{order.id}",
            )
        except stripe.StripeError as exc:
            logger.error(
                "stripe.intent_failed",
                tenant_id=str(tenant_id),
                order_id=str(order.id),
                error=str(exc),
            )
            raise PaymentInitError(self.name, exc.user_message or str(exc)) from exc

        return PaymentHandle(
            rail=self.name,
            reference=intent["id"],
            client_secret=intent["client_secret"],
            initial_status=intent["status"],
        )

    def verify_callback(self, payload: bytes, signature: str) -> RailCallback:
        if not signature:
            raise InvalidCallbackSignature(self.name, "Missing signature")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise InvalidCallbackSignature(self.name, str(exc)) from exc
        # Parse the verified body ourselves so the mapping sees plain dicts
        return self.callback_from_event(json.loads(payload))
