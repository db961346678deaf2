"""Crypto rail: hosted invoices confirmed through multi-stage IPN callbacks.

Between invoice creation and a terminal status the provider reports
``waiting → confirming → sending/partially_paid``. Those stages are kept on
the order as its rail status and never move the primary status.
"""

import hashlib
import hmac
import json

from storefront.exceptions import InvalidCallbackSignature
from storefront.payment.rails.port import PaymentRail, RailCallback, SettlementOutcome


def ipn_signature(payload: dict, secret: str) -> str:
    """HMAC-SHA512 over the payload serialized with sorted keys and no whitespace."""
    message = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()


class CryptoRail(PaymentRail):
    name = "crypto"
    status_map = {
        "finished": SettlementOutcome.SUCCEEDED,
        "confirmed": SettlementOutcome.SUCCEEDED,
        "failed": SettlementOutcome.FAILED,
        "expired": SettlementOutcome.FAILED,
        "refunded": SettlementOutcome.FAILED,
        "waiting": SettlementOutcome.INTERMEDIATE,
        "confirming": SettlementOutcome.INTERMEDIATE,
        "sending": SettlementOutcome.INTERMEDIATE,
        "partially_paid": SettlementOutcome.INTERMEDIATE,
    }

    def __init__(self, ipn_secret: str):
        self.ipn_secret = ipn_secret

    def verify_callback(self, payload: bytes, signature: str) -> RailCallback:
        if not signature:
            raise InvalidCallbackSignature(self.name, "Missing signature")
        try:
            body = json.loads(payload)
        except ValueError as exc:
            raise InvalidCallbackSignature(self.name, "Malformed payload") from exc
        if not isinstance(body, dict):
            raise InvalidCallbackSignature(self.name, "Malformed payload")

        if not self.signature_matches(body, signature):
            raise InvalidCallbackSignature(self.name)
        return self.callback_from_ipn(body)

    def signature_matches(self, body: dict, signature: str) -> bool:
        return hmac.compare_digest(ipn_signature(body, self.ipn_secret), signature)

    @staticmethod
    def callback_from_ipn(body: dict) -> RailCallback:
        invoice_id = body.get("invoice_id")
        order_id = body.get("order_id")
        return RailCallback(
            provider_status=str(body.get("payment_status") or ""),
            reference=str(invoice_id) if invoice_id is not None else None,
            order_id=str(order_id) if order_id is not None else None,
            details={
                "payment_id": body.get("payment_id"),
                "pay_currency": body.get("pay_currency"),
                "actually_paid": body.get("actually_paid"),
            },
        )
