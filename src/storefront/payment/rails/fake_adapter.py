"""Fake payment rails for testing and local development.

Both fakes accept the signature ``test-signature`` and record every payment
they open. ``configure(should_succeed=False)`` makes ``open_payment`` fail
the way a provider outage would.
"""

import json
from uuid import uuid4

from storefront.exceptions import InvalidCallbackSignature, PaymentInitError
from storefront.payment.rails.card import CardRail
from storefront.payment.rails.crypto import CryptoRail
from storefront.payment.rails.port import PaymentHandle, RailCallback

TEST_SIGNATURE = "test-signature"


class _FakeRailMixin:
    def _init_fake(self):
        self.should_succeed = True
        self.failure_reason = "Provider unavailable"
        self.opened: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Provider unavailable"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def reset(self):
        self.opened.clear()
        self.should_succeed = True
        self.failure_reason = "Provider unavailable"

    def _open(self, tenant_id, order, prefix):
        if not self.should_succeed:
            raise PaymentInitError(self.name, self.failure_reason)

        reference = f"{prefix}_{uuid4().hex[:16]}"
        self.opened.append(
            {
                "tenant_id": str(tenant_id),
                "order_id": str(order.id),
                "amount": order.total,
                "reference": reference,
            }
        )
        return reference

    def _parse(self, payload, signature):
        if signature != TEST_SIGNATURE:
            raise InvalidCallbackSignature(self.name)
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise InvalidCallbackSignature(self.name, "Malformed payload") from exc


class FakeCardRail(_FakeRailMixin, CardRail):
    def __init__(self):
        self._init_fake()

    def open_payment(self, tenant_id: str, order) -> PaymentHandle:
        reference = self._open(tenant_id, order, "pi")
        return PaymentHandle(
            rail=self.name,
            reference=reference,
            client_secret=f"{reference}_secret_{uuid4().hex[:8]}",
            initial_status="requires_payment_method",
        )

    def verify_callback(self, payload: bytes, signature: str) -> RailCallback:
        return self.callback_from_event(self._parse(payload, signature))


class FakeCryptoRail(_FakeRailMixin, CryptoRail):
    def __init__(self):
        super().__init__(ipn_secret="")
        self._init_fake()

    def open_payment(self, tenant_id: str, order) -> PaymentHandle:
        reference = self._open(tenant_id, order, "inv")
        return PaymentHandle(
            rail=self.name,
            reference=reference,
            payment_url=f"https://nowpayments.example/invoice/{reference}",
            initial_status="waiting",
        )

    def verify_callback(self, payload: bytes, signature: str) -> RailCallback:
        return self.callback_from_ipn(self._parse(payload, signature))
