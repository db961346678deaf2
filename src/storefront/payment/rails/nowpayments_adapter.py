"""NOWPayments crypto rail: hosted invoices over the REST API via requests."""

from decimal import Decimal

import requests
import structlog

from storefront.exceptions import PaymentInitError
from storefront.payment.rails.crypto import CryptoRail
from storefront.payment.rails.port import PaymentHandle

logger = structlog.get_logger(__name__)

ORDER_DESCRIPTION_LIMIT = 150


class NowPaymentsCryptoRail(CryptoRail):
    def __init__(
        self,
        api_key: str,
        ipn_secret: str,
        store_base_url: str,
        api_url: str = "https://api.nowpayments.io/v1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        super().__init__(ipn_secret)
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.store_base_url = store_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def invoice_request(self, tenant_id: str, order) -> dict:
        description = f"Order {order.id}"
        return {
            "price_amount": float(Decimal(order.total) / 100),
            "price_currency": (order.currency or "cad").lower(),
            "order_id": str(order.id),
            "order_description": description[:ORDER_DESCRIPTION_LIMIT],
            "ipn_callback_url": f"{self.store_base_url}/payments/crypto/webhook?tenant_id={tenant_id}",
            "success_url": f"{self.store_base_url}/checkout/success?order_id={order.id}",
            "cancel_url": f"{self.store_base_url}/checkout/cancelled?order_id={order.id}",
        }

    def open_payment(self, tenant_id: str, order) -> PaymentHandle:
        try:
            response = self.session.post(
                f"{self.api_url}/invoice",
                json=self.invoice_request(tenant_id, order),
                headers={"x-api-key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            invoice = response.json()
        except requests.RequestException as exc:
            logger.error(
                "nowpayments.invoice_failed",
                tenant_id=str(tenant_id),
                order_id=str(order.id),
                error=str(exc),
            )
            raise PaymentInitError(self.name, "Crypto payment provider unavailable") from exc
        except ValueError as exc:
            raise PaymentInitError(self.name, "Malformed invoice response") from exc

        if not isinstance(invoice, dict) or not invoice.get("id") or not invoice.get("invoice_url"):
            raise PaymentInitError(self.name, "Malformed invoice response")

        return PaymentHandle(
            rail=self.name,
            reference=str(invoice["id"]),
            payment_url=invoice["invoice_url"],
            initial_status="waiting",
        )
