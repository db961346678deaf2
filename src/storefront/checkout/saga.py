"""Checkout saga: cart → reservation → pending order → external payment.

Each step is durable on its own; the saga stays all-or-nothing by running
compensation from every failure branch before the error reaches the caller:

    reservation fails      → coordinator releases the reserved prefix
    order creation fails   → release every reservation
    payment open fails     → delete the order, release every reservation

If a release fails during compensation the saga raises
ReservationCompensationFailure instead of the triggering error; the
affected variants have been logged for an operator.
"""

from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.checkout.reservation import ReservationCoordinator
from storefront.exceptions import PaymentInitError, ReservationCompensationFailure
from storefront.order.order import Order
from storefront.payment.bridge import PaymentBridge
from storefront.payment.rails import CARD, RAILS
from storefront.payment.rails.port import PaymentHandle
from storefront.quote import get_quote_engine
from storefront.quote.port import Quote
from storefront.stock.ledger import StockLedger
from storefront.utils.tenancy import delete_for_tenant

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = ("name", "line1", "line2", "city", "province", "postal_code", "country")
REQUIRED_ADDRESS_FIELDS = ("name", "line1", "city", "province", "postal_code", "country")


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    payment: PaymentHandle
    quote: Quote


def normalize_cart(lines):
    """Validate cart lines and merge repeated variants, keeping first-seen order.

    Accepts ``(variant_id, quantity)`` pairs or dicts with those keys.
    """
    if not lines:
        raise ValidationError({"items": ["Cart is empty"]})

    merged: dict[str, int] = {}
    for position, line in enumerate(lines):
        if isinstance(line, dict):
            variant_id, quantity = line.get("variant_id"), line.get("quantity")
        else:
            variant_id, quantity = line

        if not variant_id:
            raise ValidationError({"items": [f"Line {position + 1} is missing a variant"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"items": [f"Line {position + 1} must have a positive quantity"]})

        merged[str(variant_id)] = merged.get(str(variant_id), 0) + quantity

    return list(merged.items())


def normalize_address(address):
    if not isinstance(address, dict):
        raise ValidationError({"shipping_address": ["Shipping address is required"]})

    errors = {}
    cleaned = {}
    for field_name in ADDRESS_FIELDS:
        value = address.get(field_name)
        value = value.strip() if isinstance(value, str) else value
        if field_name in REQUIRED_ADDRESS_FIELDS and not value:
            errors[field_name] = ["is required"]
        cleaned[field_name] = value or None

    if errors:
        raise ValidationError(errors)

    cleaned["country"] = cleaned["country"].upper()
    cleaned["province"] = cleaned["province"].upper()
    return cleaned


class CheckoutSaga:
    def __init__(self, ledger=None, bridge=None, quote_engine=None):
        self.ledger = ledger or StockLedger()
        self.coordinator = ReservationCoordinator(self.ledger)
        self.bridge = bridge or PaymentBridge()
        self.quote_engine = quote_engine

    def place_order(
        self,
        tenant_id,
        customer_id,
        lines,
        shipping_address,
        shipping_method=None,
        rail=CARD,
        customer_email=None,
    ):
        if not tenant_id:
            raise ValidationError({"tenant_id": ["Tenant is required"]})
        if rail not in RAILS:
            raise ValidationError({"payment_rail": [f"Unsupported payment rail {rail}"]})

        cart = normalize_cart(lines)
        address = normalize_address(shipping_address)
        quote_engine = self.quote_engine or get_quote_engine()
        quote = quote_engine.quote(tenant_id, cart, address, shipping_method)

        order_id = str(uuid4())
        log = logger.bind(tenant_id=str(tenant_id), order_id=order_id, rail=rail)

        # Step 1: hold stock (compensates itself on failure)
        reservation = self.coordinator.reserve_all(tenant_id, cart, reference=order_id)

        # Step 2: durable pending order
        try:
            order = Order.place(
                tenant_id=tenant_id,
                customer_id=customer_id,
                customer_email=customer_email,
                items_data=[
                    {
                        "variant_id": line.variant_id,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                        "sku": line.sku,
                        "title": line.title,
                    }
                    for line in quote.lines
                ],
                shipping_address=address,
                shipping_method=quote.selected_method,
                totals=quote.totals(),
                currency=quote.currency,
                order_id=order_id,
            )
            current_domain.repository_for(Order).add(order)
        except Exception as exc:
            log.error("checkout.order_create_failed", error=str(exc))
            self._compensate(reservation, exc, reason="order_create_failed")
            raise

        # Step 3: external payment
        try:
            handle = self.bridge.open(tenant_id, order, rail)
        except PaymentInitError as exc:
            log.warning("checkout.payment_init_failed", reason=exc.reason)
            self._discard(order, log)
            self._compensate(reservation, exc, reason="payment_init_failed")
            raise

        log.info("checkout.order_placed", total=quote.total, reference=handle.reference)
        return CheckoutResult(order_id=order_id, payment=handle, quote=quote)

    @staticmethod
    def _compensate(reservation, error, reason):
        try:
            reservation.compensate(reason=reason)
        except ReservationCompensationFailure as failure:
            raise failure from error

    @staticmethod
    def _discard(order, log):
        """Delete the just-created order and its items."""
        try:
            delete_for_tenant(Order, order.tenant_id, order.id, children="items")
        except Exception as exc:
            log.critical("checkout.order_discard_failed", error=str(exc))
            return
        log.info("checkout.order_discarded")
