import json
from uuid import uuid4

import pytest
from protean.integrations.pytest import DomainFixture

TENANT = "tenant-north"
OTHER_TENANT = "tenant-south"


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture
def tenant_id():
    return TENANT


@pytest.fixture
def other_tenant_id():
    return OTHER_TENANT


@pytest.fixture
def ledger():
    from storefront.stock.ledger import StockLedger

    return StockLedger()


@pytest.fixture
def make_variant():
    """Register and persist a variant; returns its id."""
    from protean import current_domain
    from storefront.stock.variant import Variant

    def _make(stock=10, price=2500, tenant_id=TENANT, sku=None, title="Linen Shirt"):
        variant = Variant.register(
            tenant_id=tenant_id,
            sku=sku or f"SKU-{uuid4().hex[:8].upper()}",
            title=title,
            price=price,
            stock=stock,
        )
        current_domain.repository_for(Variant).add(variant)
        return str(variant.id)

    return _make


@pytest.fixture
def variant_of():
    """Reload a variant from the repository."""
    from protean import current_domain
    from storefront.stock.variant import Variant

    def _load(variant_id):
        return current_domain.repository_for(Variant).get(variant_id)

    return _load


@pytest.fixture
def order_of():
    from protean import current_domain
    from storefront.order.order import Order

    def _load(order_id):
        return current_domain.repository_for(Order).get(order_id)

    return _load


@pytest.fixture
def address():
    return {
        "name": "Ada Shopper",
        "line1": "10 Water St",
        "city": "Toronto",
        "province": "ON",
        "postal_code": "M5V 2T6",
        "country": "CA",
    }


@pytest.fixture
def notifier():
    from storefront.notification import get_notifier

    return get_notifier()


@pytest.fixture
def card_rail():
    from storefront.payment.rails import CARD, get_rail

    return get_rail(CARD)


@pytest.fixture
def crypto_rail():
    from storefront.payment.rails import CRYPTO, get_rail

    return get_rail(CRYPTO)


@pytest.fixture
def place_order(ledger, address):
    """Run a full checkout; returns the CheckoutResult."""
    from storefront.checkout.saga import CheckoutSaga

    def _place(lines, tenant_id=TENANT, rail="card", shipping_method=None):
        return CheckoutSaga(ledger=ledger).place_order(
            tenant_id=tenant_id,
            customer_id="cust-001",
            customer_email="ada@example.com",
            lines=lines,
            shipping_address=address,
            shipping_method=shipping_method,
            rail=rail,
        )

    return _place


@pytest.fixture
def card_event():
    """Build a card webhook event body for a payment intent."""

    def _event(event_type, reference, order_id=None):
        return {
            "id": f"evt_{uuid4().hex[:12]}",
            "type": event_type,
            "data": {
                "object": {
                    "id": reference,
                    "status": event_type.split(".")[-1],
                    "metadata": {"order_id": order_id} if order_id else {},
                }
            },
        }

    return _event


@pytest.fixture
def settle(ledger):
    """Verify and settle a raw callback body the way the webhook routes do."""
    from storefront.payment.rails import get_rail
    from storefront.payment.rails.fake_adapter import TEST_SIGNATURE
    from storefront.settlement.handler import SettlementHandler

    def _settle(rail_name, body, tenant_id=TENANT):
        callback = get_rail(rail_name).verify_callback(json.dumps(body).encode("utf-8"), TEST_SIGNATURE)
        return SettlementHandler(ledger=ledger).settle(tenant_id, rail_name, callback)

    return _settle
