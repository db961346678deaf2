"""Payment rail registry: one adapter per rail.

Fake rails are used in tests and whenever provider credentials are absent;
with credentials configured the Stripe and NOWPayments adapters are built.
"""

from storefront.config import get_settings

CARD = "card"
CRYPTO = "crypto"
RAILS = (CARD, CRYPTO)

_rail_instances: dict[str, object] = {}


def _build(name: str):
    settings = get_settings()
    use_fakes = settings.environment == "test"

    if name == CARD:
        if use_fakes or not settings.stripe_secret_key:
            from storefront.payment.rails.fake_adapter import FakeCardRail

            return FakeCardRail()
        from storefront.payment.rails.stripe_adapter import StripeCardRail

        return StripeCardRail(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.currency,
        )

    if name == CRYPTO:
        if use_fakes or not settings.nowpayments_api_key:
            from storefront.payment.rails.fake_adapter import FakeCryptoRail

            return FakeCryptoRail()
        from storefront.payment.rails.nowpayments_adapter import NowPaymentsCryptoRail

        return NowPaymentsCryptoRail(
            api_key=settings.nowpayments_api_key,
            ipn_secret=settings.nowpayments_ipn_secret,
            store_base_url=settings.store_base_url,
            api_url=settings.nowpayments_api_url,
        )

    raise ValueError(f"Unknown payment rail: {name}")


def get_rail(name: str):
    """Return the configured adapter for a rail (singleton per rail)."""
    if name not in _rail_instances:
        _rail_instances[name] = _build(name)
    return _rail_instances[name]


def set_rail(name: str, rail) -> None:
    """Replace a rail adapter (useful for testing)."""
    _rail_instances[name] = rail


def reset_rails() -> None:
    """Reset all rail singletons (useful for testing)."""
    _rail_instances.clear()
