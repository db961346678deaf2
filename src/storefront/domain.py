"""Storefront bounded context: stock ledger, checkout saga and order lifecycle.

Variants carry the stock/reserved counters that concurrent checkouts contend
over. Orders move through a small state machine driven by payment settlement
callbacks and staff fulfillment operations.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
