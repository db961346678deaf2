"""Storefront FastAPI application.

Single-domain web server: checkout, payment provider callbacks, staff order
operations and stock administration. Every request runs inside the
storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the payment rail and notifier wiring:
#   - "test"       → fake rails, fake notifier
#   - "production" → Stripe / NOWPayments, logging notifier
from storefront.domain import storefront  # noqa: E402

storefront.init()

from storefront.api.app import create_app  # noqa: E402

app = create_app()
