"""Quote engine registry.

The storefront prices carts through a single QuoteEngine instance; tests and
alternative pricing backends swap it with ``set_quote_engine``.
"""

_engine = None


def get_quote_engine():
    """Return the configured quote engine (singleton)."""
    global _engine
    if _engine is None:
        from storefront.quote.standard import StandardQuoteEngine

        _engine = StandardQuoteEngine()
    return _engine


def set_quote_engine(engine):
    global _engine
    _engine = engine


def reset_quote_engine():
    """Reset the quote engine singleton (useful for testing)."""
    global _engine
    _engine = None
