"""API Routes for fairquote."""

from fairquote.api.routes import catalog, quotes, rates

__all__ = ["catalog", "quotes", "rates"]
