"""
Data models for fairquote.

SQLAlchemy ORM models for the service price catalog and its crowd quotes.
"""

from fairquote.models.catalog import CatalogUserQuote, ServicePriceEntry

__all__ = [
    "ServicePriceEntry",
    "CatalogUserQuote",
]
