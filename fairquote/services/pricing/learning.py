"""
Crowd-learning writer.

Appends assessed quotes to the catalog. Learning is best-effort: invalid
input is skipped and storage failures are logged, never raised, so the
primary price-fairness answer is never blocked by it.
"""

import math

from fairquote.services.pricing.catalog_store import CatalogStore
from fairquote.services.pricing.domain import (
    Assessment,
    AssessmentSnapshot,
    CatalogEntry,
    QuoteContext,
    UserQuote,
)
from fairquote.utils.logging import ServiceLogger


class CrowdLearningWriter:
    """Record user quotes, with optional AI snapshots, into the catalog."""

    def __init__(self, store: CatalogStore, *, default_region: str = "GLOBAL"):
        self.store = store
        self.default_region = default_region
        self.logger = ServiceLogger("crowd_learning")

    async def record_quote(
        self,
        region: str | None,
        key: str,
        price: float,
        context: QuoteContext | None = None,
        assessment: Assessment | AssessmentSnapshot | None = None,
        *,
        label: str | None = None,
        currency: str | None = None,
    ) -> CatalogEntry | None:
        """
        Append one quote to the catalog entry for (region, key).

        Non-positive or non-finite prices and empty keys are ignored.

        Returns:
            The updated entry, or None if the quote was skipped or lost
        """
        if not key:
            return None
        try:
            price = float(price)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(price) or price <= 0:
            return None

        if isinstance(assessment, Assessment):
            assessment = AssessmentSnapshot.from_assessment(assessment)

        region = region or self.default_region
        quote = UserQuote.from_context(price, context, assessment)
        try:
            entry = await self.store.upsert_quote(
                region,
                key,
                quote,
                label=label,
                currency=currency,
            )
        except Exception as e:
            # StorageUnavailable or a raw driver error; either loses only this quote
            self.logger.log_operation_failed("record_quote", e, region=region, key=key)
            return None

        self.logger.log_operation_complete(
            "record_quote",
            region=region,
            key=key,
            quotes_count=entry.rollups.quotes_count,
        )
        return entry
