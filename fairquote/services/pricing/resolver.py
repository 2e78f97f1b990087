"""
Rate resolution for canonical service keys.

Chooses the best available estimate, first applicable wins:
1. crowd statistics, once an entry has enough quotes
2. the entry's curated baseline range
3. the static heuristic table
"""

import math

from fairquote.services.pricing.catalog_store import CatalogLookup
from fairquote.services.pricing.domain import CatalogEntry, RateEstimate
from fairquote.services.pricing.heuristics import heuristic_rate
from fairquote.services.pricing.normalizer import normalize
from fairquote.services.pricing.statistics import MIN_BAND_SAMPLES, band
from fairquote.utils.logging import ServiceLogger

SOURCE_USER_QUOTES = "catalog:user_quotes"
SOURCE_BASE_RANGE = "catalog:base_range"
SOURCE_HEURISTIC = "heuristic"


class RateResolver:
    """
    Resolve price estimates for service keys.

    The catalog is optional: with no lookup bound, every key resolves from
    the heuristic table. Resolution never raises.
    """

    def __init__(
        self,
        catalog: CatalogLookup | None = None,
        *,
        default_currency: str = "USD",
        min_crowd_quotes: int = MIN_BAND_SAMPLES,
    ):
        self.catalog = catalog
        self.default_currency = default_currency
        self.min_crowd_quotes = min_crowd_quotes
        self.logger = ServiceLogger("rate_resolver")

    async def resolve(
        self,
        region: str | None,
        key: str,
        label: str | None = None,
    ) -> RateEstimate:
        """
        Resolve the best available estimate for a key.

        Args:
            region: Catalog region; None for the default region
            key: Service key or free-text label; normalized before lookup
            label: Display label for the result

        Returns:
            RateEstimate tagged with its source and currency
        """
        key = normalize(key or label)
        entry = await self._lookup(region, key)
        if entry is not None:
            estimate = self.from_entry(entry, label)
            if estimate is not None:
                return estimate
        return self.heuristic(key, label)

    def from_entry(self, entry: CatalogEntry, label: str | None = None) -> RateEstimate | None:
        """Estimate from catalog data alone, or None when the entry has neither tier."""
        prices = [p for p in entry.prices if math.isfinite(p) and p > 0]
        display = entry.label or label or entry.key
        currency = entry.currency or self.default_currency

        stats = band(prices, minimum=self.min_crowd_quotes)
        if stats is not None:
            return RateEstimate(
                key=entry.key,
                label=display,
                avg_price=round(stats.median, 2),
                range_min=max(0.0, round(stats.p25, 2)),
                range_max=round(stats.p75, 2),
                standard_hours=entry.standard_hours,
                currency=currency,
                source=SOURCE_USER_QUOTES,
                quotes_count=len(prices),
            )

        if entry.base_range is not None:
            return RateEstimate(
                key=entry.key,
                label=display,
                avg_price=round(entry.base_range.midpoint, 2),
                range_min=entry.base_range.min,
                range_max=entry.base_range.max,
                standard_hours=entry.standard_hours,
                currency=currency,
                source=SOURCE_BASE_RANGE,
                quotes_count=len(prices),
            )
        return None

    def heuristic(self, key: str, label: str | None = None) -> RateEstimate:
        row = heuristic_rate(key)
        return RateEstimate(
            key=key,
            label=label or key,
            avg_price=row.avg,
            range_min=row.min,
            range_max=row.max,
            standard_hours=row.standard_hours,
            currency=self.default_currency,
            source=SOURCE_HEURISTIC,
        )

    async def _lookup(self, region: str | None, key: str) -> CatalogEntry | None:
        if self.catalog is None:
            return None
        try:
            return await self.catalog.get(region, key)
        except Exception as e:
            # Pricing estimates degrade to the heuristic table on any store failure
            self.logger.log_degraded(
                "catalog_lookup",
                reason=f"{type(e).__name__}: {e}",
                key=key,
                region=region,
            )
            return None
