"""
Catalog store for crowd-learned service prices.

Two implementations of the same capability:
- SqlCatalogStore: SQLAlchemy-backed, one transaction per operation, with
  optimistic version checks retried on conflict.
- InMemoryCatalogStore: per-key asyncio locks; used for the memory backend
  and in tests.

Every append recomputes the entry's rollups inside the same unit of work,
so a reader never sees a quote without its rollup update.
"""

import asyncio
import dataclasses
from collections import defaultdict
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from fairquote.database.base import get_db_session
from fairquote.models.catalog import CatalogUserQuote, ServicePriceEntry
from fairquote.services.pricing.domain import (
    AssessmentSnapshot,
    BaseRange,
    CatalogEntry,
    Decision,
    Rollups,
    UserQuote,
    compute_rollups,
)
from fairquote.services.pricing.errors import StorageUnavailable

# Raised when another writer committed first; safe to replay the unit of work
_WRITE_CONFLICTS = (StaleDataError, IntegrityError)

# Driver-level connection errors (asyncpg, aiosqlite) are not wrapped by SQLAlchemy
_STORAGE_FAILURES = (SQLAlchemyError, OSError, asyncio.TimeoutError)

# Jitter keeps writers that lost the same race from colliding again in lockstep
_conflict_retry = retry(
    stop=stop_after_attempt(10),
    wait=wait_exponential(multiplier=0.05, max=1) + wait_random(0, 0.1),
    retry=retry_if_exception_type(_WRITE_CONFLICTS),
    reraise=True,
)


class CatalogLookup(Protocol):
    """Read access to catalog entries."""

    async def get(self, region: str | None, key: str) -> CatalogEntry | None:
        ...


class CatalogStore(CatalogLookup, Protocol):
    """Read and write access to catalog entries."""

    async def upsert_quote(
        self,
        region: str | None,
        key: str,
        quote: UserQuote,
        *,
        label: str | None = None,
        currency: str | None = None,
    ) -> CatalogEntry:
        ...

    async def set_base_range(
        self,
        region: str | None,
        key: str,
        minimum: float,
        maximum: float,
        *,
        source: str = "curated",
        label: str | None = None,
        currency: str | None = None,
        standard_hours: float | None = None,
    ) -> CatalogEntry:
        ...


def normalize_region(region: str | None, default: str) -> str:
    return (region or "").strip().upper() or default


class SqlCatalogStore:
    """
    SQLAlchemy implementation of the catalog store.

    Each call opens its own session from the factory, so a store handle
    can be built per request without sharing transactions.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_region: str = "GLOBAL",
        default_currency: str = "USD",
    ):
        self.session_factory = session_factory
        self.default_region = default_region
        self.default_currency = default_currency

    async def get(self, region: str | None, key: str) -> CatalogEntry | None:
        region = normalize_region(region, self.default_region)
        try:
            async with get_db_session(self.session_factory) as session:
                row = await self._load(session, region, key)
                return _to_entry(row) if row else None
        except _STORAGE_FAILURES as e:
            raise StorageUnavailable(f"catalog read failed: {e}") from e

    async def upsert_quote(
        self,
        region: str | None,
        key: str,
        quote: UserQuote,
        *,
        label: str | None = None,
        currency: str | None = None,
    ) -> CatalogEntry:
        """
        Append a quote and recompute rollups atomically.

        Args:
            region: Catalog region; blank means the default region
            key: Canonical service key
            quote: Quote to append
            label: Display label used if the entry is created
            currency: Working currency used if the entry is created

        Returns:
            The entry as committed

        Raises:
            StorageUnavailable: On persistence failure or persistent contention
        """
        region = normalize_region(region, self.default_region)
        try:
            return await self._append_quote(region, key, quote, label, currency)
        except _WRITE_CONFLICTS as e:
            raise StorageUnavailable(
                f"catalog entry {region}/{key} kept changing under concurrent writes"
            ) from e
        except _STORAGE_FAILURES as e:
            raise StorageUnavailable(f"catalog write failed: {e}") from e

    async def set_base_range(
        self,
        region: str | None,
        key: str,
        minimum: float,
        maximum: float,
        *,
        source: str = "curated",
        label: str | None = None,
        currency: str | None = None,
        standard_hours: float | None = None,
    ) -> CatalogEntry:
        """Set the curated baseline, creating the entry if needed."""
        region = normalize_region(region, self.default_region)
        try:
            return await self._write_base_range(
                region, key, minimum, maximum, source, label, currency, standard_hours
            )
        except _WRITE_CONFLICTS as e:
            raise StorageUnavailable(
                f"catalog entry {region}/{key} kept changing under concurrent writes"
            ) from e
        except _STORAGE_FAILURES as e:
            raise StorageUnavailable(f"catalog write failed: {e}") from e

    @_conflict_retry
    async def _append_quote(
        self,
        region: str,
        key: str,
        quote: UserQuote,
        label: str | None,
        currency: str | None,
    ) -> CatalogEntry:
        async with get_db_session(self.session_factory) as session:
            row = await self._load(session, region, key)
            if row is None:
                row = self._new_row(region, key, label, currency)
                session.add(row)

            row.quotes.append(_to_record(quote, sequence=len(row.quotes) + 1))
            _apply_rollups(row)
            if quote.assessment is not None and quote.assessment.provider:
                row.last_assessment_provider = quote.assessment.provider
                row.last_assessed_at = quote.submitted_at

            await session.flush()
            return _to_entry(row)

    @_conflict_retry
    async def _write_base_range(
        self,
        region: str,
        key: str,
        minimum: float,
        maximum: float,
        source: str,
        label: str | None,
        currency: str | None,
        standard_hours: float | None,
    ) -> CatalogEntry:
        async with get_db_session(self.session_factory) as session:
            row = await self._load(session, region, key)
            if row is None:
                row = self._new_row(region, key, label, currency)
                _apply_rollups(row)
                session.add(row)
            elif label:
                row.label = label

            row.base_min = minimum
            row.base_max = maximum
            row.base_source = source
            row.base_updated_at = datetime.now(timezone.utc)
            if currency:
                row.currency = currency
            if standard_hours is not None:
                row.standard_hours = standard_hours

            await session.flush()
            return _to_entry(row)

    def _new_row(
        self,
        region: str,
        key: str,
        label: str | None,
        currency: str | None,
    ) -> ServicePriceEntry:
        return ServicePriceEntry(
            region=region,
            key=key,
            label=label or key,
            currency=currency or self.default_currency,
            quotes=[],
        )

    async def _load(
        self,
        session: AsyncSession,
        region: str,
        key: str,
    ) -> ServicePriceEntry | None:
        result = await session.execute(
            select(ServicePriceEntry)
            .where(
                ServicePriceEntry.region == region,
                ServicePriceEntry.key == key,
            )
            .options(selectinload(ServicePriceEntry.quotes))
        )
        return result.scalar_one_or_none()


class InMemoryCatalogStore:
    """
    Process-local catalog store.

    Writes for one (region, key) are serialized by a per-key lock; reads
    return copies so callers never see a half-applied append.
    """

    def __init__(self, *, default_region: str = "GLOBAL", default_currency: str = "USD"):
        self.default_region = default_region
        self.default_currency = default_currency
        self._entries: dict[tuple[str, str], CatalogEntry] = {}
        self._locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, region: str | None, key: str) -> CatalogEntry | None:
        entry = self._entries.get((normalize_region(region, self.default_region), key))
        return _copy_entry(entry) if entry else None

    async def upsert_quote(
        self,
        region: str | None,
        key: str,
        quote: UserQuote,
        *,
        label: str | None = None,
        currency: str | None = None,
    ) -> CatalogEntry:
        ident = (normalize_region(region, self.default_region), key)
        async with self._locks[ident]:
            entry = self._entries.get(ident) or self._new_entry(ident, label, currency)
            quotes = [*entry.quotes, quote]
            updated = dataclasses.replace(
                entry,
                quotes=quotes,
                rollups=compute_rollups(quotes),
            )
            if quote.assessment is not None and quote.assessment.provider:
                updated.last_assessment_provider = quote.assessment.provider
                updated.last_assessed_at = quote.submitted_at
            self._entries[ident] = updated
            return _copy_entry(updated)

    async def set_base_range(
        self,
        region: str | None,
        key: str,
        minimum: float,
        maximum: float,
        *,
        source: str = "curated",
        label: str | None = None,
        currency: str | None = None,
        standard_hours: float | None = None,
    ) -> CatalogEntry:
        ident = (normalize_region(region, self.default_region), key)
        async with self._locks[ident]:
            entry = self._entries.get(ident) or self._new_entry(ident, label, currency)
            updated = dataclasses.replace(
                entry,
                base_range=BaseRange(min=minimum, max=maximum, source=source),
                label=label or entry.label,
                currency=currency or entry.currency,
                standard_hours=standard_hours if standard_hours is not None else entry.standard_hours,
            )
            self._entries[ident] = updated
            return _copy_entry(updated)

    def _new_entry(
        self,
        ident: tuple[str, str],
        label: str | None,
        currency: str | None,
    ) -> CatalogEntry:
        region, key = ident
        return CatalogEntry(
            region=region,
            key=key,
            label=label or key,
            currency=currency or self.default_currency,
        )


def _copy_entry(entry: CatalogEntry) -> CatalogEntry:
    return dataclasses.replace(
        entry,
        quotes=list(entry.quotes),
        rollups=dataclasses.replace(entry.rollups),
    )


def _to_record(quote: UserQuote, sequence: int) -> CatalogUserQuote:
    record = CatalogUserQuote(
        sequence=sequence,
        price=quote.price,
        city=quote.city,
        vehicle_id=quote.vehicle_id,
        user_id=quote.user_id,
        notes=quote.notes,
        submitted_at=quote.submitted_at,
    )
    snapshot = quote.assessment
    if snapshot is not None:
        record.ai_decision = snapshot.decision.value
        record.ai_confidence = snapshot.confidence
        record.ai_rationale = snapshot.rationale
        record.ai_range_min = snapshot.range_min
        record.ai_range_max = snapshot.range_max
        record.ai_currency = snapshot.currency
        record.ai_provider = snapshot.provider
        record.ai_provider_notes = snapshot.provider_notes
    return record


def _to_quote(record: CatalogUserQuote) -> UserQuote:
    snapshot = None
    if record.ai_decision is not None:
        snapshot = AssessmentSnapshot(
            decision=Decision.coerce(record.ai_decision),
            confidence=record.ai_confidence,
            rationale=record.ai_rationale,
            range_min=record.ai_range_min,
            range_max=record.ai_range_max,
            currency=record.ai_currency,
            provider=record.ai_provider,
            provider_notes=record.ai_provider_notes,
        )
    return UserQuote(
        price=record.price,
        city=record.city,
        vehicle_id=record.vehicle_id,
        user_id=record.user_id,
        notes=record.notes,
        submitted_at=record.submitted_at,
        assessment=snapshot,
    )


def _apply_rollups(row: ServicePriceEntry) -> None:
    rollups = compute_rollups([_to_quote(r) for r in row.quotes])
    row.quotes_count = rollups.quotes_count
    row.avg_user_price = rollups.avg_user_price
    row.fair_count = rollups.fair_count
    row.overpriced_count = rollups.overpriced_count
    row.unknown_count = rollups.unknown_count


def _to_entry(row: ServicePriceEntry) -> CatalogEntry:
    base_range = None
    if row.base_min is not None and row.base_max is not None:
        base_range = BaseRange(
            min=row.base_min,
            max=row.base_max,
            source=row.base_source or "curated",
            updated_at=row.base_updated_at or datetime.now(timezone.utc),
        )
    return CatalogEntry(
        region=row.region,
        key=row.key,
        label=row.label,
        currency=row.currency or "USD",
        standard_hours=row.standard_hours,
        base_range=base_range,
        quotes=[_to_quote(r) for r in row.quotes],
        rollups=Rollups(
            quotes_count=row.quotes_count or 0,
            avg_user_price=row.avg_user_price,
            fair_count=row.fair_count or 0,
            overpriced_count=row.overpriced_count or 0,
            unknown_count=row.unknown_count or 0,
        ),
        last_assessment_provider=row.last_assessment_provider,
        last_assessed_at=row.last_assessed_at,
    )
