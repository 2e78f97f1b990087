"""
Service price catalog models.

One row per (region, canonical key) with a curated baseline range and the
append-only log of crowd-submitted quotes. Rollup columns are derived from
the quote log and are rewritten in the same transaction as every append.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fairquote.database.base import Base, utcnow


class ServicePriceEntry(Base):
    """
    Catalog entry for a canonical service key within a region.

    Uses a version counter for optimistic concurrency so that two writers
    appending to the same entry cannot both commit against the same snapshot.
    """

    __tablename__ = "service_price_catalog"

    region: Mapped[str] = mapped_column(String(64), nullable=False, default="GLOBAL")
    key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    label: Mapped[str | None] = mapped_column(String(255))
    currency: Mapped[str] = mapped_column(String(8), default="USD")
    standard_hours: Mapped[float | None] = mapped_column(Float)

    # Curated baseline
    base_min: Mapped[float | None] = mapped_column(Float)
    base_max: Mapped[float | None] = mapped_column(Float)
    base_source: Mapped[str | None] = mapped_column(String(32))
    base_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Rollups
    quotes_count: Mapped[int] = mapped_column(Integer, default=0)
    avg_user_price: Mapped[float | None] = mapped_column(Float)
    fair_count: Mapped[int] = mapped_column(Integer, default=0)
    overpriced_count: Mapped[int] = mapped_column(Integer, default=0)
    unknown_count: Mapped[int] = mapped_column(Integer, default=0)

    last_assessment_provider: Mapped[str | None] = mapped_column(String(128))
    last_assessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    quotes: Mapped[list["CatalogUserQuote"]] = relationship(
        "CatalogUserQuote",
        back_populates="entry",
        order_by="CatalogUserQuote.sequence",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("region", "key", name="uq_catalog_region_key"),
    )


class CatalogUserQuote(Base):
    """
    A crowd-submitted price for a catalog entry.

    Immutable once written. The AI columns hold the assessment snapshot
    taken when the quote was judged; they are all null when none was.
    """

    __tablename__ = "catalog_user_quotes"

    entry_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("service_price_catalog.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[float] = mapped_column(Float, nullable=False)
    city: Mapped[str | None] = mapped_column(String(128))
    vehicle_id: Mapped[str | None] = mapped_column(String(128))
    user_id: Mapped[str | None] = mapped_column(String(128))
    notes: Mapped[str | None] = mapped_column(Text)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Assessment snapshot
    ai_decision: Mapped[str | None] = mapped_column(String(16))
    ai_confidence: Mapped[float | None] = mapped_column(Float)
    ai_rationale: Mapped[str | None] = mapped_column(Text)
    ai_range_min: Mapped[float | None] = mapped_column(Float)
    ai_range_max: Mapped[float | None] = mapped_column(Float)
    ai_currency: Mapped[str | None] = mapped_column(String(8))
    ai_provider: Mapped[str | None] = mapped_column(String(128))
    ai_provider_notes: Mapped[str | None] = mapped_column(Text)

    entry: Mapped["ServicePriceEntry"] = relationship(
        "ServicePriceEntry",
        back_populates="quotes",
    )

    __table_args__ = (
        UniqueConstraint("entry_id", "sequence", name="uq_catalog_quote_sequence"),
    )
