"""
Pydantic schemas for API request/response validation.

Provides data transfer objects for all API endpoints, plus helpers that
turn pricing domain objects into plain dicts. Enums and datetimes are
left for FastAPI's encoder.
"""

from dataclasses import asdict

from pydantic import BaseModel, Field, model_validator

from fairquote.services.pricing.domain import (
    Assessment,
    CatalogEntry,
    ComparisonRow,
    FallbackReport,
    LineItem,
    QuoteContext,
    RateEstimate,
    UserQuote,
    VehicleContext,
)


# Base schemas
class ErrorResponse(BaseModel):
    """Error response schema."""
    success: bool = False
    detail: str
    code: str | None = None
    field: str | None = None


class VehicleFields(BaseModel):
    """Vehicle context required by AI assessment."""
    vehicle_make: str = Field(..., min_length=1)
    vehicle_model: str = Field(..., min_length=1)
    vehicle_year: int = Field(..., gt=0)

    def to_vehicle(self) -> VehicleContext:
        return VehicleContext(
            make=self.vehicle_make,
            model=self.vehicle_model,
            year=self.vehicle_year,
        )


# Rate schemas
class RateLookupItem(BaseModel):
    label: str = ""
    key: str | None = None


class RateLookupRequest(BaseModel):
    """Batch rate lookup."""
    region: str | None = None
    items: list[RateLookupItem] = Field(..., min_length=1)


# Quote schemas
class CompareItem(BaseModel):
    """One structured quote line."""
    label: str = Field(..., min_length=1)
    qty: int = Field(1, ge=1)
    price: float = Field(..., gt=0)
    notes: str | None = None
    key: str | None = None

    def to_line_item(self) -> LineItem:
        return LineItem(
            label=self.label,
            unit_price=self.price,
            quantity=self.qty,
            notes=self.notes,
            key=self.key or "",
        )


class CompareRequest(VehicleFields):
    """
    Quote comparison request.

    Line items come either structured in `items` or as extracted quote
    text in `text`; structured items win when both are sent.
    """
    items: list[CompareItem] = Field(default_factory=list)
    text: str | None = None
    region: str | None = None
    city: str | None = None
    vehicle_id: str | None = None
    location_country: str | None = None

    def context(self, user_id: str | None = None) -> QuoteContext:
        return QuoteContext(
            city=self.city,
            vehicle_id=self.vehicle_id,
            user_id=user_id,
            region=self.region,
            location_country=self.location_country,
        )


class AssessSingleRequest(VehicleFields):
    """Single service/price assessment request."""
    service_name: str = Field(..., min_length=1)
    quoted_amount: float = Field(..., gt=0)
    persist_assessment: bool = False
    region: str | None = None
    city: str | None = None
    vehicle_id: str | None = None
    location_city: str | None = None
    location_country: str | None = None
    extra_notes: str | None = None


class LearnItem(BaseModel):
    """A crowd quote line; invalid prices are skipped, not rejected."""
    label: str = ""
    key: str | None = None
    qty: int = 1
    price: float | None = None
    notes: str | None = None


class LearnRequest(BaseModel):
    """Crowd-learning ingestion request."""
    region: str | None = None
    city: str | None = None
    vehicle_id: str | None = None
    items: list[LearnItem] = Field(..., min_length=1)


# Catalog schemas
class BaseRangeUpdate(BaseModel):
    """Curated baseline for a catalog entry."""
    min: float = Field(..., gt=0)
    max: float = Field(..., gt=0)
    source: str = "curated"
    label: str | None = None
    currency: str | None = None
    standard_hours: float | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "BaseRangeUpdate":
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


def serialize_rate(estimate: RateEstimate) -> dict:
    return asdict(estimate)


def serialize_row(row: ComparisonRow) -> dict:
    return asdict(row)


def serialize_assessment(assessment: Assessment) -> dict:
    return asdict(assessment)


def serialize_report(report: FallbackReport) -> dict:
    return asdict(report)


def serialize_quote(quote: UserQuote) -> dict:
    return asdict(quote)


def serialize_entry_detail(entry: CatalogEntry | None, recent: int) -> dict:
    """Rollups, baseline and the most recent quotes of an entry, newest first."""
    if entry is None:
        return {"rollups": None, "base_range": None, "recent_quotes": []}
    quotes = list(reversed(entry.quotes))[:max(recent, 0)]
    return {
        "rollups": asdict(entry.rollups),
        "base_range": asdict(entry.base_range) if entry.base_range else None,
        "recent_quotes": [serialize_quote(q) for q in quotes],
        "last_assessment_provider": entry.last_assessment_provider,
        "last_assessed_at": entry.last_assessed_at,
    }


__all__ = [
    # Base
    "ErrorResponse",
    "VehicleFields",
    # Rates
    "RateLookupItem",
    "RateLookupRequest",
    # Quotes
    "CompareItem",
    "CompareRequest",
    "AssessSingleRequest",
    "LearnItem",
    "LearnRequest",
    # Catalog
    "BaseRangeUpdate",
    # Serialization
    "serialize_rate",
    "serialize_row",
    "serialize_assessment",
    "serialize_report",
    "serialize_quote",
    "serialize_entry_detail",
]
