"""
Domain types for the pricing engine.

Plain dataclasses shared by the normalizer, resolver, assessment client,
comparison orchestrator and catalog stores. None of them know about the ORM.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Decision(str, Enum):
    """Fairness verdict for a quoted price."""
    FAIR = "fair"
    OVERPRICED = "overpriced"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: object) -> "Decision":
        """Case-insensitive match; anything unrecognised is UNKNOWN."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


class HeuristicVerdict(str, Enum):
    """Verdicts produced by the heuristic-only fallback path."""
    FAIR = "fair"
    OVERPRICED = "overpriced"
    QUESTIONABLE = "questionable"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BaseRange:
    """Curated baseline price range for a catalog entry."""
    min: float
    max: float
    source: str = "curated"
    updated_at: datetime = field(default_factory=_now)

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


@dataclass
class FairRange:
    """Fair price range inferred by the AI provider."""
    min: float | None
    max: float | None
    currency: str

    @property
    def midpoint(self) -> float | None:
        if self.min is None or self.max is None:
            return None
        return (self.min + self.max) / 2


@dataclass
class Assessment:
    """Output of the AI assessment client."""
    decision: Decision
    confidence: float
    rationale: str
    fair_range: FairRange | None
    provider: str
    provider_notes: str | None = None


@dataclass(frozen=True)
class AssessmentSnapshot:
    """Assessment stored alongside a crowd quote."""
    decision: Decision
    confidence: float | None = None
    rationale: str | None = None
    range_min: float | None = None
    range_max: float | None = None
    currency: str | None = None
    provider: str | None = None
    provider_notes: str | None = None

    @classmethod
    def from_assessment(cls, assessment: Assessment, scale: float = 1.0) -> "AssessmentSnapshot":
        """
        Snapshot an assessment, dividing its inferred range by `scale`.

        A line of several units is assessed on its total; the catalog
        stores unit prices, so the range is brought to a single unit.
        """
        fair_range = assessment.fair_range
        range_min = range_max = None
        currency = None
        if fair_range is not None:
            currency = fair_range.currency
            if fair_range.min is not None:
                range_min = round(fair_range.min / scale, 2)
            if fair_range.max is not None:
                range_max = round(fair_range.max / scale, 2)
        return cls(
            decision=assessment.decision,
            confidence=assessment.confidence,
            rationale=assessment.rationale,
            range_min=range_min,
            range_max=range_max,
            currency=currency,
            provider=assessment.provider,
            provider_notes=assessment.provider_notes,
        )


@dataclass(frozen=True)
class QuoteContext:
    """Who submitted a quote, and where."""
    city: str | None = None
    vehicle_id: str | None = None
    user_id: str | None = None
    notes: str | None = None
    region: str | None = None
    location_country: str | None = None


@dataclass(frozen=True)
class UserQuote:
    """A crowd-submitted price. Immutable once appended."""
    price: float
    city: str | None = None
    vehicle_id: str | None = None
    user_id: str | None = None
    notes: str | None = None
    submitted_at: datetime = field(default_factory=_now)
    assessment: AssessmentSnapshot | None = None

    @classmethod
    def from_context(
        cls,
        price: float,
        context: QuoteContext | None,
        assessment: AssessmentSnapshot | None = None,
    ) -> "UserQuote":
        context = context or QuoteContext()
        return cls(
            price=price,
            city=context.city,
            vehicle_id=context.vehicle_id,
            user_id=context.user_id,
            notes=context.notes,
            assessment=assessment,
        )


@dataclass
class Rollups:
    """Aggregates derived from an entry's quote log."""
    quotes_count: int = 0
    avg_user_price: float | None = None
    fair_count: int = 0
    overpriced_count: int = 0
    unknown_count: int = 0


def compute_rollups(quotes: list[UserQuote]) -> Rollups:
    """
    Recompute rollups from the full quote list.

    Quotes without an assessment snapshot count as unknown.
    """
    rollups = Rollups(quotes_count=len(quotes))
    if quotes:
        rollups.avg_user_price = round(sum(q.price for q in quotes) / len(quotes), 2)

    for quote in quotes:
        decision = quote.assessment.decision if quote.assessment else Decision.UNKNOWN
        if decision == Decision.FAIR:
            rollups.fair_count += 1
        elif decision == Decision.OVERPRICED:
            rollups.overpriced_count += 1
        else:
            rollups.unknown_count += 1
    return rollups


@dataclass
class CatalogEntry:
    """Snapshot of a catalog entry and its quote log."""
    region: str
    key: str
    label: str | None = None
    currency: str = "USD"
    standard_hours: float | None = None
    base_range: BaseRange | None = None
    quotes: list[UserQuote] = field(default_factory=list)
    rollups: Rollups = field(default_factory=Rollups)
    last_assessment_provider: str | None = None
    last_assessed_at: datetime | None = None

    @property
    def prices(self) -> list[float]:
        return [q.price for q in self.quotes]


@dataclass
class HeuristicRate:
    """Static last-resort price range."""
    min: float
    max: float
    avg: float
    standard_hours: float
    is_known: bool = True


@dataclass
class RateEstimate:
    """Best available price estimate for a service key."""
    key: str
    label: str
    avg_price: float
    range_min: float
    range_max: float
    currency: str
    source: str
    quotes_count: int = 0
    standard_hours: float | None = None


@dataclass(frozen=True)
class VehicleContext:
    """Vehicle attributes supplied by the profile store."""
    make: str
    model: str
    year: int

    def describe(self) -> str:
        return f"{self.year} {self.make} {self.model}"


@dataclass
class LineItem:
    """One line of a shop quote."""
    label: str
    unit_price: float
    quantity: int = 1
    notes: str | None = None
    key: str = ""

    @property
    def total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


@dataclass
class ComparisonRow:
    """Verdict for one line item. `verdict` is never None."""
    key: str
    label: str
    quantity: int
    unit_price: float
    total: float
    verdict: Decision = Decision.UNKNOWN
    range_min: float | None = None
    range_max: float | None = None
    midpoint: float | None = None
    delta_pct: float | None = None
    confidence: float | None = None
    rationale: str | None = None
    currency: str | None = None
    note: str | None = None
    scored: bool = True
    degraded: bool = False


@dataclass
class FallbackReport:
    """Heuristic-only verdicts for a batch of line items."""
    rows: list[ComparisonRow] = field(default_factory=list)
    verdicts: list[HeuristicVerdict] = field(default_factory=list)
    overpriced_notes: list[str] = field(default_factory=list)
    questionable_notes: list[str] = field(default_factory=list)
    fair_notes: list[str] = field(default_factory=list)
    negotiation_tips: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Outcome of the batch policy: AI rows, or the heuristic report."""
    rows: list[ComparisonRow]
    fallback: bool = False
    report: FallbackReport | None = None
