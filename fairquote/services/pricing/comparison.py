"""
Quote comparison orchestrator.

Judges a batch of line items against the AI assessor, one item at a time in
input order, and owns the degradation policy:
- provider unavailable: the whole batch aborts (compare) or falls back to
  heuristic verdicts (analyze)
- invalid provider response: only that line degrades to "unknown"
- fee and non-service lines are never scored
"""

import math
import time

from fairquote.services.pricing.assessment import AssessmentClient
from fairquote.services.pricing.domain import (
    AnalysisResult,
    Assessment,
    AssessmentSnapshot,
    ComparisonRow,
    Decision,
    FallbackReport,
    HeuristicVerdict,
    LineItem,
    QuoteContext,
    VehicleContext,
)
from fairquote.services.pricing.errors import (
    ProviderResponseInvalid,
    ProviderUnavailable,
    ValidationError,
)
from fairquote.services.pricing.heuristics import heuristic_rate
from fairquote.services.pricing.learning import CrowdLearningWriter
from fairquote.services.pricing.normalizer import is_fee_key, normalize
from fairquote.services.pricing.resolver import SOURCE_HEURISTIC, RateResolver
from fairquote.utils.logging import ServiceLogger

FEE_LINE_NOTE = "Fee or non-service line; not scored"

NEGOTIATION_TIPS = [
    "Ask for parts/labor split and itemized fees.",
    "Request tread depth/pad thickness before replacing wear items.",
]


def delta_percent(total: float, midpoint: float | None) -> float | None:
    """Percentage of total above (+) or below (-) the midpoint, to one decimal."""
    if not midpoint:
        return None
    return round((total - midpoint) / midpoint * 100, 1)


def validate_request(vehicle: VehicleContext | None, line_items: list[LineItem]) -> None:
    """
    Reject a comparison request before any processing.

    Raises:
        ValidationError: naming the first offending field
    """
    if vehicle is None:
        raise ValidationError("vehicle", "vehicle make, model and year are required")
    if not isinstance(vehicle.make, str) or not vehicle.make.strip():
        raise ValidationError("vehicle_make", "is required")
    if not isinstance(vehicle.model, str) or not vehicle.model.strip():
        raise ValidationError("vehicle_model", "is required")
    if isinstance(vehicle.year, bool) or not isinstance(vehicle.year, int) or vehicle.year <= 0:
        raise ValidationError("vehicle_year", "must be a positive integer")
    if not line_items:
        raise ValidationError("items", "at least one line item is required")
    for index, item in enumerate(line_items):
        if not item.label or not item.label.strip():
            raise ValidationError(f"items[{index}].label", "is required")
        if item.quantity < 1:
            raise ValidationError(f"items[{index}].qty", "must be at least 1")
        if not math.isfinite(item.unit_price) or item.unit_price <= 0:
            raise ValidationError(f"items[{index}].price", "must be positive")


class QuoteComparisonService:
    """
    Service for judging shop quotes.

    Provides:
    - AI-backed per-line verdicts (compare)
    - Heuristic-only verdicts against resolved rates (heuristic_verdict)
    - The batch policy choosing between them (analyze)
    - Crowd learning from every scored line, when a writer is bound
    """

    def __init__(
        self,
        assessor: AssessmentClient,
        resolver: RateResolver,
        writer: CrowdLearningWriter | None = None,
        *,
        learn: bool = True,
        tolerance: float = 0.2,
    ):
        self.assessor = assessor
        self.resolver = resolver
        self.writer = writer
        self.learn = learn
        self.tolerance = tolerance
        self.logger = ServiceLogger("quote_comparison")

    async def compare(
        self,
        vehicle: VehicleContext,
        line_items: list[LineItem],
        context: QuoteContext | None = None,
    ) -> list[ComparisonRow]:
        """
        Judge every line item with the AI assessor.

        Args:
            vehicle: Vehicle make, model and year
            line_items: Quote lines; output rows keep this order
            context: Submission context used for location hints and learning

        Returns:
            One ComparisonRow per line item

        Raises:
            ValidationError: Missing vehicle fields, empty batch, bad line
            ProviderUnavailable: No provider configured; no partial result
        """
        validate_request(vehicle, line_items)
        context = context or QuoteContext()
        started = time.perf_counter()
        self.logger.log_operation_start("compare", items=len(line_items))

        if not self.assessor.available:
            raise ProviderUnavailable()

        rows: list[ComparisonRow] = []
        assessments: list[Assessment | None] = []
        for item in line_items:
            row, assessment = await self._judge(vehicle, item, context)
            rows.append(row)
            assessments.append(assessment)

        await self._learn(line_items, rows, assessments, context)

        self.logger.log_operation_complete(
            "compare",
            duration_ms=(time.perf_counter() - started) * 1000,
            items=len(rows),
            degraded=sum(1 for r in rows if r.degraded),
        )
        return rows

    async def analyze(
        self,
        vehicle: VehicleContext,
        line_items: list[LineItem],
        context: QuoteContext | None = None,
    ) -> AnalysisResult:
        """
        Compare with AI, substituting heuristic verdicts for the whole batch
        when the provider is unavailable or every scored line degraded.
        """
        context = context or QuoteContext()
        try:
            rows = await self.compare(vehicle, line_items, context)
        except ProviderUnavailable:
            self.logger.log_degraded("analyze", reason="provider unavailable")
            report = await self.heuristic_verdict(line_items, context.region)
            report.notes.insert(0, "AI unavailable; used heuristic fallback")
            return AnalysisResult(rows=report.rows, fallback=True, report=report)

        scored = [r for r in rows if r.scored]
        if scored and all(r.degraded for r in scored):
            self.logger.log_degraded("analyze", reason="all AI assessments failed")
            report = await self.heuristic_verdict(line_items, context.region)
            report.notes.insert(0, "AI assessments failed; used heuristic fallback")
            return AnalysisResult(rows=report.rows, fallback=True, report=report)

        return AnalysisResult(rows=rows)

    async def heuristic_verdict(
        self,
        line_items: list[LineItem],
        region: str | None = None,
    ) -> FallbackReport:
        """
        Classify each line against ±tolerance of the resolved average price.

        Never raises; an internal failure yields an all-questionable report.
        """
        report = FallbackReport(negotiation_tips=list(NEGOTIATION_TIPS))
        try:
            for item in line_items:
                report.rows.append(await self._heuristic_row(item, region, report))
        except Exception as e:
            self.logger.log_operation_failed("heuristic_verdict", e)
            return self._all_questionable(line_items)
        return report

    async def _judge(
        self,
        vehicle: VehicleContext,
        item: LineItem,
        context: QuoteContext,
    ) -> tuple[ComparisonRow, Assessment | None]:
        key = item.key or normalize(item.label)
        row = ComparisonRow(
            key=key,
            label=item.label,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.total,
            currency=self.assessor.default_currency,
        )

        if is_fee_key(key):
            row.scored = False
            row.note = FEE_LINE_NOTE
            return row, None

        try:
            assessment = await self.assessor.assess(
                vehicle.make,
                vehicle.model,
                vehicle.year,
                item.label,
                item.total,
                location_hints=[context.city, context.location_country],
                notes=item.notes,
            )
        except ProviderResponseInvalid as e:
            row.degraded = True
            row.note = f"AI assessment unavailable for this line: {e.reason}"
            return row, None

        row.verdict = assessment.decision
        row.confidence = assessment.confidence
        row.rationale = assessment.rationale
        if assessment.fair_range is not None:
            row.range_min = assessment.fair_range.min
            row.range_max = assessment.fair_range.max
            row.currency = assessment.fair_range.currency
            row.midpoint = assessment.fair_range.midpoint
            row.delta_pct = delta_percent(row.total, row.midpoint)
        return row, assessment

    async def _learn(
        self,
        line_items: list[LineItem],
        rows: list[ComparisonRow],
        assessments: list[Assessment | None],
        context: QuoteContext,
    ) -> None:
        if not self.learn or self.writer is None:
            return
        for item, row, assessment in zip(line_items, rows, assessments):
            if not row.scored:
                continue
            snapshot = None
            if assessment is not None:
                snapshot = AssessmentSnapshot.from_assessment(assessment, scale=item.quantity)
            await self.writer.record_quote(
                context.region,
                row.key,
                item.unit_price,
                context,
                snapshot,
                label=item.label,
            )

    async def _heuristic_row(
        self,
        item: LineItem,
        region: str | None,
        report: FallbackReport,
    ) -> ComparisonRow:
        key = item.key or normalize(item.label)
        total = item.total
        row = ComparisonRow(
            key=key,
            label=item.label,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=total,
        )

        rate = None
        if not is_fee_key(key):
            rate = await self.resolver.resolve(region, key, item.label)
            if rate.source == SOURCE_HEURISTIC and not heuristic_rate(key).is_known:
                rate = None

        if rate is None:
            row.scored = False
            row.note = f"Unknown line: {item.label} ({total:.0f})"
            report.questionable_notes.append(row.note)
            report.verdicts.append(HeuristicVerdict.QUESTIONABLE)
            return row

        high = rate.avg_price * (1 + self.tolerance)
        low = rate.avg_price * (1 - self.tolerance)
        row.range_min = round(low, 2)
        row.range_max = round(high, 2)
        row.midpoint = rate.avg_price
        row.currency = rate.currency
        row.delta_pct = delta_percent(total, rate.avg_price)

        if total > high:
            row.verdict = Decision.OVERPRICED
            row.note = f"Likely overpriced: {item.label} ({total:.0f} > ~{high:.0f})"
            report.overpriced_notes.append(row.note)
            report.verdicts.append(HeuristicVerdict.OVERPRICED)
            return row

        row.verdict = Decision.FAIR
        if total < low:
            row.note = f"Below typical: {item.label} (~{low:.0f}-{high:.0f})"
        else:
            row.note = f"Within typical range: {item.label}"
        report.fair_notes.append(row.note)
        report.verdicts.append(HeuristicVerdict.FAIR)
        return row

    def _all_questionable(self, line_items: list[LineItem]) -> FallbackReport:
        note = "Heuristic fallback ran into an error."
        rows = []
        for item in line_items:
            label = getattr(item, "label", None) or ""
            quantity = getattr(item, "quantity", 1)
            unit_price = getattr(item, "unit_price", 0.0)
            try:
                total = round(float(quantity) * float(unit_price), 2)
            except (TypeError, ValueError):
                total = 0.0
            rows.append(ComparisonRow(
                key=normalize(label),
                label=label,
                quantity=quantity,
                unit_price=unit_price,
                total=total,
                note=note,
                scored=False,
            ))
        return FallbackReport(
            rows=rows,
            verdicts=[HeuristicVerdict.QUESTIONABLE] * len(rows),
            questionable_notes=[note],
            negotiation_tips=list(NEGOTIATION_TIPS),
            notes=[note],
        )
