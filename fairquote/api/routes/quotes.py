"""
Quote fairness API routes.
"""

from fastapi import APIRouter

from fairquote.api.dependencies import (
    AssessorDep,
    ComparisonDep,
    SettingsDep,
    UserIdDep,
    WriterDep,
)
from fairquote.schemas import (
    AssessSingleRequest,
    CompareRequest,
    LearnRequest,
    serialize_assessment,
    serialize_report,
    serialize_row,
)
from fairquote.services.pricing.domain import LineItem, QuoteContext
from fairquote.services.pricing.line_items import parse_quote_text
from fairquote.services.pricing.normalizer import is_fee_key, normalize

router = APIRouter()


def _line_items(body: CompareRequest) -> list[LineItem]:
    if body.items:
        return [item.to_line_item() for item in body.items]
    return parse_quote_text(body.text or "")


@router.post("/compare")
async def compare_quote(
    body: CompareRequest,
    service: ComparisonDep,
    settings: SettingsDep,
    user_id: UserIdDep,
):
    """
    Judge every quote line with the AI assessor.

    Responds 503 with code `ai_not_configured` when no provider is set up.
    """
    rows = await service.compare(body.to_vehicle(), _line_items(body), body.context(user_id))

    return {
        "success": True,
        "results": [serialize_row(r) for r in rows],
        "currency": settings.pricing.default_currency,
    }


@router.post("/analyze")
async def analyze_quote(
    body: CompareRequest,
    service: ComparisonDep,
    settings: SettingsDep,
    user_id: UserIdDep,
):
    """Compare with AI, falling back to heuristic verdicts for the whole batch."""
    result = await service.analyze(body.to_vehicle(), _line_items(body), body.context(user_id))

    return {
        "success": True,
        "fallback": result.fallback,
        "results": [serialize_row(r) for r in result.rows],
        "report": serialize_report(result.report) if result.report else None,
        "currency": settings.pricing.default_currency,
    }


@router.post("/assess-single")
async def assess_single(
    body: AssessSingleRequest,
    assessor: AssessorDep,
    writer: WriterDep,
    user_id: UserIdDep,
):
    """
    Assess one service/price pair.

    Never substitutes heuristic data: an unconfigured provider is a 503 and
    an unusable provider response is a 502.
    """
    assessment = await assessor.assess(
        body.vehicle_make,
        body.vehicle_model,
        body.vehicle_year,
        body.service_name,
        body.quoted_amount,
        location_hints=[body.location_city or body.city, body.location_country],
        notes=body.extra_notes,
    )

    persisted = False
    key = normalize(body.service_name)
    if body.persist_assessment and not is_fee_key(key):
        context = QuoteContext(
            city=body.location_city or body.city,
            vehicle_id=body.vehicle_id,
            user_id=user_id,
            notes=body.extra_notes,
        )
        entry = await writer.record_quote(
            body.region or body.location_country,
            key,
            body.quoted_amount,
            context,
            assessment,
            label=body.service_name,
        )
        persisted = entry is not None

    return {
        "success": True,
        "assessment": serialize_assessment(assessment),
        "persisted": persisted,
    }


@router.post("/learn")
async def learn_quotes(
    body: LearnRequest,
    writer: WriterDep,
    user_id: UserIdDep,
):
    """
    Ingest crowd quotes.

    Always acknowledges; lines with no usable key or price are counted as
    skipped rather than rejected.
    """
    recorded = 0
    skipped = 0
    for item in body.items:
        raw_key = item.key or item.label
        key = normalize(raw_key) if raw_key and raw_key.strip() else ""
        if not key or is_fee_key(key):
            skipped += 1
            continue

        context = QuoteContext(
            city=body.city,
            vehicle_id=body.vehicle_id,
            user_id=user_id,
            notes=item.notes,
        )
        entry = await writer.record_quote(
            body.region,
            key,
            item.price,
            context,
            label=item.label or None,
        )
        if entry is None:
            skipped += 1
        else:
            recorded += 1

    return {"success": True, "recorded": recorded, "skipped": skipped}
