"""
Catalog inspection and curation API routes.
"""

from dataclasses import asdict

from fastapi import APIRouter, Query

from fairquote.api.dependencies import (
    CatalogStoreDep,
    ResolverDep,
    SettingsDep,
    UserIdDep,
)
from fairquote.schemas import BaseRangeUpdate, serialize_entry_detail, serialize_rate
from fairquote.services.pricing.catalog_store import normalize_region
from fairquote.services.pricing.errors import StorageUnavailable
from fairquote.services.pricing.normalizer import normalize
from fairquote.utils.logging import AuditLogger, get_logger

router = APIRouter()
logger = get_logger(__name__)
audit_logger = AuditLogger()


@router.get("/{key}")
async def get_catalog_entry(
    key: str,
    store: CatalogStoreDep,
    resolver: ResolverDep,
    settings: SettingsDep,
    region: str | None = None,
    quotes: int | None = Query(None, ge=0, le=200),
):
    """
    Current resolved rate for a key plus the entry's raw rollups.

    Falls back to the heuristic row when the key has no catalog data or the
    catalog cannot be read.
    """
    key = normalize(key)
    region = normalize_region(region, settings.pricing.default_region)

    try:
        entry = await store.get(region, key)
    except StorageUnavailable as e:
        logger.warning("catalog_read_failed", region=region, key=key, error=str(e))
        entry = None

    estimate = resolver.from_entry(entry) if entry is not None else None
    if estimate is None:
        estimate = resolver.heuristic(key)

    limit = settings.pricing.recent_quotes_limit if quotes is None else quotes
    return {
        "source": estimate.source,
        "region": region,
        "key": key,
        "entry": serialize_rate(estimate),
        **serialize_entry_detail(entry, limit),
    }


@router.put("/{key}/base-range")
async def set_base_range(
    key: str,
    body: BaseRangeUpdate,
    store: CatalogStoreDep,
    resolver: ResolverDep,
    settings: SettingsDep,
    user_id: UserIdDep,
    region: str | None = None,
):
    """Set the curated baseline range for a key."""
    key = normalize(key)
    region = normalize_region(region, settings.pricing.default_region)

    previous = await store.get(region, key)
    entry = await store.set_base_range(
        region,
        key,
        body.min,
        body.max,
        source=body.source,
        label=body.label,
        currency=body.currency,
        standard_hours=body.standard_hours,
    )

    old_values = None
    if previous is not None and previous.base_range is not None:
        old_values = {"min": previous.base_range.min, "max": previous.base_range.max}
    audit_logger.log_catalog_change(
        action="set_base_range",
        user_id=user_id,
        region=region,
        key=key,
        old_values=old_values,
        new_values={"min": body.min, "max": body.max, "source": body.source},
    )

    return {
        "success": True,
        "region": region,
        "key": key,
        "base_range": asdict(entry.base_range),
        "entry": serialize_rate(resolver.from_entry(entry)),
    }
