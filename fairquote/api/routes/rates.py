"""
Rate lookup API routes.
"""

from fastapi import APIRouter

from fairquote.api.dependencies import ResolverDep
from fairquote.schemas import RateLookupRequest, serialize_rate

router = APIRouter()


@router.post("/lookup")
async def lookup_rates(body: RateLookupRequest, resolver: ResolverDep):
    """
    Resolve the best available estimate for each label.

    Always answers; keys with no catalog data resolve from the heuristic table.
    """
    items = []
    for item in body.items:
        estimate = await resolver.resolve(body.region, item.key or item.label, item.label or None)
        items.append(serialize_rate(estimate))

    return {"success": True, "items": items}
