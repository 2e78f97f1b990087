"""
Vehicle-service price-fairness engine.

Provides functionality for:
- Normalizing free-text service labels to canonical keys
- Resolving price estimates from crowd quotes, curated baselines or heuristics
- AI-backed fairness assessment with graceful degradation
- Crowd learning from submitted quotes
"""

from fairquote.services.pricing.assessment import AssessmentClient
from fairquote.services.pricing.catalog_store import (
    CatalogLookup,
    CatalogStore,
    InMemoryCatalogStore,
    SqlCatalogStore,
)
from fairquote.services.pricing.comparison import QuoteComparisonService
from fairquote.services.pricing.learning import CrowdLearningWriter
from fairquote.services.pricing.normalizer import normalize
from fairquote.services.pricing.resolver import RateResolver

__all__ = [
    "AssessmentClient",
    "CatalogLookup",
    "CatalogStore",
    "InMemoryCatalogStore",
    "SqlCatalogStore",
    "QuoteComparisonService",
    "CrowdLearningWriter",
    "RateResolver",
    "normalize",
]
