"""
FastAPI dependencies for settings, catalog access and pricing services.

Long-lived resources (engine, session factory, in-memory store) live on
`app.state`, built by the application lifespan. Everything here is built
per request on top of them.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from fairquote.config.settings import Settings
from fairquote.services.pricing.assessment import AssessmentClient
from fairquote.services.pricing.catalog_store import CatalogStore, SqlCatalogStore
from fairquote.services.pricing.comparison import QuoteComparisonService
from fairquote.services.pricing.learning import CrowdLearningWriter
from fairquote.services.pricing.resolver import RateResolver
from fairquote.utils.ai_client import AIClient


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def get_catalog_store(request: Request, settings: SettingsDep) -> CatalogStore:
    """
    Get a catalog store handle for the configured backend.

    The SQL store opens one session per operation from the shared factory;
    the memory store is shared process-wide.
    """
    if settings.pricing.catalog_backend == "memory":
        return request.app.state.catalog_store
    return SqlCatalogStore(
        request.app.state.session_factory,
        default_region=settings.pricing.default_region,
        default_currency=settings.pricing.default_currency,
    )


CatalogStoreDep = Annotated[CatalogStore, Depends(get_catalog_store)]


def get_resolver(store: CatalogStoreDep, settings: SettingsDep) -> RateResolver:
    return RateResolver(
        store,
        default_currency=settings.pricing.default_currency,
        min_crowd_quotes=settings.pricing.min_crowd_quotes,
    )


ResolverDep = Annotated[RateResolver, Depends(get_resolver)]


def get_assessment_client(request: Request, settings: SettingsDep) -> AssessmentClient:
    """Build the AI assessor; `app.state.ai_transport` overrides the HTTP transport."""
    ai_client = AIClient.from_settings(
        settings.ai,
        transport=getattr(request.app.state, "ai_transport", None),
    )
    return AssessmentClient(ai_client, default_currency=settings.pricing.default_currency)


AssessorDep = Annotated[AssessmentClient, Depends(get_assessment_client)]


def get_learning_writer(store: CatalogStoreDep, settings: SettingsDep) -> CrowdLearningWriter:
    return CrowdLearningWriter(store, default_region=settings.pricing.default_region)


WriterDep = Annotated[CrowdLearningWriter, Depends(get_learning_writer)]


def get_comparison_service(
    assessor: AssessorDep,
    resolver: ResolverDep,
    writer: WriterDep,
    settings: SettingsDep,
) -> QuoteComparisonService:
    return QuoteComparisonService(
        assessor,
        resolver,
        writer,
        learn=settings.pricing.learn_from_comparisons,
        tolerance=settings.pricing.heuristic_tolerance,
    )


ComparisonDep = Annotated[QuoteComparisonService, Depends(get_comparison_service)]


async def get_user_id(x_user_id: str | None = Header(None)) -> str | None:
    """
    Opaque user reference supplied by the upstream authentication layer.

    It is attached to learned quotes and never validated here.
    """
    return x_user_id or None


UserIdDep = Annotated[str | None, Depends(get_user_id)]
