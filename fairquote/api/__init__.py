"""API module for fairquote."""

from fairquote.api.dependencies import (
    get_app_settings,
    get_assessment_client,
    get_catalog_store,
    get_comparison_service,
    get_learning_writer,
    get_resolver,
    get_user_id,
)

__all__ = [
    "get_app_settings",
    "get_assessment_client",
    "get_catalog_store",
    "get_comparison_service",
    "get_learning_writer",
    "get_resolver",
    "get_user_id",
]
