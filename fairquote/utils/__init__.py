"""
Utility modules for fairquote.

Provides shared functionality across services:
- AI client for Claude integration
- Logging utilities for structured logging
"""

from fairquote.utils.ai_client import AIClient, AIPromptBuilder
from fairquote.utils.logging import (
    AuditLogger,
    RequestLogger,
    ServiceLogger,
    get_logger,
    setup_logging,
)

__all__ = [
    # AI Client
    "AIClient",
    "AIPromptBuilder",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLogger",
    "AuditLogger",
    "ServiceLogger",
]
