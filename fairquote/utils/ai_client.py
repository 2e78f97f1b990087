"""
AI client wrapper for the Claude Messages API.

Provides the transport and prompt templates used by the price assessor.
"""

import json
from typing import Any

import httpx

from fairquote.config.settings import AISettings

ANTHROPIC_VERSION = "2023-06-01"


class AIClient:
    """
    Thin async client for Claude text generation.

    Errors from the transport (timeouts, connection failures, non-2xx
    responses) propagate as httpx exceptions; callers decide how to degrade.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str = "https://api.anthropic.com",
        timeout: float = 30.0,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        ai: AISettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AIClient":
        return cls(
            api_key=ai.api_key.get_secret_value() if ai.api_key else None,
            model=ai.model,
            base_url=ai.base_url,
            timeout=ai.timeout_seconds,
            max_tokens=ai.max_tokens,
            temperature=ai.temperature,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def provider_id(self) -> str:
        return f"anthropic:{self.model}"

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Generate text using the Claude API.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions
            max_tokens: Max output tokens
            temperature: Sampling temperature

        Returns:
            Concatenated text blocks of the response; empty if there are none
        """
        request_body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature if temperature is None else temperature,
        }
        if system_prompt:
            request_body["system"] = system_prompt

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.post(
                "/v1/messages",
                headers={
                    "x-api-key": self.api_key or "",
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                json=request_body,
            )
            response.raise_for_status()
            result = response.json()

        blocks = result.get("content") if isinstance(result, dict) else None
        if not isinstance(blocks, list):
            return ""
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )


class AIPromptBuilder:
    """
    Helper class for building structured prompts.

    Provides templates for price assessment requests.
    """

    ASSESSMENT_SCHEMA: dict[str, Any] = {
        "type": "object",
        "properties": {
            "decision": {"enum": ["fair", "overpriced", "unknown"]},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "rationale": {"type": "string"},
            "inferred_fair_range": {
                "type": "object",
                "properties": {
                    "min": {"type": "number"},
                    "max": {"type": "number"},
                    "currency": {"type": "string"},
                },
            },
            "model_notes": {"type": "string"},
        },
        "required": ["decision", "confidence", "rationale"],
    }

    @classmethod
    def assessment_system_prompt(cls) -> str:
        """System instructions requesting machine-parseable output."""
        return (
            "You are an automotive service price assessor. "
            "Decide whether a quoted price is fair or overpriced for the given "
            "vehicle and service, using broad market knowledge. "
            "If you are not confident, use decision 'unknown'. Keep the rationale short.\n\n"
            "You must respond with valid JSON that conforms to this schema:\n"
            f"{json.dumps(cls.ASSESSMENT_SCHEMA, indent=2)}\n\n"
            "Respond ONLY with the JSON, no additional text or markdown."
        )

    @staticmethod
    def price_assessment_prompt(
        vehicle: str,
        service_name: str,
        service_key: str,
        quoted_amount: float,
        currency: str,
        location: str | None = None,
        notes: str | None = None,
    ) -> str:
        """Build the full-context assessment prompt."""
        lines = [
            f"Vehicle: {vehicle}",
            f"Service: {service_name} (category: {service_key})",
            f"Quoted Price: {quoted_amount:.2f} {currency}",
            f"Location: {location}" if location else "Location: not provided; assume a major city baseline",
        ]
        if notes:
            lines.append(f"Notes: {notes}")
        lines.append(f"Report any inferred fair range in {currency}.")
        return "\n".join(lines)

    @staticmethod
    def minimal_assessment_prompt(
        service_name: str,
        quoted_amount: float,
        currency: str,
    ) -> str:
        """Build the reduced-context retry prompt."""
        return (
            f"Service: {service_name}\n"
            f"Quoted Price: {quoted_amount:.2f} {currency}\n"
            "Return only the JSON object."
        )
