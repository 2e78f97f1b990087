"""
AI price assessment client.

Asks the provider whether a single quoted price is fair, enforces the output
contract on whatever comes back, and classifies failures:
- no credential: ProviderUnavailable, raised before any network call
- anything else (timeout, HTTP error, empty or malformed output): one retry
  with a reduced-context prompt, then ProviderResponseInvalid
"""

import json
import math
from dataclasses import dataclass
from enum import Enum

import httpx

from fairquote.services.pricing.domain import Assessment, Decision, FairRange
from fairquote.services.pricing.errors import ProviderResponseInvalid, ProviderUnavailable
from fairquote.services.pricing.normalizer import normalize
from fairquote.utils.ai_client import AIClient, AIPromptBuilder
from fairquote.utils.logging import ServiceLogger


@dataclass(frozen=True)
class ParseFailure:
    """Provider output that could not be turned into an Assessment."""
    reason: str
    raw: str = ""


class AttemptStage(str, Enum):
    """Stages of the two-attempt assessment state machine."""
    FULL = "full"
    MINIMAL = "minimal"
    DEGRADED = "degraded"


_NEXT_STAGE = {
    AttemptStage.FULL: AttemptStage.MINIMAL,
    AttemptStage.MINIMAL: AttemptStage.DEGRADED,
}


def _strip_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def extract_json_object(text: str) -> str | None:
    """
    Return the outermost balanced {...} block in text, or None.

    Braces inside JSON strings, including escaped quotes, are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _confidence(value: object) -> float:
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0.0
    number = _number(value)
    if number is None:
        return 0.0
    return min(1.0, max(0.0, number))


def coerce_assessment(payload: dict, *, currency: str, provider: str) -> Assessment:
    """Apply the output contract to a decoded provider object."""
    fair_range = None
    raw_range = payload.get("inferred_fair_range")
    if isinstance(raw_range, dict):
        # Currency is always the caller's, whatever the provider claims
        fair_range = FairRange(
            min=_number(raw_range.get("min")),
            max=_number(raw_range.get("max")),
            currency=currency,
        )

    rationale = payload.get("rationale")
    notes = payload.get("model_notes")
    return Assessment(
        decision=Decision.coerce(payload.get("decision")),
        confidence=_confidence(payload.get("confidence")),
        rationale=rationale if isinstance(rationale, str) else "",
        fair_range=fair_range,
        provider=provider,
        provider_notes=notes if isinstance(notes, str) else None,
    )


def decode_assessment(text: str, *, currency: str, provider: str) -> Assessment | ParseFailure:
    """
    Leniently decode provider output.

    Stage one is a strict parse of the (unfenced) text; stage two extracts
    the outermost balanced object and parses that. Never raises.
    """
    if not text or not text.strip():
        return ParseFailure("empty response")

    candidate = _strip_fences(text)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        block = extract_json_object(candidate)
        if block is None:
            return ParseFailure("no JSON object in response", raw=text[:400])
        try:
            payload = json.loads(block)
        except json.JSONDecodeError:
            return ParseFailure("malformed JSON object in response", raw=text[:400])

    if not isinstance(payload, dict):
        return ParseFailure(f"expected a JSON object, got {type(payload).__name__}", raw=text[:400])
    return coerce_assessment(payload, currency=currency, provider=provider)


class AssessmentClient:
    """
    Price-fairness assessor backed by an AI provider.

    Has no knowledge of storage; callers persist assessments themselves.
    """

    def __init__(self, ai_client: AIClient, *, default_currency: str = "USD"):
        self.ai_client = ai_client
        self.default_currency = default_currency
        self.prompts = AIPromptBuilder()
        self.logger = ServiceLogger("assessment")

    @property
    def available(self) -> bool:
        return self.ai_client.configured

    async def assess(
        self,
        vehicle_make: str,
        vehicle_model: str,
        vehicle_year: int,
        service_name: str,
        quoted_amount: float,
        location_hints: list[str] | None = None,
        notes: str | None = None,
        *,
        currency: str | None = None,
    ) -> Assessment:
        """
        Assess one quoted price.

        Args:
            vehicle_make: Vehicle make
            vehicle_model: Vehicle model
            vehicle_year: Model year
            service_name: Free-text service label
            quoted_amount: Total quoted for the line
            location_hints: City, country or region hints
            notes: Extra free-text context
            currency: Working currency; forced onto any inferred range

        Returns:
            Assessment satisfying the output contract

        Raises:
            ProviderUnavailable: No credential is configured
            ProviderResponseInvalid: Both attempts failed
        """
        if not self.available:
            raise ProviderUnavailable()

        currency = currency or self.default_currency
        location = ", ".join(h for h in (location_hints or []) if h) or None
        prompts = {
            AttemptStage.FULL: self.prompts.price_assessment_prompt(
                vehicle=f"{vehicle_year} {vehicle_make} {vehicle_model}",
                service_name=service_name,
                service_key=normalize(service_name),
                quoted_amount=quoted_amount,
                currency=currency,
                location=location,
                notes=notes,
            ),
            AttemptStage.MINIMAL: self.prompts.minimal_assessment_prompt(
                service_name=service_name,
                quoted_amount=quoted_amount,
                currency=currency,
            ),
        }

        stage = AttemptStage.FULL
        failure = ParseFailure("no attempt made")
        while stage is not AttemptStage.DEGRADED:
            outcome = await self._attempt(prompts[stage], currency)
            if isinstance(outcome, Assessment):
                return outcome
            failure = outcome
            self.logger.log_degraded(
                "assess",
                reason=failure.reason,
                stage=stage.value,
                service=service_name,
                raw=failure.raw[:200] or None,
            )
            stage = _NEXT_STAGE[stage]

        raise ProviderResponseInvalid(failure.reason)

    async def _attempt(self, prompt: str, currency: str) -> Assessment | ParseFailure:
        try:
            text = await self.ai_client.generate_text(
                prompt,
                system_prompt=self.prompts.assessment_system_prompt(),
            )
        except httpx.TimeoutException as e:
            return ParseFailure(f"provider timeout: {type(e).__name__}")
        except httpx.HTTPStatusError as e:
            return ParseFailure(f"provider returned HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            return ParseFailure(f"provider transport error: {type(e).__name__}")
        except ValueError as e:
            # Non-JSON HTTP body from the provider
            return ParseFailure(f"non-JSON provider response: {e}")

        return decode_assessment(
            text,
            currency=currency,
            provider=self.ai_client.provider_id,
        )
