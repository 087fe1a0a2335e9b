"""
LLM-based outline generation for compliance kits.

Uses the OpenAI chat-completions endpoint with gpt-4o-mini (or whatever
OPENAI_MODEL is configured to).  Prompts are module-level constants so they
can be tuned without touching logic code.

Public API
----------
build_user_prompt(request)                  -> str
build_messages(request)                     -> List[Dict]
parse_outline(content)                      -> OutlinePlan
fallback_outline(raw)                       -> OutlinePlan
OpenAIOutlineService.generate_outline(req)  -> OutlinePlan

Errors
------
LLMConfigurationError  credential missing; raised before any network call
LLMUpstreamError       non-200 response, timeout or transport failure
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.config import settings
from app.models.schemas import KitRequest, OutlinePlan

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class OutlineServiceError(Exception):
    """Base class for failures that abort a generation request."""


class LLMConfigurationError(OutlineServiceError):
    """The API credential is not configured."""


class LLMUpstreamError(OutlineServiceError):
    """The text-generation provider failed or could not be reached."""


# ---------------------------------------------------------------------------
# Prompt templates — edit these to tune LLM output without touching logic
# ---------------------------------------------------------------------------

DISCLAIMER = "Not legal advice. Not guaranteed compliance."

_SYSTEM_PROMPT = (
    "You generate structured compliance documentation for small U.S. "
    "businesses. Always include disclaimers."
)

_OUTLINE_PROMPT = """
Generate a compliance kit outline for:

Business name: {business_name}
Industry: {industry}
State: {state}
Workers: {employees}
Special risks: {risks}
Kit: {product_name}

Return ONLY the JSON object in this format:

{{
"summary": "...",
"sections": [
{{ "title": "...", "description": "...", "items": ["...", "..."] }}
],
"implementation": "...",
"notes": "...",
"disclaimer": "{disclaimer}"
}}"""

_FALLBACK_SUMMARY = "Generated outline"
_FALLBACK_SECTION_TITLE = "Raw content"
_FALLBACK_SECTION_DESCRIPTION = "Model returned unstructured content. Paste into a document."
_FALLBACK_IMPLEMENTATION = "Review all content and customize for your workplace."
_FALLBACK_NOTES = "Always confirm with a qualified professional before relying on these materials."


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

def build_user_prompt(request: KitRequest) -> str:
    """Embed every supplied field verbatim into the outline prompt."""
    return _OUTLINE_PROMPT.format(
        business_name=request.business_name,
        industry=request.industry,
        state=request.state,
        employees=request.employees or "",
        risks=request.risks or "",
        product_name=request.product_name,
        disclaimer=DISCLAIMER,
    )


def build_messages(request: KitRequest) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(request)},
    ]


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def fallback_outline(raw: str) -> OutlinePlan:
    """Deterministic plan wrapping unparseable model output."""
    return OutlinePlan(
        summary=_FALLBACK_SUMMARY,
        sections=[
            {
                "title": _FALLBACK_SECTION_TITLE,
                "description": _FALLBACK_SECTION_DESCRIPTION,
                "items": [raw],
            }
        ],
        implementation=_FALLBACK_IMPLEMENTATION,
        notes=_FALLBACK_NOTES,
        disclaimer=DISCLAIMER,
    )


def _salvage_outline(parsed: Dict[str, Any], exc: ValidationError) -> Optional[OutlinePlan]:
    """
    Drop the parts of *parsed* named in *exc* and validate what is left.

    A section that fails validation is removed on its own; any other failing
    top-level field is removed whole.  Returns ``None`` when none of the
    outline fields carry content afterwards.
    """
    kept = dict(parsed)
    bad_sections = set()
    for error in exc.errors():
        loc = error["loc"]
        if len(loc) > 1 and loc[0] == "sections" and isinstance(loc[1], int):
            bad_sections.add(loc[1])
        else:
            kept.pop(loc[0], None)

    if bad_sections and isinstance(kept.get("sections"), list):
        kept["sections"] = [
            section for index, section in enumerate(kept["sections"])
            if index not in bad_sections
        ]

    if not any(kept.get(name) for name in OutlinePlan.model_fields):
        return None
    try:
        return OutlinePlan.model_validate(kept)
    except ValidationError:
        return None


def parse_outline(content: Optional[str]) -> OutlinePlan:
    """
    Parse the model's message content as an ``OutlinePlan``.

    Anything that is not a JSON object is wrapped in the fallback plan.  An
    object with some misshapen parts keeps the parts that fit; it falls back
    only when nothing usable remains.  The raw text is logged so operators
    can review what the model actually returned.
    """
    raw = content if isinstance(content, str) else ""

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        logger.warning(
            "parse_outline: model output is not JSON, using fallback plan. Raw: %r",
            raw,
        )
        return fallback_outline(raw)

    if not isinstance(parsed, dict):
        logger.warning(
            "parse_outline: model returned %s instead of an object, using fallback plan. Raw: %r",
            type(parsed).__name__,
            raw,
        )
        return fallback_outline(raw)

    try:
        return OutlinePlan.model_validate(parsed)
    except ValidationError as exc:
        plan = _salvage_outline(parsed, exc)
        if plan is None:
            logger.warning(
                "parse_outline: outline shape mismatch (%d errors), using fallback plan. Raw: %r",
                exc.error_count(),
                raw,
            )
            return fallback_outline(raw)
        logger.warning(
            "parse_outline: dropped %d misshapen outline parts. Raw: %r",
            exc.error_count(),
            raw,
        )
        return plan


# ---------------------------------------------------------------------------
# Main service class
# ---------------------------------------------------------------------------

class OpenAIOutlineService:
    """
    Outline generation via OpenAI /chat/completions.

    One call per request: no retries, no caching.  Timeouts and transport
    errors surface as ``LLMUpstreamError`` so they share the generic failure
    path with non-200 responses.
    """

    CHAT_COMPLETIONS_PATH = "/chat/completions"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.temperature = (
            temperature if temperature is not None else settings.OPENAI_TEMPERATURE
        )
        self.timeout_seconds = float(timeout or settings.OPENAI_TIMEOUT)
        self.timeout = httpx.Timeout(self.timeout_seconds, connect=10.0)
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate_outline(self, request: KitRequest) -> OutlinePlan:
        """Ask the model for an outline of *request*'s kit and parse it."""
        content = await self._call_llm(build_messages(request))
        return parse_outline(content)

    async def _call_llm(self, messages: List[Dict[str, str]]) -> Optional[str]:
        """
        POST *messages* to the chat-completions endpoint.

        Returns the first choice's message content (``None`` if the provider
        sent none).  Raises instead of returning an empty string: a failed
        call must fail the request, never degrade it silently.
        """
        if not self.api_key:
            raise LLMConfigurationError("OPENAI_API_KEY not set in environment variables.")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}{self.CHAT_COMPLETIONS_PATH}",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            logger.error("_call_llm: request timed out after %.0f s", self.timeout_seconds)
            raise LLMUpstreamError(
                f"OpenAI request timed out after {self.timeout_seconds:.0f} s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("_call_llm: transport error — %s", exc)
            raise LLMUpstreamError(f"OpenAI request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                "_call_llm: OpenAI returned HTTP %d: %s",
                resp.status_code,
                resp.text[:300],
            )
            raise LLMUpstreamError(f"OpenAI error: {resp.text}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMUpstreamError(f"OpenAI returned a non-JSON body: {resp.text[:300]}") from exc

        return self._first_choice_content(data)

    @staticmethod
    def _first_choice_content(data: Any) -> Optional[str]:
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("_call_llm: response carried no choices[0].message.content")
            return None
