"""Placement field extraction using a text-generation provider.

This module is best-effort: provider failures, malformed responses and
timeouts all resolve to a deterministic fallback and never raise.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Sequence
from typing import Any, Literal, Optional

import structlog

from auramail.ai.cache import ResponseCache
from auramail.ai.client import CompletionClient
from auramail.ai.prompt import SYSTEM_PROMPT, build_extraction_prompt
from auramail.config import Settings
from auramail.exceptions import AIExtractionError
from auramail.models import AIExtraction, AttachmentInfo, Category

logger = structlog.get_logger()

CACHE_KEY_LENGTH = 100

SENTINEL_VALUES = frozenset({"", "null", "N/A", "not mentioned", "None"})

ERROR_DEADLINE = "No deadline"
UNKNOWN_SUMMARY = "Unknown email"

_SUMMARY_LIMIT = 30
_SUMMARY_CUT = 27

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.S)

FallbackReason = Literal["unconfigured", "error"]


def cache_key(subject: str, snippet: str) -> str:
    return f"{subject}: {snippet}"[:CACHE_KEY_LENGTH]


def fallback_summary(subject: str | None) -> str:
    """Subject as-is up to 30 characters, else its first 27 plus "..."."""
    if not subject:
        return UNKNOWN_SUMMARY
    if len(subject) > _SUMMARY_LIMIT:
        return subject[:_SUMMARY_CUT] + "..."
    return subject


def fallback_extraction(subject: str | None, reason: FallbackReason) -> AIExtraction:
    """Build the stand-in result used when the provider cannot answer.

    Args:
        subject: Email subject the summary is derived from.
        reason: "unconfigured" when no provider is set up (deadline is None),
            "error" after a failed or timed-out call (deadline is "No deadline").

    Returns:
        An AIExtraction with ``is_fallback`` set.
    """
    return AIExtraction(
        summary=fallback_summary(subject),
        category=Category.MISC.value,
        deadline=None if reason == "unconfigured" else ERROR_DEADLINE,
        is_fallback=True,
    )


def extract_json_object(raw: str) -> dict[str, Any]:
    """Extract the first JSON object from a raw model response."""
    raw = (raw or "").strip()
    if not raw:
        raise AIExtractionError("empty model response")

    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(raw)
        if not match:
            raise AIExtractionError("model response did not contain a JSON object") from None
        try:
            obj = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AIExtractionError(f"model response was not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise AIExtractionError("model response JSON was not an object")
    return obj


def normalize_ai_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Normalise a decoded provider response in place of the raw dict.

    Sentinel strings become None, a scalar ``otherLinks`` is wrapped in a
    list, and a category outside the fixed set is dropped.
    """
    normalized: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, str) and value.strip() in SENTINEL_VALUES:
            value = None
        normalized[key] = value

    links = normalized.get("otherLinks")
    if links is not None and not isinstance(links, list):
        normalized["otherLinks"] = [links]

    if "category" in normalized:
        category = Category.parse(normalized["category"])
        if category is None and normalized["category"] is not None:
            logger.warning("ai_category_unknown", category=str(normalized["category"])[:50])
        normalized["category"] = category.value if category else None

    return normalized


class AIExtractor:
    """Cached, time-bounded wrapper around a completion client."""

    def __init__(
        self,
        client: Optional[CompletionClient],
        cache: Optional[ResponseCache[AIExtraction]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        from auramail.config import get_settings

        self.settings = settings or get_settings()
        self.client = client
        self.cache = cache or ResponseCache(
            ttl=self.settings.cache_ttl,
            max_size=self.settings.cache_max_size,
            trim_interval=self.settings.cache_trim_interval,
        )

    async def analyze_email(
        self,
        subject: str,
        snippet: str,
        body: str | None = None,
        attachments: Sequence[AttachmentInfo] | None = None,
    ) -> AIExtraction:
        """Extract placement fields from one email.

        The provider call is bounded by ``ai_timeout_seconds``. Successful
        results and fallbacks are cached under the same key.

        Returns:
            Parsed extraction, or a fallback when the provider is not
            configured, fails, or times out.
        """
        key = cache_key(subject, snippet)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("ai_cache_hit", key=key)
            return cached

        if self.client is None:
            result = fallback_extraction(subject, "unconfigured")
            self.cache.set(key, result)
            return result

        prompt = build_extraction_prompt(
            subject=subject,
            snippet=snippet,
            body=body,
            attachments=attachments,
            body_limit=self.settings.ai_body_limit,
        )

        try:
            raw = await asyncio.wait_for(
                self.client.complete(
                    SYSTEM_PROMPT,
                    prompt,
                    max_tokens=self.settings.ai_max_tokens,
                    temperature=self.settings.ai_temperature,
                    json_mode=True,
                ),
                timeout=self.settings.ai_timeout_seconds,
            )
            payload = normalize_ai_payload(extract_json_object(raw))
            result = AIExtraction.model_validate(payload)
        except asyncio.TimeoutError:
            logger.warning(
                "ai_analysis_timeout",
                subject=subject[:80],
                timeout=self.settings.ai_timeout_seconds,
            )
            result = fallback_extraction(subject, "error")
        except Exception as e:
            logger.error("ai_analysis_failed", subject=subject[:80], error=str(e))
            result = fallback_extraction(subject, "error")

        self.cache.set(key, result)
        return result
