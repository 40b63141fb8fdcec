"""Merging AI output with regex heuristics."""

from __future__ import annotations

from datetime import date, datetime

import structlog
from dateutil import parser as dateutil_parser

from auramail.extraction.dates import as_naive, extract_deadline_date, parse_date
from auramail.extraction.heuristics import HeuristicFields, normalize_url
from auramail.models import AIExtraction, Category, DeadlineSource, ExtractedFields

logger = structlog.get_logger()

# AI deadline values that mean "no deadline" and skip the AI stages.
_NO_AI_DEADLINE = frozenset({"null", "No deadline"})

_SENTINELS = frozenset({"", "null", "N/A", "not mentioned", "None"})


def _present(value: str | None) -> str | None:
    if value is None:
        return None
    return None if value.strip() in _SENTINELS else value


def resolve_deadline(
    ai_deadline: str | None,
    heuristic_deadline: date | None,
    full_text: str,
    *,
    now: datetime | None = None,
) -> tuple[date | None, DeadlineSource]:
    """Pick the final deadline from four ordered sources.

    1. the AI deadline through the natural-language parser;
    2. the AI deadline through a plain literal parse, without a plausibility window;
    3. the regex heuristic deadline;
    4. a labelled-phrase scan of the whole text.

    The first stage that yields a date wins.
    """
    if ai_deadline and ai_deadline.strip() and ai_deadline not in _NO_AI_DEADLINE:
        parsed = parse_date(ai_deadline, now=now)
        if parsed is not None:
            return parsed.date(), DeadlineSource.AI_PARSED

        logger.debug("ai_deadline_unparsed", deadline=ai_deadline[:80])
        try:
            native = as_naive(dateutil_parser.parse(ai_deadline))
        except (ValueError, OverflowError):
            native = None
        if native is not None:
            return native.date(), DeadlineSource.AI_NATIVE

    if heuristic_deadline is not None:
        return heuristic_deadline, DeadlineSource.HEURISTIC

    scanned = extract_deadline_date(full_text, now=now)
    if scanned is not None:
        return scanned.date(), DeadlineSource.TEXT_SCAN

    return None, DeadlineSource.NONE


def merge_other_links(
    ai_links: list[str], text_links: list[str], apply_link: str | None
) -> list[str]:
    """AI links (or the text's links when the AI gave none), deduplicated, without the apply link."""
    source = ai_links or [normalize_url(link) for link in text_links]
    merged: list[str] = []
    for link in source:
        if not link or link == apply_link or link in merged:
            continue
        merged.append(link)
    return merged


def merge_fields(
    ai: AIExtraction | None,
    heuristics: HeuristicFields,
    full_text: str,
    *,
    now: datetime | None = None,
) -> ExtractedFields:
    """Combine AI and heuristic values, preferring present AI values.

    A missing AI result (or a missing/unknown AI category) leaves the
    category as "announcement".
    """
    ai = ai or AIExtraction()

    apply_link = _present(ai.apply_link) or heuristics.apply_link
    deadline, source = resolve_deadline(ai.deadline, heuristics.deadline, full_text, now=now)

    return ExtractedFields(
        category=Category.parse(ai.category) or Category.ANNOUNCEMENT,
        summary=_present(ai.summary),
        company=_present(ai.company) or heuristics.company,
        role=_present(ai.role) or heuristics.role,
        deadline=deadline,
        deadline_source=source,
        apply_link=apply_link,
        other_links=merge_other_links(ai.other_links, heuristics.links, apply_link),
        eligibility=_present(ai.eligibility),
        timings=_present(ai.timings),
        salary=_present(ai.salary),
        location=_present(ai.location),
        event_details=_present(ai.event_details),
        requirements=_present(ai.requirements),
        description=_present(ai.description),
        attachment_summary=_present(ai.attachment_summary),
    )
