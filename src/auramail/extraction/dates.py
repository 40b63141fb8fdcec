"""Free-text date parsing with a plausibility window.

Relative phrases resolve forward ("Friday" is the next Friday). Results more
than two years away from now in either direction are rejected as bad parses.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time

import structlog
from dateparser.search import search_dates
from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

logger = structlog.get_logger()

PLAUSIBLE_YEARS = 2

_NO_DATE_VALUES = frozenset(
    {"null", "n/a", "none", "no deadline", "not mentioned", "unknown"}
)

# Order matters: the first label whose fragment parses wins.
DEADLINE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"deadline[:\s]+([^.]+)", re.IGNORECASE),
    re.compile(r"apply\s+by[:\s]+([^.]+)", re.IGNORECASE),
    re.compile(r"last\s+date[:\s]+([^.]+)", re.IGNORECASE),
    re.compile(r"due\s+on[:\s]+([^.]+)", re.IGNORECASE),
    re.compile(r"registration\s+closes\s+on[:\s]+([^.]+)", re.IGNORECASE),
    re.compile(r"submit\s+before[:\s]+([^.]+)", re.IGNORECASE),
)


# A day number, weekday or day-relative word. Bare month words ("may") and
# bare years ("batch of 2026") do not qualify.
_DAY_REFERENCE = re.compile(
    r"\b\d{1,2}(?:st|nd|rd|th)?\b"
    r"|\b(?:mon|tues?|wed(?:nes)?|thu(?:rs?)?|fri|sat(?:ur)?|sun)(?:day)?\b"
    r"|\b(?:today|tonight|tomorrow|next\s+week|end\s+of\s+(?:the\s+)?week)\b",
    re.IGNORECASE,
)


def names_a_day(fragment: str) -> bool:
    """Whether a matched date fragment pins down a specific day."""
    return bool(_DAY_REFERENCE.search(fragment))


def as_naive(value: datetime) -> datetime:
    """Drop tzinfo, converting aware values to local time first."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def within_years(value: datetime, now: datetime, years: int) -> bool:
    """Whether ``value`` lies within ``years`` calendar years of today's midnight."""
    today = datetime.combine(now.date(), time.min)
    return today - relativedelta(years=years) <= value <= today + relativedelta(years=years)


def parse_date(
    text: str | None,
    reference: datetime | None = None,
    *,
    now: datetime | None = None,
) -> datetime | None:
    """Parse a free-text date expression.

    Args:
        text: Text containing a date, e.g. "apply by Friday" or "2025-11-24".
        reference: Instant relative phrases are resolved against. Defaults to now.
        now: Current instant for the plausibility window. Defaults to datetime.now().

    Returns:
        A naive datetime, or None if nothing plausible was found.
    """
    if not text or not isinstance(text, str):
        return None
    cleaned = text.strip()
    if not cleaned or cleaned.lower() in _NO_DATE_VALUES:
        return None

    now = as_naive(now) if now is not None else datetime.now()
    base = as_naive(reference) if reference is not None else now

    try:
        found = search_dates(
            cleaned,
            languages=["en"],
            settings={"PREFER_DATES_FROM": "future", "RELATIVE_BASE": base},
        )
    except Exception as exc:  # noqa: BLE001 - dateparser raises a variety of errors
        logger.warning("natural_date_parse_failed", text=cleaned[:80], error=str(exc))
        found = None

    for fragment, value in found or ():
        if not names_a_day(fragment):
            continue
        candidate = as_naive(value)
        if within_years(candidate, now, PLAUSIBLE_YEARS):
            return candidate

    if not names_a_day(cleaned):
        return None
    try:
        literal = as_naive(dateutil_parser.parse(cleaned))
    except (ValueError, OverflowError):
        return None

    if within_years(literal, now, PLAUSIBLE_YEARS):
        return literal
    return None


def extract_deadline_date(text: str | None, *, now: datetime | None = None) -> datetime | None:
    """Find a deadline after a label such as "apply by:" and parse it.

    Falls back to parsing the whole text when no label matches.
    """
    if not text:
        return None

    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            parsed = parse_date(match.group(1), now=now)
            if parsed:
                return parsed

    return parse_date(text, now=now)


def format_date_for_storage(value: object) -> str | None:
    """Format a date as zero-padded YYYY-MM-DD; anything else gives None."""
    if not isinstance(value, date):
        return None
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
