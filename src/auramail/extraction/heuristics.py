"""Regex heuristics for placement mail fields.

These run without any external call and back up the AI extraction when it is
unavailable or leaves a field empty. Every function is pure and never raises
on odd input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from urllib.parse import urlsplit

from dateutil import parser as dateutil_parser

from auramail.extraction.dates import as_naive, within_years

# Narrower than the natural-language parser's two years.
HEURISTIC_DEADLINE_YEARS = 1

_MIN_NAME_LENGTH = 2
_MAX_NAME_LENGTH = 100

COMPANY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:from|at)\s+([A-Z][A-Za-z\s&]+?)(?:\s+-|\s+for|\s+is|,)", re.IGNORECASE),
    re.compile(r"\[([A-Z][A-Za-z\s&]+?)\]"),
    re.compile(r"^([A-Z][A-Za-z\s&]+?)(?:\s+-|\s+:)"),
)

ROLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:for|hiring|role|position):\s*([A-Za-z\s]+?)(?:\s+at|\s+-|$)", re.IGNORECASE),
    re.compile(r"([A-Za-z\s]+?)\s+(?:Internship|Role|Position|Opening)", re.IGNORECASE),
)

_MONTH_NAME = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*"

DEADLINE_DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"deadline[:\s]+(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE),
    re.compile(r"apply\s+by[:\s]+(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE),
    re.compile(r"last\s+date[:\s]+(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE),
    re.compile(rf"(\d{{1,2}}\s+{_MONTH_NAME}\s+\d{{4}})", re.IGNORECASE),
    re.compile(r"(\d{4}-\d{2}-\d{2})"),
)

URL_PATTERN = re.compile(r"https?://[^\s<>\"]+|www\.[^\s<>\"]+", re.IGNORECASE)

APPLY_LINK_KEYWORDS: tuple[str, ...] = ("apply", "registration", "form", "career")


@dataclass(frozen=True)
class HeuristicFields:
    """Best-effort values found by the regex heuristics."""

    company: str | None = None
    role: str | None = None
    deadline: date | None = None
    apply_link: str | None = None
    links: list[str] = field(default_factory=list)


def _first_bounded_match(
    patterns: tuple[re.Pattern[str], ...], subject: str, text: str
) -> str | None:
    for pattern in patterns:
        match = pattern.search(subject) or pattern.search(text)
        if match and match.group(1):
            value = match.group(1).strip()
            if _MIN_NAME_LENGTH < len(value) < _MAX_NAME_LENGTH:
                return value
    return None


def extract_company(subject: str, text: str = "") -> str | None:
    """Guess the company name from "at X -", "[X]" or "X - ..." forms."""
    return _first_bounded_match(COMPANY_PATTERNS, subject or "", text or "")


def extract_role(subject: str, text: str = "") -> str | None:
    """Guess the role from "position: X" or "X Internship" forms."""
    return _first_bounded_match(ROLE_PATTERNS, subject or "", text or "")


def extract_deadline(text: str, *, now: datetime | None = None) -> date | None:
    """Find a date-shaped deadline within one year of now."""
    if not text:
        return None
    now = as_naive(now) if now is not None else datetime.now()

    for pattern in DEADLINE_DATE_PATTERNS:
        match = pattern.search(text)
        if not match or not match.group(1):
            continue
        try:
            parsed = as_naive(dateutil_parser.parse(match.group(1)))
        except (ValueError, OverflowError):
            continue
        if within_years(parsed, now, HEURISTIC_DEADLINE_YEARS):
            return parsed.date()
    return None


def extract_links(text: str) -> list[str]:
    """Return every http(s):// or www. token in order of appearance."""
    if not text:
        return []
    return URL_PATTERN.findall(text)


def normalize_url(url: str) -> str:
    """Prefix a bare www. host with https://."""
    return f"https://{url}" if url.lower().startswith("www.") else url


def extract_apply_link(text: str) -> str | None:
    """Pick the most likely application link from the text."""
    links = extract_links(text)
    if not links:
        return None

    selected = next(
        (link for link in links if any(kw in link.lower() for kw in APPLY_LINK_KEYWORDS)),
        links[0],
    )

    candidate = normalize_url(selected)
    try:
        urlsplit(candidate)
    except ValueError:
        return selected
    return candidate


def extract_heuristic_fields(
    subject: str, text: str, *, now: datetime | None = None
) -> HeuristicFields:
    """Run all heuristics over one message."""
    return HeuristicFields(
        company=extract_company(subject, text),
        role=extract_role(subject, text),
        deadline=extract_deadline(text, now=now),
        apply_link=extract_apply_link(text),
        links=extract_links(text),
    )
