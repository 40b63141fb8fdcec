"""Rule-based anomaly detection for extracted placement fields.

Every rule is evaluated; each one that fires appends its message and raises
the report severity to at least the rule's severity. Severity never drops.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from urllib.parse import urlsplit

from auramail.extraction.dates import as_naive
from auramail.models import AnomalyReport, Category, ExtractedFields, Severity

REVIEW_ANOMALY_COUNT = 3
PAST_DEADLINE_DAYS = 30
FUTURE_DEADLINE_DAYS = 365

NO_ANOMALIES = "No anomalies detected"
REVIEW_MARKER = "⚠️  REQUIRES HUMAN REVIEW"

_OPPORTUNITY = (Category.JOB_OFFER, Category.INTERNSHIP)
_FULL_TIME_KEYWORDS = ("full-time", "full time", "placement", "permanent")


@dataclass(frozen=True)
class _RuleInput:
    fields: ExtractedFields
    subject: str
    body: str
    now: datetime

    @property
    def subject_lower(self) -> str:
        return self.subject.lower()

    @property
    def deadline_at(self) -> datetime | None:
        if self.fields.deadline is None:
            return None
        return datetime.combine(self.fields.deadline, time.min)


@dataclass(frozen=True)
class AnomalyRule:
    message: str
    severity: Severity
    applies: Callable[[_RuleInput], bool]


def is_valid_url(url: str | None) -> bool:
    """Whether ``url`` is an absolute http(s) URL, accepting a bare www. host."""
    if not url:
        return False
    candidate = f"https://{url}" if url.startswith("www.") else url
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _intern_in_job_subject(s: _RuleInput) -> bool:
    return "intern" in s.subject_lower and "international" not in s.subject_lower


def _full_time_in_internship_subject(s: _RuleInput) -> bool:
    return any(kw in s.subject_lower for kw in _FULL_TIME_KEYWORDS)


RULES: tuple[AnomalyRule, ...] = (
    AnomalyRule(
        "Missing company name for job/internship opportunity",
        Severity.HIGH,
        lambda s: s.fields.category in _OPPORTUNITY and not s.fields.company,
    ),
    AnomalyRule(
        "Missing role/position for job/internship opportunity",
        Severity.MEDIUM,
        lambda s: s.fields.category in _OPPORTUNITY and not s.fields.role,
    ),
    AnomalyRule(
        "Missing application link for job/internship",
        Severity.MEDIUM,
        lambda s: s.fields.category in _OPPORTUNITY and not s.fields.apply_link,
    ),
    AnomalyRule(
        'Subject mentions "intern" but categorized as job offer',
        Severity.MEDIUM,
        lambda s: s.fields.category == Category.JOB_OFFER and _intern_in_job_subject(s),
    ),
    AnomalyRule(
        "Subject mentions full-time/placement but categorized as internship",
        Severity.MEDIUM,
        lambda s: s.fields.category == Category.INTERNSHIP
        and _full_time_in_internship_subject(s),
    ),
    AnomalyRule(
        "Exam categorized email has company/role fields filled",
        Severity.MEDIUM,
        lambda s: s.fields.category == Category.EXAM
        and bool(s.fields.company or s.fields.role),
    ),
    AnomalyRule(
        "Deadline is more than 30 days in the past",
        Severity.LOW,
        lambda s: s.deadline_at is not None
        and s.deadline_at < s.now - timedelta(days=PAST_DEADLINE_DAYS),
    ),
    AnomalyRule(
        "Deadline is more than 1 year in the future",
        Severity.LOW,
        lambda s: s.deadline_at is not None
        and s.deadline_at > s.now + timedelta(days=FUTURE_DEADLINE_DAYS),
    ),
    AnomalyRule(
        "Salary mentioned but no company identified",
        Severity.MEDIUM,
        lambda s: bool(s.fields.salary) and not s.fields.company,
    ),
    AnomalyRule(
        "Application link present but no company or role identified",
        Severity.MEDIUM,
        lambda s: bool(s.fields.apply_link) and not s.fields.company and not s.fields.role,
    ),
    AnomalyRule(
        "Categorized as misc but has structured job/internship data",
        Severity.HIGH,
        lambda s: s.fields.category == Category.MISC
        and bool(s.fields.company or s.fields.role or s.fields.apply_link or s.fields.salary),
    ),
    AnomalyRule(
        "No category assigned to email",
        Severity.MEDIUM,
        lambda s: s.fields.category is None,
    ),
    AnomalyRule(
        "Apply link appears to be invalid URL",
        Severity.MEDIUM,
        lambda s: bool(s.fields.apply_link) and not is_valid_url(s.fields.apply_link),
    ),
)


def detect_anomalies(
    fields: ExtractedFields,
    subject: str = "",
    body: str = "",
    *,
    now: datetime | None = None,
) -> AnomalyReport:
    """Run every rule over the merged fields of one message.

    Args:
        fields: Merged extraction result.
        subject: Raw subject, used by the keyword rules.
        body: Raw body.
        now: Reference instant for the deadline rules. Defaults to datetime.now().

    Returns:
        Report with fired messages in rule order. Review is required when the
        severity is high or at least three rules fired.
    """
    target = _RuleInput(
        fields=fields,
        subject=subject or "",
        body=body or "",
        now=as_naive(now) if now is not None else datetime.now(),
    )

    anomalies: list[str] = []
    severity = Severity.LOW
    for rule in RULES:
        if rule.applies(target):
            anomalies.append(rule.message)
            severity = severity.at_least(rule.severity)

    return AnomalyReport(
        has_anomaly=bool(anomalies),
        anomalies=anomalies,
        severity=severity,
        requires_review=severity == Severity.HIGH or len(anomalies) >= REVIEW_ANOMALY_COUNT,
    )


def format_anomaly_report(report: AnomalyReport) -> str:
    """Render a report as a header line, numbered anomalies and a review marker."""
    if not report.has_anomaly:
        return NO_ANOMALIES

    lines = [f"[{report.severity.value.upper()}] {len(report.anomalies)} anomaly(ies) detected"]
    lines.extend(f"  {i}. {message}" for i, message in enumerate(report.anomalies, start=1))
    if report.requires_review:
        lines.append(REVIEW_MARKER)
    return "\n".join(lines)
