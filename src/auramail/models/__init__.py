"""Data models for AuraMail.

This module contains Pydantic models for data validation and serialization.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from auramail.models.ai_extraction import AIExtraction
from auramail.models.raw_message import AttachmentInfo, RawMessage


class Category(str, Enum):
    """Placement mail category enumeration."""

    INTERNSHIP = "internship"
    JOB_OFFER = "job offer"
    EXAM = "exam"
    REMINDER = "reminder"
    ANNOUNCEMENT = "announcement"
    MISC = "misc"

    @classmethod
    def parse(cls, value: object) -> Optional["Category"]:
        """Map a free-form value onto the enumeration, or None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return None


class Severity(str, Enum):
    """Anomaly severity, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, floor: "Severity") -> "Severity":
        """Return the higher of this severity and ``floor``."""
        return floor if floor.rank > self.rank else self


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class DeadlineSource(str, Enum):
    """Which stage of the deadline cascade produced the final deadline."""

    AI_PARSED = "ai_parsed"
    AI_NATIVE = "ai_native"
    HEURISTIC = "heuristic"
    TEXT_SCAN = "text_scan"
    NONE = "none"


class ExtractedFields(BaseModel):
    """Fields derived for one message after merging AI and heuristic output."""

    category: Category | None = Field(default=None, description="Assigned category")
    summary: str | None = None
    company: str | None = None
    role: str | None = None
    deadline: date | None = None
    deadline_source: DeadlineSource = DeadlineSource.NONE
    apply_link: str | None = None
    other_links: list[str] = Field(default_factory=list)
    eligibility: str | None = None
    timings: str | None = None
    salary: str | None = None
    location: str | None = None
    event_details: str | None = None
    requirements: str | None = None
    description: str | None = None
    attachment_summary: str | None = None


class AnomalyReport(BaseModel):
    """Result of running the anomaly rules over one message."""

    has_anomaly: bool = False
    anomalies: list[str] = Field(default_factory=list)
    severity: Severity = Severity.LOW
    requires_review: bool = False


class PlacementRecord(BaseModel):
    """A persisted placement mail row."""

    id: int | None = Field(default=None, description="Database row ID")
    user_id: str = Field(description="Mailbox owner")
    gmail_message_id: str = Field(description="Provider message ID")
    subject: str
    sender: str
    snippet: str = ""
    body: str = ""
    received_at: datetime | None = None
    date_header: str | None = None
    attachments: list[AttachmentInfo] = Field(default_factory=list)
    fields: ExtractedFields = Field(default_factory=ExtractedFields)
    anomaly: AnomalyReport = Field(default_factory=AnomalyReport)
    raw_ai_output: str | None = Field(default=None, description="AI response as JSON text")
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None


class SyncResult(BaseModel):
    """Aggregate counts of one ingestion run."""

    saved: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0


class GmailToken(BaseModel):
    """Stored OAuth tokens for one user's mailbox."""

    user_id: str
    access_token: str
    refresh_token: str | None = None
    expiry_date: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "AIExtraction",
    "AnomalyReport",
    "AttachmentInfo",
    "Category",
    "DeadlineSource",
    "ExtractedFields",
    "GmailToken",
    "PlacementRecord",
    "RawMessage",
    "Severity",
    "SyncResult",
]
