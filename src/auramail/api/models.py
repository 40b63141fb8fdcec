"""API models for the AuraMail HTTP surface."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from auramail.models import AttachmentInfo, PlacementRecord


class SyncRequest(BaseModel):
    user_id: str = Field(min_length=1)
    access_token: str | None = Field(
        default=None,
        description="Gmail access token; the stored token is used when omitted",
    )
    query: str | None = None


class SyncResponse(BaseModel):
    saved: int
    skipped: int
    errors: int
    total: int


class ReviewRequest(BaseModel):
    user_id: str = Field(min_length=1)
    reviewed_by: str = Field(min_length=1)


class PlacementItem(BaseModel):
    id: int
    gmail_message_id: str
    subject: str
    sender: str
    snippet: str
    received_at: datetime | None = None
    category: str | None = None
    summary: str | None = None
    company: str | None = None
    role: str | None = None
    deadline: date | None = None
    apply_link: str | None = None
    other_links: list[str]
    attachments: list[AttachmentInfo]
    eligibility: str | None = None
    timings: str | None = None
    salary: str | None = None
    location: str | None = None
    event_details: str | None = None
    requirements: str | None = None
    description: str | None = None
    attachment_summary: str | None = None
    has_anomaly: bool
    anomalies: list[str]
    anomaly_severity: str | None = None
    requires_review: bool
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: PlacementRecord) -> PlacementItem:
        fields = record.fields
        anomaly = record.anomaly
        return cls(
            id=record.id or 0,
            gmail_message_id=record.gmail_message_id,
            subject=record.subject,
            sender=record.sender,
            snippet=record.snippet,
            received_at=record.received_at,
            category=fields.category.value if fields.category else None,
            summary=fields.summary,
            company=fields.company,
            role=fields.role,
            deadline=fields.deadline,
            apply_link=fields.apply_link,
            other_links=fields.other_links,
            attachments=record.attachments,
            eligibility=fields.eligibility,
            timings=fields.timings,
            salary=fields.salary,
            location=fields.location,
            event_details=fields.event_details,
            requirements=fields.requirements,
            description=fields.description,
            attachment_summary=fields.attachment_summary,
            has_anomaly=anomaly.has_anomaly,
            anomalies=anomaly.anomalies,
            anomaly_severity=anomaly.severity.value if anomaly.has_anomaly else None,
            requires_review=anomaly.requires_review,
            reviewed_by=record.reviewed_by,
            reviewed_at=record.reviewed_at,
        )


class PlacementListResponse(BaseModel):
    count: int
    total: int
    page: int
    total_pages: int
    emails: list[PlacementItem]


class ReviewQueueResponse(BaseModel):
    count: int
    emails: list[PlacementItem]
