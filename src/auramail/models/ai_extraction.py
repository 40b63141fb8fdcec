"""Response contract of the LLM field extraction.

Keys use the camelCase names requested in the prompt; Python code reads the
snake_case attributes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

BULLET = "\n• "

_TEXT_BLOCK_FIELDS = (
    "eligibility",
    "timings",
    "salary",
    "location",
    "event_details",
    "requirements",
    "description",
    "attachment_summary",
)


class AIExtraction(BaseModel):
    """Structured fields returned by the text-generation provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str | None = None
    category: str | None = None
    company: str | None = None
    role: str | None = None
    deadline: str | None = Field(default=None, description="YYYY-MM-DD, or a fallback placeholder")
    apply_link: str | None = Field(default=None, alias="applyLink")
    other_links: list[str] = Field(default_factory=list, alias="otherLinks")
    eligibility: str | None = None
    timings: str | None = None
    salary: str | None = None
    location: str | None = None
    event_details: str | None = Field(default=None, alias="eventDetails")
    requirements: str | None = None
    description: str | None = None
    attachment_summary: str | None = Field(default=None, alias="attachmentSummary")

    is_fallback: bool = Field(
        default=False,
        description="True when the provider was unavailable and this is a stand-in result",
    )

    @field_validator(*_TEXT_BLOCK_FIELDS, mode="before")
    @classmethod
    def _coerce_text_block(cls, value: Any) -> Any:
        # Models sometimes answer with native lists despite the bullet rule.
        if isinstance(value, (list, tuple)):
            items = [str(v).strip() for v in value if v is not None and str(v).strip()]
            return "".join(BULLET + item for item in items) if items else None
        if value is not None and not isinstance(value, str):
            return str(value)
        return value

    @field_validator("summary", "company", "role", "deadline", "apply_link", mode="before")
    @classmethod
    def _coerce_scalar(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            return str(value)
        return value

    @field_validator("other_links", mode="before")
    @classmethod
    def _coerce_links(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if isinstance(v, str) and v.strip()]
