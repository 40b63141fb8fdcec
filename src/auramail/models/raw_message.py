"""Raw Gmail message model.

A RawMessage is built fresh from the Gmail API on every sync run and is
discarded once the placement record has been written.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class AttachmentInfo(BaseModel):
    """Descriptor of one attachment part (the content itself is never fetched)."""

    filename: str = Field(min_length=1, description="Attachment file name")
    mime_type: str = Field(default="application/octet-stream", description="MIME type")
    size: int = Field(default=0, ge=0, description="Size in bytes as reported by Gmail")
    attachment_id: str = Field(min_length=1, description="Gmail attachment ID")


class RawMessage(BaseModel):
    """A fetched message with its body decoded and its attachments listed."""

    gmail_message_id: str = Field(description="Gmail message ID")
    thread_id: str | None = Field(default=None, description="Gmail thread ID")
    subject: str = Field(default="No Subject", description="Subject header")
    sender: str = Field(default="Unknown Sender", description="Raw From header")
    snippet: str = Field(default="", description="Gmail preview snippet")
    body: str = Field(default="", description="Decoded text/plain body, possibly truncated")
    attachments: list[AttachmentInfo] = Field(default_factory=list)
    received_at: datetime | None = Field(default=None, description="Gmail internal date")
    date_header: str | None = Field(default=None, description="Raw Date header")

    @property
    def full_text(self) -> str:
        """Subject, snippet and body joined for the text heuristics."""
        return f"{self.subject} {self.snippet} {self.body}"
