"""Pytest configuration and shared fixtures."""

import asyncio
import base64
import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest

FIXED_NOW = datetime(2025, 6, 1, 10, 0)


def encode_body(text: str) -> str:
    """Encode text the way Gmail returns body data (base64url, unpadded)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def build_gmail_message(
    message_id: str,
    subject: str | None,
    body: str = "",
    *,
    sender: str | None = "Placement Cell <placement@college.edu>",
    snippet: str | None = None,
    received_at: datetime | None = datetime(2025, 5, 30, 9, 0),
    attachments: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a Gmail API message (format=full) with a multipart payload."""
    headers = [{"name": "Date", "value": "Fri, 30 May 2025 09:00:00 +0530"}]
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})
    if sender is not None:
        headers.append({"name": "From", "value": sender})

    parts: list[dict[str, Any]] = [
        {
            "partId": "0",
            "mimeType": "multipart/alternative",
            "filename": "",
            "body": {"size": 0},
            "parts": [
                {
                    "partId": "0.0",
                    "mimeType": "text/plain",
                    "filename": "",
                    "body": {"size": len(body), "data": encode_body(body)},
                },
                {
                    "partId": "0.1",
                    "mimeType": "text/html",
                    "filename": "",
                    "body": {"size": 0, "data": encode_body(f"<p>{body}</p>")},
                },
            ],
        }
    ]
    for index, attachment in enumerate(attachments or [], start=1):
        parts.append(
            {
                "partId": str(index),
                "mimeType": attachment.get("mimeType", "application/pdf"),
                "filename": attachment["filename"],
                "body": {
                    "attachmentId": attachment.get("attachmentId", f"att-{index}"),
                    "size": attachment.get("size", 2048),
                },
            }
        )

    message: dict[str, Any] = {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "snippet": snippet if snippet is not None else body[:100],
        "payload": {
            "partId": "",
            "mimeType": "multipart/mixed",
            "headers": headers,
            "body": {"size": 0},
            "parts": parts,
        },
    }
    if received_at is not None:
        message["internalDate"] = str(int(received_at.timestamp() * 1000))
    return message


class FakeGmailClient:
    """In-memory stand-in for GmailClient."""

    def __init__(self, messages: list[dict[str, Any]] | None = None) -> None:
        self.messages: dict[str, dict[str, Any]] = {}
        self.errors: dict[str, Exception] = {}
        self.list_error: Exception | None = None
        self.list_calls: list[tuple[str | None, int | None]] = []
        self.get_calls: list[str] = []
        for message in messages or []:
            self.add(message)

    def add(self, message: dict[str, Any]) -> None:
        self.messages[message["id"]] = message

    async def list_messages(
        self, query: str | None = None, max_results: int | None = None
    ) -> list[dict[str, Any]]:
        self.list_calls.append((query, max_results))
        if self.list_error is not None:
            raise self.list_error
        ids = list(self.messages)[: max_results or None]
        return [{"id": message_id, "threadId": f"thread-{message_id}"} for message_id in ids]

    async def get_message(self, message_id: str, *, format: str = "full") -> dict[str, Any]:
        self.get_calls.append(message_id)
        if message_id in self.errors:
            raise self.errors[message_id]
        return self.messages[message_id]


class FakeCompletionClient:
    """Completion client returning canned JSON.

    ``response`` may be a dict, a raw string, or a callable receiving the
    user prompt and returning a dict.
    """

    def __init__(
        self,
        response: dict[str, Any] | str | Callable[[str], dict[str, Any]] | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response if response is not None else {}
        self.error = error
        self.delay = delay
        self.calls = 0
        self.prompts: list[str] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str:
        self.calls += 1
        self.prompts.append(user_prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.response, str):
            return self.response
        if callable(self.response):
            return json.dumps(self.response(user_prompt))
        return json.dumps(self.response)


@pytest.fixture
def fixed_now() -> datetime:
    """Provide the reference instant used by date-dependent tests."""
    return FIXED_NOW


@pytest.fixture
def settings(tmp_path):
    """Provide settings backed by a throwaway SQLite file with no delays."""
    from auramail.config import Settings

    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'auramail.sqlite3'}",
        openai_api_key=None,
        message_delay=0.0,
        batch_delay=0.0,
        retry_delay=0.0,
        gmail_credentials_path=tmp_path / "credentials.json",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def repository(settings):
    """Provide an initialized placement repository."""
    from auramail.storage.repository import PlacementRepository

    repo = PlacementRepository.from_settings(settings)
    repo.initialize()
    return repo


@pytest.fixture
def encode() -> Callable[[str], str]:
    """Provide the Gmail body encoder."""
    return encode_body


@pytest.fixture
def make_message() -> Callable[..., dict[str, Any]]:
    """Provide the Gmail message builder."""
    return build_gmail_message


@pytest.fixture
def fake_gmail() -> FakeGmailClient:
    """Provide an empty in-memory Gmail client."""
    return FakeGmailClient()


@pytest.fixture
def completion_client() -> type[FakeCompletionClient]:
    """Provide the fake completion client class."""
    return FakeCompletionClient


@pytest.fixture
def sleeps() -> list[float]:
    """Collect the delays requested through ``fake_sleep``."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Provide an awaitable sleep that records its argument and returns at once."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def sample_placement_body() -> str:
    """Provide a realistic placement drive email body."""
    return (
        "Dear students,\n\n"
        "Acme Corp is hiring for the position: Software Engineer Intern - Bangalore.\n"
        "Stipend: 40,000 per month.\n"
        "Apply by: 15 June 2025. Register here: https://forms.example.com/apply/acme "
        "More details at https://acme.example.com/careers/info\n\n"
        "Regards,\nPlacement Cell"
    )
