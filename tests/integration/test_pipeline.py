"""End-to-end ingestion through the real Gmail client, AI extractor and store.

The Gmail service resource and the completion provider are in-process fakes;
everything between them runs for real against a SQLite file.
"""

from datetime import date
from typing import Any

import pytest
from sqlalchemy import func, select

from auramail.gmail.client import GmailClient
from auramail.models import Category, DeadlineSource
from auramail.services import build_services
from auramail.storage.schema import email


class FakeGmailService:
    """Mimics ``users().messages().list/get(...).execute()``."""

    def __init__(self, messages: list[dict[str, Any]]) -> None:
        self._messages = {m["id"]: m for m in messages}
        self._pending: Any = None

    def users(self) -> "FakeGmailService":
        return self

    def messages(self) -> "FakeGmailService":
        return self

    def list(self, **kwargs: Any) -> "FakeGmailService":
        self._pending = {"messages": [{"id": i, "threadId": f"thread-{i}"} for i in self._messages]}
        return self

    def get(self, *, userId: str, id: str, format: str) -> "FakeGmailService":
        self._pending = self._messages[id]
        return self

    def execute(self) -> Any:
        return self._pending


def _provider_response(prompt: str) -> dict[str, Any]:
    if "Subject: [Acme Corp] Internship Drive" in prompt:
        return {
            "summary": "Acme Corp is hiring software engineering interns in Bangalore.",
            "category": "internship",
            "company": "Acme Corp",
            "role": "Software Engineer Intern",
            "deadline": "2025-06-15",
            "applyLink": "https://forms.example.com/apply/acme",
            "otherLinks": ["https://acme.example.com/careers/info"],
            "salary": ["40,000 per month"],
            "location": "Bangalore",
        }
    if "Subject: Campus recruitment update" in prompt:
        return {"summary": "A recruitment drive is planned.", "category": "job offer"}
    return {"unexpected": True, "category": "not a category"}


@pytest.mark.integration
class TestPipeline:
    """Integration tests for a full sync run."""

    @pytest.fixture
    def mailbox(self, make_message, sample_placement_body) -> list[dict[str, Any]]:
        return [
            make_message("m1", "[Acme Corp] Internship Drive", sample_placement_body),
            make_message("m2", "Campus recruitment update", "Details will follow."),
            make_message("m3", "Aptitude test schedule", "Test on 10 June 2025 in Lab 3"),
        ]

    @pytest.fixture
    def services(self, settings, mailbox, completion_client, fixed_now, fake_sleep):
        services = build_services(settings)
        provider = completion_client(_provider_response)
        services.ingestor.ai_extractor.client = provider
        services.ingestor._gmail_factory = lambda token: GmailClient(
            token, settings, service=FakeGmailService(mailbox), sleep=fake_sleep
        )
        services.ingestor._sleep = fake_sleep
        services.ingestor._now = lambda: fixed_now
        services.token_provider.store_tokens("u1", "access-token")
        return services

    @pytest.mark.asyncio
    async def test_sync_stores_flags_and_is_idempotent(self, services) -> None:
        """Test a first run stores everything and a second run stores nothing."""
        token = services.token_provider.get_valid_access_token("u1")
        provider = services.ingestor.ai_extractor.client

        first = await services.ingestor.sync("u1", token)

        assert (first.saved, first.skipped, first.errors, first.total) == (3, 0, 0, 3)
        assert provider.calls == 3

        second = await services.ingestor.sync("u1", token)

        assert (second.saved, second.skipped, second.errors, second.total) == (0, 3, 0, 3)
        assert provider.calls == 3
        assert services.repository.count("u1") == 3

    @pytest.mark.asyncio
    async def test_records_reflect_ai_heuristics_and_rules(self, services) -> None:
        """Test the merged fields and anomaly flags of each stored message."""
        await services.ingestor.sync("u1", "access-token")
        records = {
            r.gmail_message_id: r for r in services.repository.list_placements("u1").records
        }

        internship = records["m1"]
        assert internship.fields.category is Category.INTERNSHIP
        assert internship.fields.company == "Acme Corp"
        assert internship.fields.deadline == date(2025, 6, 15)
        assert internship.fields.deadline_source is DeadlineSource.AI_PARSED
        assert internship.fields.salary == "\n• 40,000 per month"
        assert internship.fields.other_links == ["https://acme.example.com/careers/info"]
        assert internship.anomaly.has_anomaly is False

        drive = records["m2"]
        assert drive.fields.category is Category.JOB_OFFER
        assert drive.anomaly.severity.value == "high"
        assert drive.anomaly.requires_review is True

        exam = records["m3"]
        assert exam.fields.category is Category.ANNOUNCEMENT
        assert exam.fields.deadline == date(2025, 6, 10)
        assert exam.fields.deadline_source is DeadlineSource.HEURISTIC

        queue = services.repository.list_review_queue("u1")
        assert [r.gmail_message_id for r in queue] == ["m2"]

        with services.repository.engine.connect() as conn:
            assert conn.execute(select(func.count()).select_from(email)).scalar_one() == 3
