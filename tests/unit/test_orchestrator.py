"""Unit tests for the placement ingestor."""

from datetime import date

import pytest

from auramail.ai.extractor import AIExtractor
from auramail.exceptions import (
    AuthenticationError,
    GmailAPIError,
    SyncInProgressError,
    ValidationError,
)
from auramail.ingestion.lease import SyncLeaseManager
from auramail.ingestion.orchestrator import PlacementIngestor
from auramail.models import Category, DeadlineSource

INTERNSHIP_RESPONSE = {
    "summary": "Acme Corp is hiring SDE interns.",
    "category": "internship",
    "company": "Acme Corp",
    "role": "SDE Intern",
    "deadline": "2025-06-15",
    "applyLink": "https://forms.example.com/apply/acme",
    "otherLinks": [],
    "salary": "\n• 40,000 per month",
}


@pytest.fixture
def build_ingestor(settings, repository, fake_gmail, fake_sleep, fixed_now):
    def _build(client=None, **kwargs) -> PlacementIngestor:
        return PlacementIngestor(
            repository,
            AIExtractor(client, settings=settings),
            settings,
            gmail_factory=lambda token: fake_gmail,
            sleep=fake_sleep,
            now=lambda: fixed_now,
            **kwargs,
        )

    return _build


class TestSync:
    """Test suite for PlacementIngestor.sync."""

    @pytest.mark.asyncio
    async def test_saves_every_new_message(self, build_ingestor, fake_gmail, make_message, repository) -> None:
        for i in range(3):
            fake_gmail.add(make_message(f"m{i}", f"[Acme Corp] Notice {i}", "Hello"))

        result = await build_ingestor().sync("u1", "token")

        assert (result.saved, result.skipped, result.errors, result.total) == (3, 0, 0, 3)
        assert repository.count("u1") == 3

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, build_ingestor, fake_gmail, make_message, repository) -> None:
        for i in range(3):
            fake_gmail.add(make_message(f"m{i}", f"Notice {i}", "Hello"))
        ingestor = build_ingestor()

        await ingestor.sync("u1", "token")
        second = await ingestor.sync("u1", "token")

        assert (second.saved, second.skipped, second.total) == (0, 3, 3)
        assert repository.count("u1") == 3

    @pytest.mark.asyncio
    async def test_uses_query_and_max_results(self, build_ingestor, fake_gmail, settings) -> None:
        await build_ingestor().sync("u1", "token", "subject:internship")
        await build_ingestor().sync("u1", "token")

        assert fake_gmail.list_calls == [
            ("subject:internship", settings.gmail_max_results),
            (settings.gmail_default_query, settings.gmail_max_results),
        ]

    @pytest.mark.asyncio
    async def test_empty_mailbox(self, build_ingestor) -> None:
        result = await build_ingestor().sync("u1", "token")

        assert result.total == 0
        assert result.saved == 0

    @pytest.mark.asyncio
    async def test_rate_limit_delays(self, build_ingestor, fake_gmail, make_message, settings, sleeps) -> None:
        settings.batch_size = 2
        settings.message_delay = 0.1
        settings.batch_delay = 0.5
        for i in range(3):
            fake_gmail.add(make_message(f"m{i}", f"Notice {i}", "Hello"))

        await build_ingestor().sync("u1", "token")

        assert sleeps == [0.1, 0.1, 0.5, 0.1]

    @pytest.mark.asyncio
    async def test_failing_message_is_counted_and_skipped(
        self, build_ingestor, fake_gmail, make_message, repository
    ) -> None:
        for i in range(3):
            fake_gmail.add(make_message(f"m{i}", f"Notice {i}", "Hello"))
        fake_gmail.errors["m1"] = GmailAPIError("boom")

        result = await build_ingestor().sync("u1", "token")

        assert (result.saved, result.errors, result.total) == (2, 1, 3)
        assert not repository.exists("u1", "m1")

    @pytest.mark.asyncio
    async def test_authentication_error_aborts_and_releases_lease(
        self, build_ingestor, fake_gmail, make_message
    ) -> None:
        fake_gmail.add(make_message("m0", "Notice", "Hello"))
        fake_gmail.errors["m0"] = AuthenticationError("revoked")
        leases = SyncLeaseManager()
        ingestor = build_ingestor(lease_manager=leases)

        with pytest.raises(AuthenticationError):
            await ingestor.sync("u1", "token")
        assert not leases.is_held("u1")

    @pytest.mark.asyncio
    async def test_list_failure_propagates(self, build_ingestor, fake_gmail) -> None:
        fake_gmail.list_error = GmailAPIError("unavailable")

        with pytest.raises(GmailAPIError):
            await build_ingestor().sync("u1", "token")

    @pytest.mark.asyncio
    async def test_concurrent_sync_is_rejected(self, build_ingestor) -> None:
        leases = SyncLeaseManager()
        leases.acquire("u1")

        with pytest.raises(SyncInProgressError):
            await build_ingestor(lease_manager=leases).sync("u1", "token")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("user_id", "token"), [("", "token"), ("u1", "")])
    async def test_missing_input_is_rejected(self, build_ingestor, user_id: str, token: str) -> None:
        with pytest.raises(ValidationError):
            await build_ingestor().sync(user_id, token)

    @pytest.mark.asyncio
    async def test_insert_race_counts_as_skipped(
        self, build_ingestor, fake_gmail, make_message, repository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake_gmail.add(make_message("m0", "Notice", "Hello"))
        ingestor = build_ingestor()
        await ingestor.sync("u1", "token")
        monkeypatch.setattr(repository, "exists", lambda user_id, message_id: False)

        result = await ingestor.sync("u1", "token")

        assert (result.saved, result.skipped, result.errors) == (0, 1, 0)


class TestProcessMessage:
    """Test suite for the per-message pipeline."""

    @pytest.mark.asyncio
    async def test_ai_fields_are_stored(
        self, build_ingestor, completion_client, fake_gmail, make_message, repository, sample_placement_body
    ) -> None:
        fake_gmail.add(make_message("m1", "[Acme Corp] Internship Drive", sample_placement_body))
        ingestor = build_ingestor(completion_client(INTERNSHIP_RESPONSE))

        assert await ingestor.process_message(fake_gmail, "u1", "m1") == "saved"

        record = repository.list_placements("u1").records[0]
        assert record.fields.category is Category.INTERNSHIP
        assert record.fields.company == "Acme Corp"
        assert record.fields.deadline == date(2025, 6, 15)
        assert record.fields.deadline_source is DeadlineSource.AI_PARSED
        assert record.fields.other_links == ["https://acme.example.com/careers/info"]
        assert record.anomaly.has_anomaly is False
        assert record.raw_ai_output is not None
        assert '"applyLink"' in record.raw_ai_output

    @pytest.mark.asyncio
    async def test_heuristics_fill_in_when_ai_times_out(
        self, build_ingestor, completion_client, fake_gmail, make_message, repository, settings, sample_placement_body
    ) -> None:
        settings.ai_timeout_seconds = 0.05
        fake_gmail.add(make_message("m1", "[Acme Corp] Internship Drive", sample_placement_body))
        ingestor = build_ingestor(completion_client(INTERNSHIP_RESPONSE, delay=1.0))

        await ingestor.process_message(fake_gmail, "u1", "m1")

        record = repository.list_placements("u1").records[0]
        assert record.fields.category is Category.MISC
        assert record.fields.company == "Acme Corp"
        assert record.fields.role == "Software Engineer Intern"
        assert record.fields.apply_link == "https://forms.example.com/apply/acme"
        assert record.fields.deadline == date(2025, 6, 15)
        assert record.fields.deadline_source is DeadlineSource.HEURISTIC
        assert record.anomaly.requires_review is True
        assert "Categorized as misc but has structured job/internship data" in record.anomaly.anomalies

    @pytest.mark.asyncio
    async def test_extractor_exception_defaults_to_announcement(
        self, build_ingestor, fake_gmail, make_message, repository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake_gmail.add(make_message("m1", "Workshop on Friday", "See you there"))
        ingestor = build_ingestor()

        async def _explode(*args, **kwargs):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(ingestor.ai_extractor, "analyze_email", _explode)

        await ingestor.process_message(fake_gmail, "u1", "m1")

        record = repository.list_placements("u1").records[0]
        assert record.fields.category is Category.ANNOUNCEMENT
        assert record.raw_ai_output is None

    @pytest.mark.asyncio
    async def test_job_offer_without_details_is_flagged(
        self, build_ingestor, completion_client, fake_gmail, make_message, repository
    ) -> None:
        fake_gmail.add(make_message("m1", "campus drive update", "details soon"))
        ingestor = build_ingestor(completion_client({"category": "job offer", "summary": "Drive."}))

        await ingestor.process_message(fake_gmail, "u1", "m1")

        queue = repository.list_review_queue("u1")
        assert len(queue) == 1
        assert queue[0].anomaly.anomalies[:3] == [
            "Missing company name for job/internship opportunity",
            "Missing role/position for job/internship opportunity",
            "Missing application link for job/internship",
        ]

    @pytest.mark.asyncio
    async def test_missing_message_id_is_rejected(self, build_ingestor, fake_gmail) -> None:
        with pytest.raises(ValidationError):
            await build_ingestor().process_message(fake_gmail, "u1", "")
