"""Placement mail ingestion.

A sync run lists candidate messages, then processes them one at a time in
fixed-size batches:

    fetch -> skip if stored -> heuristics -> AI (time-bounded) -> merge
    -> anomaly detection -> transactional save

One failing message is counted and skipped over. Authorization failures
abort the whole run so the caller can ask the user to reconnect Gmail.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, Literal, Optional, Protocol

import structlog

from auramail.ai.extractor import AIExtractor
from auramail.anomaly.detector import detect_anomalies, format_anomaly_report
from auramail.config import Settings
from auramail.exceptions import AuthenticationError, DuplicateRecordError, ValidationError
from auramail.extraction.heuristics import extract_heuristic_fields
from auramail.gmail.client import GmailClient
from auramail.gmail.parsing import message_to_raw_message
from auramail.ingestion.lease import SyncLeaseManager
from auramail.ingestion.merge import merge_fields
from auramail.models import AIExtraction, PlacementRecord, SyncResult
from auramail.storage.repository import PlacementRepository

logger = structlog.get_logger()

MessageOutcome = Literal["saved", "skipped"]


class MailClient(Protocol):
    """The part of GmailClient the ingestor relies on."""

    async def list_messages(
        self, query: str | None = None, max_results: int | None = None
    ) -> list[dict[str, Any]]: ...

    async def get_message(self, message_id: str, *, format: str = "full") -> dict[str, Any]: ...


def _batched(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class PlacementIngestor:
    """Runs sync passes over a user's mailbox.

    Args:
        repository: Placement store.
        ai_extractor: AI field extractor; its cache is shared across runs.
        settings: Application settings. If None, uses default settings.
        gmail_factory: Builds a mail client from an access token.
        lease_manager: Per-user lease preventing concurrent runs.
        sleep: Awaitable sleep used for the rate-limit delays.
        now: Clock used for date windows and timestamps.
    """

    def __init__(
        self,
        repository: PlacementRepository,
        ai_extractor: AIExtractor,
        settings: Optional[Settings] = None,
        *,
        gmail_factory: Optional[Callable[[str], MailClient]] = None,
        lease_manager: Optional[SyncLeaseManager] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        from auramail.config import get_settings

        self.settings = settings or get_settings()
        self.repository = repository
        self.ai_extractor = ai_extractor
        self._gmail_factory = gmail_factory or (
            lambda token: GmailClient(token, self.settings)
        )
        self.lease_manager = lease_manager or SyncLeaseManager(self.settings.sync_lease_seconds)
        self._sleep = sleep or asyncio.sleep
        self._now = now or datetime.now

    async def sync(self, user_id: str, access_token: str, query: str | None = None) -> SyncResult:
        """Ingest placement mail for one user.

        Args:
            user_id: Mailbox owner.
            access_token: Valid Gmail access token for that user.
            query: Gmail search query. Defaults to the configured placement query.

        Returns:
            Aggregate counts of the run.

        Raises:
            ValidationError: If user_id or access_token is missing.
            SyncInProgressError: If a run for this user is already active.
            AuthenticationError: If Gmail rejects the token.
            GmailAPIError: If the candidate list cannot be fetched.
        """
        if not user_id or not access_token:
            raise ValidationError("User ID and access token are required")

        with self.lease_manager.hold(user_id):
            return await self._run(user_id, access_token, query or self.settings.gmail_default_query)

    async def _run(self, user_id: str, access_token: str, query: str) -> SyncResult:
        gmail = self._gmail_factory(access_token)
        logger.info("sync_started", user_id=user_id, query=query)

        messages = await gmail.list_messages(query, self.settings.gmail_max_results)
        result = SyncResult(total=len(messages))
        if not messages:
            logger.info("sync_no_messages", user_id=user_id)
            return result

        batches = _batched(messages, self.settings.batch_size)
        for index, batch in enumerate(batches):
            logger.info(
                "sync_batch_started",
                user_id=user_id,
                batch=index + 1,
                batches=len(batches),
                size=len(batch),
            )
            for item in batch:
                message_id = str(item.get("id") or "")
                try:
                    outcome = await self.process_message(gmail, user_id, message_id)
                except AuthenticationError:
                    logger.warning("sync_aborted_reauthorization_required", user_id=user_id)
                    raise
                except DuplicateRecordError:
                    result.skipped += 1
                    logger.info("placement_duplicate_on_insert", message_id=message_id)
                    continue
                except Exception as e:
                    result.errors += 1
                    logger.error("message_processing_failed", message_id=message_id, error=str(e))
                    continue

                if outcome == "skipped":
                    result.skipped += 1
                else:
                    result.saved += 1
                    await self._sleep(self.settings.message_delay)

            if index < len(batches) - 1:
                await self._sleep(self.settings.batch_delay)

        logger.info(
            "sync_completed",
            user_id=user_id,
            saved=result.saved,
            skipped=result.skipped,
            errors=result.errors,
            total=result.total,
        )
        return result

    async def process_message(self, gmail: MailClient, user_id: str, message_id: str) -> MessageOutcome:
        """Fetch, analyse and store one message.

        Raises:
            ValidationError: If the listed message has no id.
            DuplicateRecordError: If the record appeared between the check and the insert.
        """
        if not message_id:
            raise ValidationError("Listed message has no id")

        message = await gmail.get_message(message_id, format="full")
        raw = message_to_raw_message(
            message,
            max_body_length=self.settings.max_body_length,
            max_depth=self.settings.max_payload_depth,
        )
        gmail_message_id = raw.gmail_message_id or message_id

        if self.repository.exists(user_id, gmail_message_id):
            logger.info("placement_already_stored", message_id=gmail_message_id)
            return "skipped"

        now = self._now()
        full_text = raw.full_text
        heuristics = extract_heuristic_fields(raw.subject, full_text, now=now)

        ai: AIExtraction | None
        try:
            ai = await self.ai_extractor.analyze_email(
                raw.subject,
                raw.snippet,
                raw.body or raw.snippet,
                raw.attachments or None,
            )
        except Exception as e:
            logger.warning("ai_analysis_failed", message_id=gmail_message_id, error=str(e))
            ai = None

        fields = merge_fields(ai, heuristics, full_text, now=now)
        report = detect_anomalies(fields, raw.subject, raw.body, now=now)
        if report.has_anomaly:
            logger.warning(
                "anomalies_detected",
                message_id=gmail_message_id,
                report=format_anomaly_report(report),
            )

        record = PlacementRecord(
            user_id=user_id,
            gmail_message_id=gmail_message_id,
            subject=raw.subject,
            sender=raw.sender,
            snippet=raw.snippet,
            body=raw.body,
            received_at=raw.received_at,
            date_header=raw.date_header,
            attachments=raw.attachments,
            fields=fields,
            anomaly=report,
            raw_ai_output=ai.model_dump_json(by_alias=True) if ai is not None else None,
        )
        self.repository.save_placement(record, now=now)
        logger.info(
            "placement_saved",
            message_id=gmail_message_id,
            category=fields.category.value if fields.category else None,
            company=fields.company,
            deadline_source=fields.deadline_source.value,
        )
        return "saved"
