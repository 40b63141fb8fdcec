"""SQLAlchemy-backed store for placement mail, email copies and Gmail tokens."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, create_engine, delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.exc import IntegrityError

from auramail.config import Settings
from auramail.exceptions import DuplicateRecordError, ValidationError
from auramail.extraction.dates import format_date_for_storage
from auramail.models import (
    AnomalyReport,
    AttachmentInfo,
    Category,
    DeadlineSource,
    ExtractedFields,
    GmailToken,
    PlacementRecord,
    Severity,
)
from auramail.storage.schema import email, gmail_token, metadata, placement_mail

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100
SNIPPET_LIMIT = 500


@dataclass(frozen=True)
class PlacementPage:
    """One page of a user's placement records, newest first."""

    records: list[PlacementRecord]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


def _dumps(values: list[Any]) -> str | None:
    return json.dumps(values) if values else None


def _loads(value: str | None) -> list[Any]:
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError:
        logger.warning("stored_json_invalid", value=value[:80])
        return []
    return loaded if isinstance(loaded, list) else []


class PlacementRepository:
    """Repository for placement records and the per-user Gmail token."""

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        """Create a repository.

        Args:
            database_url: SQLAlchemy URL. Ignored when ``engine`` is given.
            engine: Pre-built engine.
        """
        if engine is None:
            if not database_url:
                raise ValidationError("database_url or engine is required")
            engine = create_engine(database_url)
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> PlacementRepository:
        return cls(settings.database_url)

    def initialize(self) -> None:
        """Create missing tables (idempotent)."""
        metadata.create_all(self.engine)
        logger.info("placement_schema_ready", url=self.engine.url.render_as_string(hide_password=True))

    # Placement records

    def exists(self, user_id: str, gmail_message_id: str) -> bool:
        query = select(placement_mail.c.id).where(
            and_(
                placement_mail.c.user_id == user_id,
                placement_mail.c.gmail_message_id == gmail_message_id,
            )
        )
        with self.engine.connect() as conn:
            return conn.execute(query.limit(1)).first() is not None

    def save_placement(self, record: PlacementRecord, *, now: datetime | None = None) -> PlacementRecord:
        """Insert a placement record and upsert its email copy in one transaction.

        Raises:
            DuplicateRecordError: If (user, message id) is already stored. Nothing
                is written in that case.
        """
        now = now or datetime.now()
        received_at = record.received_at or now
        values = self._placement_values(record, received_at=received_at, created_at=now)

        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(placement_mail).values(**values))
                record_id = result.inserted_primary_key[0]
                self._upsert_email(conn, record, created_at=now)
        except IntegrityError as e:
            raise DuplicateRecordError(
                f"Placement {record.gmail_message_id} already stored for user {record.user_id}"
            ) from e

        return record.model_copy(update={"id": record_id, "received_at": received_at, "created_at": now})

    def count(self, user_id: str | None = None) -> int:
        query = select(func.count()).select_from(placement_mail)
        if user_id is not None:
            query = query.where(placement_mail.c.user_id == user_id)
        with self.engine.connect() as conn:
            return int(conn.execute(query).scalar_one())

    def list_placements(self, user_id: str, page: int = 1, limit: int = 20) -> PlacementPage:
        """Return one page of a user's records ordered by received time, newest first.

        Raises:
            ValidationError: If page < 1 or limit is outside 1..100.
        """
        if page < 1:
            raise ValidationError("page must be a positive integer")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        query = (
            select(placement_mail)
            .where(placement_mail.c.user_id == user_id)
            .order_by(placement_mail.c.received_at.desc(), placement_mail.c.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        return PlacementPage(
            records=[self._row_to_record(row) for row in rows],
            total=self.count(user_id),
            page=page,
            limit=limit,
        )

    def list_review_queue(self, user_id: str) -> list[PlacementRecord]:
        """Records flagged for review and not yet reviewed, newest first."""
        query = (
            select(placement_mail)
            .where(
                and_(
                    placement_mail.c.user_id == user_id,
                    placement_mail.c.requires_review.is_(True),
                    placement_mail.c.reviewed_at.is_(None),
                )
            )
            .order_by(placement_mail.c.received_at.desc(), placement_mail.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._row_to_record(row) for row in rows]

    def get_placement(self, user_id: str, record_id: int) -> PlacementRecord | None:
        query = select(placement_mail).where(
            and_(placement_mail.c.user_id == user_id, placement_mail.c.id == record_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return self._row_to_record(row) if row else None

    def mark_reviewed(
        self,
        user_id: str,
        record_id: int,
        reviewed_by: str,
        *,
        now: datetime | None = None,
    ) -> PlacementRecord | None:
        """Mark a record as reviewed; returns None when it does not exist."""
        if not reviewed_by:
            raise ValidationError("reviewed_by is required")

        stmt = (
            update(placement_mail)
            .where(and_(placement_mail.c.user_id == user_id, placement_mail.c.id == record_id))
            .values(reviewed_by=reviewed_by, reviewed_at=now or datetime.now())
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            return None

        logger.info("placement_marked_reviewed", user_id=user_id, record_id=record_id)
        return self.get_placement(user_id, record_id)

    # Gmail tokens

    def upsert_gmail_token(self, token: GmailToken, *, now: datetime | None = None) -> None:
        values = {
            "access_token": token.access_token,
            "refresh_token": token.refresh_token,
            "expiry_date": token.expiry_date,
            "updated_at": now or datetime.now(),
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(gmail_token).where(gmail_token.c.user_id == token.user_id).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(gmail_token).values(user_id=token.user_id, **values))

    def get_gmail_token(self, user_id: str) -> GmailToken | None:
        with self.engine.connect() as conn:
            row = (
                conn.execute(select(gmail_token).where(gmail_token.c.user_id == user_id))
                .mappings()
                .first()
            )
        return GmailToken(**row) if row else None

    # Retention

    def delete_expired_emails(self, older_than: datetime) -> int:
        """Delete email copies created before ``older_than`` unless marked important."""
        stmt = delete(email).where(
            and_(email.c.created_at < older_than, email.c.is_important.is_(False))
        )
        with self.engine.begin() as conn:
            deleted = conn.execute(stmt).rowcount
        logger.info("expired_emails_deleted", count=deleted, older_than=older_than.isoformat())
        return deleted

    # Mapping helpers

    @staticmethod
    def _placement_values(
        record: PlacementRecord, *, received_at: datetime, created_at: datetime
    ) -> dict[str, Any]:
        fields = record.fields
        anomaly = record.anomaly
        return {
            "user_id": record.user_id,
            "gmail_message_id": record.gmail_message_id,
            "subject": record.subject,
            "sender": record.sender,
            "snippet": record.snippet[:SNIPPET_LIMIT],
            "body": record.body or None,
            "received_at": received_at,
            "date_header": record.date_header,
            "category": fields.category.value if fields.category else None,
            "summary": fields.summary,
            "company": fields.company,
            "role": fields.role,
            "deadline": fields.deadline,
            "deadline_source": fields.deadline_source.value,
            "apply_link": fields.apply_link,
            "other_links_json": _dumps(fields.other_links),
            "attachments_json": _dumps([a.model_dump() for a in record.attachments]),
            "eligibility": fields.eligibility,
            "timings": fields.timings,
            "salary": fields.salary,
            "location": fields.location,
            "event_details": fields.event_details,
            "requirements": fields.requirements,
            "description": fields.description,
            "attachment_summary": fields.attachment_summary,
            "raw_ai_output": record.raw_ai_output,
            "has_anomaly": anomaly.has_anomaly,
            "anomalies_json": _dumps(anomaly.anomalies),
            "anomaly_severity": anomaly.severity.value if anomaly.has_anomaly else None,
            "requires_review": anomaly.requires_review,
            "reviewed_by": record.reviewed_by,
            "reviewed_at": record.reviewed_at,
            "created_at": created_at,
        }

    @staticmethod
    def _upsert_email(conn: Connection, record: PlacementRecord, *, created_at: datetime) -> None:
        fields = record.fields
        values = {
            "subject": record.subject,
            "sender": record.sender,
            "date_header": record.date_header,
            "snippet": record.snippet[:SNIPPET_LIMIT],
            "body": record.body or None,
            "summary": fields.summary,
            "category": fields.category.value if fields.category else None,
            "deadline": format_date_for_storage(fields.deadline),
            "company": fields.company,
            "role": fields.role,
            "apply_link": fields.apply_link,
            "eligibility": fields.eligibility,
            "timings": fields.timings,
            "salary": fields.salary,
            "location": fields.location,
        }
        key = and_(email.c.id == record.gmail_message_id, email.c.user_id == record.user_id)
        result = conn.execute(update(email).where(key).values(**values))
        if result.rowcount == 0:
            conn.execute(
                insert(email).values(
                    id=record.gmail_message_id,
                    user_id=record.user_id,
                    created_at=created_at,
                    **values,
                )
            )

    @staticmethod
    def _row_to_record(row: RowMapping) -> PlacementRecord:
        anomalies = _loads(row["anomalies_json"])
        return PlacementRecord(
            id=row["id"],
            user_id=row["user_id"],
            gmail_message_id=row["gmail_message_id"],
            subject=row["subject"],
            sender=row["sender"],
            snippet=row["snippet"] or "",
            body=row["body"] or "",
            received_at=row["received_at"],
            date_header=row["date_header"],
            attachments=[AttachmentInfo(**a) for a in _loads(row["attachments_json"])],
            fields=ExtractedFields(
                category=Category.parse(row["category"]),
                summary=row["summary"],
                company=row["company"],
                role=row["role"],
                deadline=row["deadline"],
                deadline_source=DeadlineSource(row["deadline_source"]),
                apply_link=row["apply_link"],
                other_links=_loads(row["other_links_json"]),
                eligibility=row["eligibility"],
                timings=row["timings"],
                salary=row["salary"],
                location=row["location"],
                event_details=row["event_details"],
                requirements=row["requirements"],
                description=row["description"],
                attachment_summary=row["attachment_summary"],
            ),
            anomaly=AnomalyReport(
                has_anomaly=bool(row["has_anomaly"]),
                anomalies=anomalies,
                severity=Severity(row["anomaly_severity"]) if row["anomaly_severity"] else Severity.LOW,
                requires_review=bool(row["requires_review"]),
            ),
            raw_ai_output=row["raw_ai_output"],
            reviewed_by=row["reviewed_by"],
            reviewed_at=row["reviewed_at"],
            created_at=row["created_at"],
        )
