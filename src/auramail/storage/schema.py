"""Table definitions for the placement store.

List-valued columns (links, attachments, anomalies) are stored as JSON text
so the schema stays portable across SQLAlchemy backends.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)

metadata = MetaData()

placement_mail = Table(
    "placement_mail",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255), nullable=False, index=True),
    Column("gmail_message_id", String(255), nullable=False),
    Column("subject", Text, nullable=False),
    Column("sender", Text, nullable=False),
    Column("snippet", Text, nullable=False, default=""),
    Column("body", Text, nullable=True),
    Column("received_at", DateTime, nullable=False),
    Column("date_header", Text, nullable=True),
    Column("category", String(32), nullable=True),
    Column("summary", Text, nullable=True),
    Column("company", Text, nullable=True),
    Column("role", Text, nullable=True),
    Column("deadline", Date, nullable=True),
    Column("deadline_source", String(16), nullable=False, default="none"),
    Column("apply_link", Text, nullable=True),
    Column("other_links_json", Text, nullable=True),
    Column("attachments_json", Text, nullable=True),
    Column("eligibility", Text, nullable=True),
    Column("timings", Text, nullable=True),
    Column("salary", Text, nullable=True),
    Column("location", Text, nullable=True),
    Column("event_details", Text, nullable=True),
    Column("requirements", Text, nullable=True),
    Column("description", Text, nullable=True),
    Column("attachment_summary", Text, nullable=True),
    Column("raw_ai_output", Text, nullable=True),
    Column("has_anomaly", Boolean, nullable=False, default=False),
    Column("anomalies_json", Text, nullable=True),
    Column("anomaly_severity", String(16), nullable=True),
    Column("requires_review", Boolean, nullable=False, default=False, index=True),
    Column("reviewed_by", String(255), nullable=True),
    Column("reviewed_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("user_id", "gmail_message_id", name="uq_placement_mail_user_message"),
)

# Denormalised copy used by the mailbox views; keyed by Gmail id per user.
email = Table(
    "email",
    metadata,
    Column("id", String(255), nullable=False),
    Column("user_id", String(255), nullable=False),
    Column("subject", Text, nullable=False),
    Column("sender", Text, nullable=False),
    Column("date_header", Text, nullable=True),
    Column("snippet", Text, nullable=False, default=""),
    Column("body", Text, nullable=True),
    Column("summary", Text, nullable=True),
    Column("category", String(32), nullable=True),
    Column("deadline", Text, nullable=True),
    Column("company", Text, nullable=True),
    Column("role", Text, nullable=True),
    Column("apply_link", Text, nullable=True),
    Column("eligibility", Text, nullable=True),
    Column("timings", Text, nullable=True),
    Column("salary", Text, nullable=True),
    Column("location", Text, nullable=True),
    Column("is_important", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
    PrimaryKeyConstraint("id", "user_id", name="pk_email"),
)

gmail_token = Table(
    "gmail_token",
    metadata,
    Column("user_id", String(255), primary_key=True),
    Column("access_token", Text, nullable=False),
    Column("refresh_token", Text, nullable=True),
    Column("expiry_date", DateTime, nullable=True),
    Column("updated_at", DateTime, nullable=False),
)
