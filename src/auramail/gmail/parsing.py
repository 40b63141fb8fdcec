"""Helpers for parsing Gmail API messages (format=full) into internal models."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterator
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

import structlog
from pydantic import ValidationError

from auramail.extraction.dates import as_naive
from auramail.models import AttachmentInfo, RawMessage

logger = structlog.get_logger()

TRUNCATION_MARKER = "... [truncated]"
DEFAULT_MAX_BODY_LENGTH = 10000
DEFAULT_MAX_DEPTH = 5


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first.
            result.setdefault(name.lower(), value)
    return result


def iter_parts(
    payload: dict[str, Any] | None, max_depth: int = DEFAULT_MAX_DEPTH
) -> Iterator[tuple[dict[str, Any], int]]:
    """Walk a MIME part tree depth-first in document order.

    Yields ``(part, depth)`` pairs starting with the root at depth 0. Children
    of a part at ``max_depth`` are not visited.
    """
    if not isinstance(payload, dict):
        return
    stack: list[tuple[dict[str, Any], int]] = [(payload, 0)]
    while stack:
        part, depth = stack.pop()
        yield part, depth
        children = part.get("parts")
        if isinstance(children, list) and depth < max_depth:
            for child in reversed(children):
                if isinstance(child, dict):
                    stack.append((child, depth + 1))


def decode_body_data(data: str) -> str:
    """Decode Gmail's base64url body data to text.

    Raises:
        ValueError: If the data is not valid base64.
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 body data: {e}") from e
    return raw.decode("utf-8", errors="replace")


def truncate_body(body: str, max_length: int = DEFAULT_MAX_BODY_LENGTH) -> str:
    if len(body) > max_length:
        return body[:max_length] + TRUNCATION_MARKER
    return body


def _body_data(part: dict[str, Any]) -> str | None:
    body = part.get("body") or {}
    data = body.get("data") if isinstance(body, dict) else None
    return data if isinstance(data, str) and data else None


def extract_body(
    payload: dict[str, Any] | None,
    *,
    max_length: int = DEFAULT_MAX_BODY_LENGTH,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> str:
    """Return the first decodable text/plain body, truncated to ``max_length``.

    A single-part payload uses its own body regardless of MIME type.
    """
    if not isinstance(payload, dict):
        return ""

    candidates: list[dict[str, Any]]
    if isinstance(payload.get("parts"), list):
        candidates = [
            part
            for part, depth in iter_parts(payload, max_depth)
            if depth > 0 and part.get("mimeType") == "text/plain"
        ]
    else:
        candidates = [payload]

    for part in candidates:
        data = _body_data(part)
        if data is None:
            continue
        try:
            return truncate_body(decode_body_data(data), max_length)
        except ValueError as e:
            logger.warning("body_decode_failed", part_id=part.get("partId"), error=str(e))
    return ""


def extract_attachments(
    payload: dict[str, Any] | None, *, max_depth: int = DEFAULT_MAX_DEPTH
) -> list[AttachmentInfo]:
    """List attachment descriptors; malformed entries are logged and dropped."""
    attachments: list[AttachmentInfo] = []
    for part, depth in iter_parts(payload, max_depth):
        if depth == 0:
            continue
        body = part.get("body") or {}
        if not part.get("filename") or not isinstance(body, dict) or not body.get("attachmentId"):
            continue
        try:
            attachments.append(
                AttachmentInfo(
                    filename=part["filename"],
                    mime_type=part.get("mimeType") or "application/octet-stream",
                    size=body.get("size") or 0,
                    attachment_id=body["attachmentId"],
                )
            )
        except ValidationError as e:
            logger.warning(
                "invalid_attachment_dropped",
                filename=str(part.get("filename"))[:100],
                errors=e.error_count(),
            )
    return attachments


def _parse_internal_date(value: Any) -> datetime | None:
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000)


def _parse_date_header(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return as_naive(parsedate_to_datetime(value))
    except (TypeError, ValueError, OverflowError):
        return None


def message_to_raw_message(
    message: dict[str, Any],
    *,
    max_body_length: int = DEFAULT_MAX_BODY_LENGTH,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> RawMessage:
    """Convert a Gmail API message (format=full) to RawMessage.

    Args:
        message: Gmail API message dict.
        max_body_length: Body characters kept before the truncation marker.
        max_depth: Maximum MIME nesting depth walked.

    Returns:
        RawMessage: Parsed message with decoded body and attachment list.
    """
    hm = _header_map(message)
    payload = message.get("payload") or {}
    date_header = hm.get("date")

    return RawMessage(
        gmail_message_id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or "") or None,
        subject=hm.get("subject") or "No Subject",
        sender=hm.get("from") or "Unknown Sender",
        snippet=message.get("snippet") or "",
        body=extract_body(payload, max_length=max_body_length, max_depth=max_depth),
        attachments=extract_attachments(payload, max_depth=max_depth),
        received_at=_parse_internal_date(message.get("internalDate"))
        or _parse_date_header(date_header),
        date_header=date_header,
    )
