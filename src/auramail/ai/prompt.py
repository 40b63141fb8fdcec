"""Prompt contract for extracting placement fields from emails."""

from __future__ import annotations

from collections.abc import Sequence

from auramail.models import AttachmentInfo

NO_BODY_TEXT = "No body text provided"

SYSTEM_PROMPT = (
    "You analyse university placement and recruitment emails and extract "
    "structured information from them. Answer with a single valid JSON object "
    "only. No markdown, no code fences, no commentary."
)

_KEY_CONTRACT = """\
{
  "summary": "3-5 sentences: what this is, who it is for, key dates, requirements and the action needed",
  "category": "exactly one of: internship, job offer, exam, reminder, announcement, misc",
  "company": "formal organisation name for job/internship emails, otherwise null",
  "role": "formal job title(s) for job/internship emails, otherwise null",
  "deadline": "primary application or submission deadline as YYYY-MM-DD, or null",
  "applyLink": "the single primary application/registration URL starting with http(s), or null",
  "otherLinks": ["every other distinct URL in the email, without applyLink; [] when there are none"],
  "eligibility": "bullet string, or null",
  "timings": "bullet string, or null",
  "salary": "bullet string, or null",
  "location": "bullet string, or null",
  "eventDetails": "bullet string, or null",
  "requirements": "bullet string, or null",
  "description": "one or two plain paragraphs about the work or opportunity, or null",
  "attachmentSummary": "one sentence describing the attachments, or null"
}"""

_CATEGORY_RULES = """\
Category rules (pick the most specific):
- "internship": any internship, summer/winter training, apprenticeship or co-op
- "job offer": full-time roles, campus placement drives, recruitment drives, job fairs
- "exam": academic exams, assessments, tests, quizzes, certification tests
- "reminder": deadline reminders, follow-ups, last date alerts, pending actions
- "announcement": events, workshops, webinars, hackathons, seminars, competitions
- "misc": administrative notices, newsletters and anything else
- When both internship and job are mentioned, use whichever the subject leads with.
- Contests on Unstop, Dare2Compete or HackerRank are "announcement" unless they are a placement exam."""

_FORMAT_RULES = """\
Formatting rules:
- eligibility, timings, salary, location, eventDetails and requirements are ONE string
  where every item starts on a new line with a bullet, i.e. "\\n• item".
- All dates use YYYY-MM-DD; times include AM/PM and the time zone when given.
- For job offer and internship emails always fill company and role when the email states them.
- Never invent data. A field the email does not clearly state is null ([] for otherLinks)."""


def format_attachment_block(attachments: Sequence[AttachmentInfo] | None) -> str:
    """Describe attachments as "-name (mime, N.N KB)" lines, or "" for none."""
    if not attachments:
        return ""
    lines = [
        f"-{a.filename} ({a.mime_type}, {a.size / 1024:.1f} KB)" for a in attachments
    ]
    return f"\n\nATTACHMENTS ({len(attachments)}):\n" + "\n".join(lines)


def truncate_body(body: str | None, limit: int) -> str:
    if not body:
        return NO_BODY_TEXT
    if len(body) > limit:
        return body[:limit] + "..."
    return body


def build_extraction_prompt(
    *,
    subject: str,
    snippet: str,
    body: str | None,
    attachments: Sequence[AttachmentInfo] | None = None,
    body_limit: int = 5000,
) -> str:
    """Build the user prompt requesting the placement JSON contract.

    Args:
        subject: Email subject.
        snippet: Gmail preview snippet.
        body: Decoded plain-text body. Empty bodies are replaced by a placeholder.
        attachments: Attachment descriptors; only names, types and sizes are sent.
        body_limit: Number of body characters kept before "..." is appended.

    Returns:
        Prompt string.
    """
    return (
        "EMAIL CONTENT:\n"
        f"Subject: {subject}\n"
        f"Preview: {snippet}\n"
        f"Body: {truncate_body(body, body_limit)}{format_attachment_block(attachments)}\n\n"
        "Extract the following keys and return ONLY this JSON object:\n\n"
        f"{_KEY_CONTRACT}\n\n"
        f"{_CATEGORY_RULES}\n\n"
        f"{_FORMAT_RULES}\n"
    )
