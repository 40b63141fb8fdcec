"""Unit tests for data models."""

from datetime import datetime

from auramail.models import (
    AIExtraction,
    AttachmentInfo,
    Category,
    PlacementRecord,
    RawMessage,
    Severity,
)


class TestCategory:
    """Test suite for Category parsing."""

    def test_parse_is_case_and_whitespace_insensitive(self) -> None:
        assert Category.parse(" Job Offer ") is Category.JOB_OFFER
        assert Category.parse("INTERNSHIP") is Category.INTERNSHIP

    def test_parse_rejects_unknown_values(self) -> None:
        assert Category.parse("webinar") is None
        assert Category.parse(None) is None
        assert Category.parse(3) is None

    def test_parse_accepts_members(self) -> None:
        assert Category.parse(Category.EXAM) is Category.EXAM


class TestSeverity:
    """Test suite for Severity ordering."""

    def test_rank_order(self) -> None:
        assert Severity.LOW.rank < Severity.MEDIUM.rank < Severity.HIGH.rank

    def test_at_least_never_lowers(self) -> None:
        assert Severity.LOW.at_least(Severity.MEDIUM) is Severity.MEDIUM
        assert Severity.HIGH.at_least(Severity.LOW) is Severity.HIGH
        assert Severity.MEDIUM.at_least(Severity.MEDIUM) is Severity.MEDIUM


class TestRawMessage:
    """Test suite for RawMessage model."""

    def test_defaults(self) -> None:
        message = RawMessage(gmail_message_id="m1")

        assert message.subject == "No Subject"
        assert message.sender == "Unknown Sender"
        assert message.attachments == []

    def test_full_text_joins_subject_snippet_and_body(self) -> None:
        message = RawMessage(gmail_message_id="m1", subject="S", snippet="P", body="B")

        assert message.full_text == "S P B"


class TestAIExtraction:
    """Test suite for the provider response contract."""

    def test_reads_camel_case_keys(self) -> None:
        extraction = AIExtraction.model_validate(
            {
                "applyLink": "https://example.com/apply",
                "otherLinks": ["https://example.com/info"],
                "eventDetails": "Hall A",
                "attachmentSummary": "The JD",
            }
        )

        assert extraction.apply_link == "https://example.com/apply"
        assert extraction.other_links == ["https://example.com/info"]
        assert extraction.event_details == "Hall A"
        assert extraction.attachment_summary == "The JD"

    def test_list_text_blocks_become_bullets(self) -> None:
        extraction = AIExtraction.model_validate({"eligibility": ["B.Tech CSE", "CGPA 7+"]})

        assert extraction.eligibility == "\n• B.Tech CSE\n• CGPA 7+"

    def test_list_aliased_text_blocks_become_bullets(self) -> None:
        extraction = AIExtraction.model_validate(
            {"eventDetails": ["Hall A", "10 AM"], "attachmentSummary": ["JD attached"]}
        )

        assert extraction.event_details == "\n• Hall A\n• 10 AM"
        assert extraction.attachment_summary == "\n• JD attached"

    def test_scalar_other_links_become_a_list(self) -> None:
        extraction = AIExtraction.model_validate({"otherLinks": "https://example.com"})

        assert extraction.other_links == ["https://example.com"]

    def test_numbers_are_stringified(self) -> None:
        extraction = AIExtraction.model_validate({"salary": 1200000, "company": 42})

        assert extraction.salary == "1200000"
        assert extraction.company == "42"


class TestPlacementRecord:
    """Test suite for PlacementRecord model."""

    def test_is_reviewed(self) -> None:
        record = PlacementRecord(user_id="u1", gmail_message_id="m1", subject="s", sender="x")
        assert record.is_reviewed is False

        reviewed = record.model_copy(update={"reviewed_at": datetime(2025, 6, 1)})
        assert reviewed.is_reviewed is True

    def test_attachments_round_trip_through_dump(self) -> None:
        attachment = AttachmentInfo(filename="jd.pdf", mime_type="application/pdf", size=10, attachment_id="a1")
        record = PlacementRecord(
            user_id="u1", gmail_message_id="m1", subject="s", sender="x", attachments=[attachment]
        )

        assert record.model_dump()["attachments"][0]["filename"] == "jd.pdf"
