"""Tests for the document store, message source and notification clients."""

from datetime import datetime, timezone
from email.message import EmailMessage
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.intake.clients import (
    EmlDirectorySource,
    LocalDocumentStore,
    LoggingNotificationSink,
    WebhookNotificationSink,
    build_artifact_name,
    clean_subject_for_folder,
    parse_eml,
)
from src.intake.errors import DocumentStoreError, NotificationError
from src.intake.models import DeliveryOutcome, DeliveryState


def _eml(message_id="<msg-1@x.com>", attachments=(("loan.pdf", b"%PDF-1.4 loan"),)):
    message = EmailMessage()
    if message_id:
        message["Message-ID"] = message_id
    message["From"] = "Contracts <a@x.com>"
    message["To"] = "B@x.com, c@x.com"
    message["Cc"] = "d@x.com"
    message["Subject"] = "Loan Agreement"
    message["Date"] = "Sat, 22 Jun 2024 10:30:15 +0000"
    message.set_content("See attached.")
    for name, content in attachments:
        message.add_attachment(content, maintype="application", subtype="pdf", filename=name)
    return message.as_bytes()


class TestArtifactNames:
    """Test artifact naming helpers."""

    def test_clean_subject_for_folder(self):
        assert clean_subject_for_folder('Re: Loan <draft>  "v2"') == "Re_ Loan _draft_ _v2_"
        assert clean_subject_for_folder("") == "untitled"
        assert len(clean_subject_for_folder("x" * 300)) == 100

    def test_build_artifact_name(self):
        sent_at = datetime(2024, 6, 22, 10, 30, tzinfo=timezone.utc)

        assert build_artifact_name("Loan", sent_at, 0, "loan.pdf") == "20240622_Loan/20240622_loan.pdf"
        assert build_artifact_name("Loan", sent_at, 1, "") == "20240622_Loan/20240622_attachment_2"


class TestLocalDocumentStore:
    """Test LocalDocumentStore functionality."""

    def test_store_writes_file(self, tmp_path):
        """Test that content is written below the root and a URI returned."""
        store = LocalDocumentStore(str(tmp_path))

        location = store.store(b"%PDF", "20240622_Loan/20240622_loan.pdf")

        target = tmp_path / "20240622_Loan" / "20240622_loan.pdf"
        assert target.read_bytes() == b"%PDF"
        assert location == target.resolve().as_uri()

        print(f"Stored at: {location}")

    def test_store_never_overwrites(self, tmp_path):
        """Test that a second file with the same name gets a suffix."""
        store = LocalDocumentStore(str(tmp_path))

        store.store(b"first", "loan.pdf")
        location = store.store(b"second", "loan.pdf")

        assert location.endswith("loan_1.pdf")
        assert (tmp_path / "loan.pdf").read_bytes() == b"first"
        assert (tmp_path / "loan_1.pdf").read_bytes() == b"second"

    @pytest.mark.parametrize("name", ["../escape.pdf", "/etc/passwd", ""])
    def test_unsafe_names_rejected(self, tmp_path, name):
        with pytest.raises(DocumentStoreError):
            LocalDocumentStore(str(tmp_path)).store(b"x", name)


class TestMessageSource:
    """Test parsing inbound .eml files."""

    def test_parse_eml(self):
        """Test that headers, recipients and attachments are extracted."""
        message = parse_eml(_eml(), fallback_id="file-1")

        assert message.message_id == "<msg-1@x.com>"
        assert message.sender == "a@x.com"
        assert message.subject == "Loan Agreement"
        assert message.sent_at == datetime(2024, 6, 22, 10, 30, 15, tzinfo=timezone.utc)
        assert message.recipients == ("B@x.com", "c@x.com", "d@x.com")
        assert message.attachment_names == ("loan.pdf",)
        assert message.attachments[0].read() == b"%PDF-1.4 loan"

    def test_missing_message_id_uses_fallback(self):
        message = parse_eml(_eml(message_id=None), fallback_id="file-1")

        assert message.message_id == "file-1"

    def test_directory_source(self, tmp_path):
        """Test that every .eml file in the inbox is yielded."""
        (tmp_path / "one.eml").write_bytes(_eml("<one@x.com>"))
        (tmp_path / "two.eml").write_bytes(_eml("<two@x.com>"))
        (tmp_path / "notes.txt").write_text("ignored")

        messages = list(EmlDirectorySource(str(tmp_path)))

        assert sorted(m.message_id for m in messages) == ["<one@x.com>", "<two@x.com>"]

    def test_missing_directory_yields_nothing(self, tmp_path):
        assert list(EmlDirectorySource(str(tmp_path / "missing"))) == []


class TestNotificationSinks:
    """Test the notification sinks."""

    @pytest.fixture
    def outcome(self):
        return DeliveryOutcome(
            message_id="msg-1",
            recipient="b@x.com",
            state=DeliveryState.DUPLICATE,
            content_key="CONTENT_0123456789abcdef",
            artifact_location="file:///docs/loan.pdf",
            subject="Loan Agreement",
            sender="a@x.com",
        )

    def test_logging_sink(self, outcome, caplog):
        with caplog.at_level("INFO"):
            LoggingNotificationSink().notify(outcome)

        assert "duplicate" in caplog.text

    def test_webhook_payload(self, outcome):
        payload = WebhookNotificationSink("https://hooks.example.com/abc", "#intake").build_payload(outcome)

        assert payload["channel"] == "#intake"
        assert payload["state"] == "Duplicate"
        assert payload["is_duplicate"] is True
        assert payload["artifact_location"] == "file:///docs/loan.pdf"

    @patch("src.intake.clients.notification_sink.requests.post")
    def test_webhook_posts_json(self, mock_post, outcome):
        """Test that the webhook is called with the payload and timeout."""
        mock_post.return_value = MagicMock(status_code=200)
        sink = WebhookNotificationSink("https://hooks.example.com/abc", timeout_seconds=5)

        sink.notify(outcome)

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://hooks.example.com/abc"
        assert kwargs["json"]["message_id"] == "msg-1"
        assert kwargs["timeout"] == 5

    @patch("src.intake.clients.notification_sink.requests.post")
    def test_webhook_failure_raises_notification_error(self, mock_post, outcome):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(NotificationError):
            WebhookNotificationSink("https://hooks.example.com/abc").notify(outcome)
