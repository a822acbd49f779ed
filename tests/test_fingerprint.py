"""Tests for content fingerprint generation.

These tests verify:
- Order independence over attachment names
- Case and punctuation normalization of sender, subject and attachments
- Minute-level time sensitivity and configurable granularity
- Clock-based fallback when metadata cannot be normalized
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.intake.ingestion.fingerprint import (
    generate_content_key,
    is_fallback_key,
    normalize_attachment_names,
    normalize_sender,
    normalize_subject,
    truncate_timestamp,
)

SENDER = "a@x.com"
SUBJECT = "Loan Agreement"
SENT_AT = datetime(2024, 6, 22, 10, 30, 0)


class TestGenerateContentKey:
    """Test generate_content_key behaviour."""

    def test_key_format(self):
        """Test that keys have a fixed prefix and length."""
        key = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])

        assert key.startswith("CONTENT_")
        assert len(key) == len("CONTENT_") + 16
        assert not is_fallback_key(key)

        print(f"Content key: {key}")

    def test_deterministic(self):
        """Test that equal inputs give equal keys."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])

        assert first == second

    def test_attachment_order_independent(self):
        """Test that attachment order does not matter."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["a.pdf", "b.pdf"])
        second = generate_content_key(SENDER, SENT_AT, SUBJECT, ["b.pdf", "a.pdf"])

        assert first == second

    def test_attachment_case_insensitive(self):
        """Test that LOAN.PDF and loan.pdf give the same key."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(SENDER, SENT_AT, SUBJECT, ["LOAN.PDF"])

        assert first == second

    def test_sender_and_subject_normalized(self):
        """Test that case and whitespace in sender and subject are ignored."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(" A@X.com ", SENT_AT, "loan   AGREEMENT!", ["loan.pdf"])

        assert first == second

    def test_one_minute_later_differs(self):
        """Test that 10:30 and 10:31 give different keys at one-minute granularity."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(
            SENDER, SENT_AT + timedelta(minutes=1), SUBJECT, ["loan.pdf"]
        )

        assert first != second

    def test_two_minutes_later_differs(self):
        """Test time sensitivity beyond the truncation granularity."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(
            SENDER, SENT_AT + timedelta(minutes=2), SUBJECT, ["loan.pdf"]
        )

        assert first != second

    def test_seconds_within_minute_ignored(self):
        """Test that seconds inside the same minute are truncated away."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(
            SENDER, SENT_AT + timedelta(seconds=59), SUBJECT, ["loan.pdf"]
        )

        assert first == second

    def test_configurable_granularity(self):
        """Test that a wider bucket merges nearby timestamps."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"], granularity_minutes=60)
        second = generate_content_key(
            SENDER, SENT_AT + timedelta(minutes=1), SUBJECT, ["loan.pdf"], granularity_minutes=60
        )

        assert first == second

    def test_timezone_aware_timestamps_compared_in_utc(self):
        """Test that the same instant in different zones gives the same key."""
        jst = timezone(timedelta(hours=9))
        naive_utc = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        aware_jst = generate_content_key(
            SENDER, datetime(2024, 6, 22, 19, 30, tzinfo=jst), SUBJECT, ["loan.pdf"]
        )

        assert naive_utc == aware_jst

    def test_different_attachments_differ(self):
        """Test that a different attachment set changes the key."""
        first = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf"])
        second = generate_content_key(SENDER, SENT_AT, SUBJECT, ["loan.pdf", "annex.pdf"])

        assert first != second

    def test_missing_timestamp_falls_back(self):
        """Test that a missing timestamp yields a unique fallback key."""
        key = generate_content_key(SENDER, None, SUBJECT, ["loan.pdf"])

        assert is_fallback_key(key)
        assert key.startswith("CONTENT_T")

        print(f"Fallback key: {key}")

    def test_non_string_sender_falls_back(self):
        """Test that unusable sender metadata does not raise."""
        key = generate_content_key(None, SENT_AT, SUBJECT, ["loan.pdf"])

        assert is_fallback_key(key)


class TestNormalization:
    """Test the individual normalization helpers."""

    def test_normalize_sender(self):
        assert normalize_sender("Contracts <A.B@X.com>") == "contractsa.b@x.com"

    def test_normalize_subject_keeps_unicode_letters(self):
        assert normalize_subject("契約 締結: Loan-Agreement #2") == "契約締結loanagreement2"

    def test_normalize_attachment_names_sorted(self):
        assert normalize_attachment_names(["B File.PDF", "a_file.pdf"]) == "afile.pdf,bfile.pdf"

    def test_truncate_timestamp(self):
        assert truncate_timestamp(datetime(2024, 6, 22, 10, 30, 45)) == "20240622_1030"
        assert truncate_timestamp(datetime(2024, 6, 22, 10, 44), granularity_minutes=15) == "20240622_1030"
