"""Content fingerprints for duplicate detection.

A content key identifies a document by its metadata (sender, minute-truncated
send time, subject and attachment names) rather than by delivery, so the same
document sent to several recipients maps to one key.
"""

import hashlib
import logging
import re
import time
from datetime import datetime, timezone
from typing import Iterable

logger = logging.getLogger(__name__)

KEY_PREFIX = "CONTENT_"
FALLBACK_PREFIX = f"{KEY_PREFIX}T"
DIGEST_LENGTH = 16
FIELD_SEPARATOR = "|"

_SENDER_STRIP = re.compile(r"[^a-z0-9@.]")
_SUBJECT_STRIP = re.compile(r"[\W_]+")
_ATTACHMENT_STRIP = re.compile(r"[^\w.]|_")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FingerprintFallback(Exception):
    """Raised internally when metadata cannot be normalized."""

    pass


def normalize_sender(sender: str) -> str:
    return _SENDER_STRIP.sub("", sender.lower())


def normalize_subject(subject: str) -> str:
    return _SUBJECT_STRIP.sub("", subject).lower()


def normalize_attachment_names(names: Iterable[str]) -> str:
    """Lowercase, strip and sort attachment names into one stable string."""
    normalized = sorted(_ATTACHMENT_STRIP.sub("", name.lower()) for name in names)
    return ",".join(normalized)


def truncate_timestamp(sent_at: datetime, granularity_minutes: int = 1) -> str:
    """Floor a timestamp to the granularity and render it as YYYYMMDD_HHMM.

    Naive timestamps are taken as UTC; aware ones are converted to UTC.
    """
    if sent_at is None:
        raise FingerprintFallback("timestamp is missing")
    if granularity_minutes < 1:
        raise FingerprintFallback(f"invalid granularity: {granularity_minutes}")

    if sent_at.tzinfo is None:
        sent_at = sent_at.replace(tzinfo=timezone.utc)
    else:
        sent_at = sent_at.astimezone(timezone.utc)

    minutes = int((sent_at - _EPOCH).total_seconds() // 60)
    floored = minutes - (minutes % granularity_minutes)
    bucket = datetime.fromtimestamp(floored * 60, tz=timezone.utc)
    return bucket.strftime("%Y%m%d_%H%M")


def generate_content_key(
    sender: str,
    sent_at: datetime,
    subject: str,
    attachment_names: Iterable[str] = (),
    granularity_minutes: int = 1,
) -> str:
    """Derive the content key for a document.

    Args:
        sender: Sender address, compared case- and punctuation-insensitively.
        sent_at: Send time, truncated to ``granularity_minutes``.
        subject: Subject line; only letters and digits are significant.
        attachment_names: Attachment file names in any order.
        granularity_minutes: Width of the time bucket.

    Returns:
        ``CONTENT_`` followed by 16 hex characters. If the metadata cannot be
        normalized, a one-off key based on the current clock is returned
        instead, so that record is never treated as a duplicate.
    """
    try:
        if not isinstance(sender, str) or not isinstance(subject, str):
            raise FingerprintFallback("sender and subject must be strings")

        combined = FIELD_SEPARATOR.join(
            [
                normalize_sender(sender),
                truncate_timestamp(sent_at, granularity_minutes),
                normalize_subject(subject),
                normalize_attachment_names(attachment_names),
            ]
        )
    except (FingerprintFallback, AttributeError, TypeError, ValueError, OverflowError) as e:
        fallback = f"{FALLBACK_PREFIX}{time.time_ns()}"
        logger.warning(
            f"Content key normalization failed ({e}); using unique fallback key {fallback}. "
            f"Duplicate detection is disabled for this record."
        )
        return fallback

    digest = hashlib.md5(combined.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{digest[:DIGEST_LENGTH]}"


def is_fallback_key(content_key: str) -> bool:
    """Return True if the key came from the clock-based fallback."""
    return content_key.startswith(FALLBACK_PREFIX)
