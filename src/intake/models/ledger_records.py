"""Ledger record models for content deduplication and delivery tracking."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class ProcessingStatus(str, Enum):
    """Final status of a processed delivery."""

    SUCCESS = "Success"
    ERROR = "Error"


@dataclass(frozen=True)
class DuplicateRecord:
    """First sighting of a unique piece of content.

    Written exactly once per content key and never updated.
    """

    content_key: str  # Fingerprint of sender, timestamp, subject and attachments
    sender: str
    sent_at: datetime
    subject: str
    attachment_names: Tuple[str, ...]  # As originally supplied, in order
    artifact_location: str  # Where the attachments were stored
    first_seen_at: datetime


@dataclass(frozen=True)
class ProcessingRecord:
    """Completed processing of one delivery (message id + recipient)."""

    message_id: str
    processed_at: datetime
    status: ProcessingStatus
    recipient: str = ""
    content_key: Optional[str] = None  # None when no tracked attachments
    subject: str = ""
    sender: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class ProcessingStats:
    """Summary counts over the processing ledger."""

    total: int
    recent: int
    errors: int
