"""Outcome models produced by the duplicate coordinator and maintenance."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class DeliveryState(str, Enum):
    """Terminal state of one delivery through the coordinator."""

    ALREADY_HANDLED = "AlreadyHandled"
    DUPLICATE = "Duplicate"
    NOVEL = "Novel"
    FAILED = "Failed"
    UNTRACKED = "Untracked"  # No attachments subject to deduplication


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of handling a single (message id, recipient) delivery."""

    message_id: str
    recipient: str
    state: DeliveryState
    content_key: Optional[str] = None
    artifact_location: Optional[str] = None
    subject: str = ""
    sender: str = ""
    error: Optional[str] = None

    @property
    def is_duplicate(self) -> bool:
        return self.state is DeliveryState.DUPLICATE


@dataclass
class BatchSummary:
    """Counters collected while processing a batch of messages."""

    messages_seen: int = 0
    deliveries_novel: int = 0
    deliveries_duplicate: int = 0
    deliveries_untracked: int = 0
    deliveries_failed: int = 0
    deliveries_already_handled: int = 0
    messages_filtered: int = 0  # Subject did not match; not recorded
    messages_skipped: int = 0  # Left unmarked for the next run
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    def record(self, outcome: DeliveryOutcome) -> None:
        """Count an outcome and keep it for later inspection."""
        self.outcomes.append(outcome)
        if outcome.state is DeliveryState.NOVEL:
            self.deliveries_novel += 1
        elif outcome.state is DeliveryState.DUPLICATE:
            self.deliveries_duplicate += 1
        elif outcome.state is DeliveryState.UNTRACKED:
            self.deliveries_untracked += 1
        elif outcome.state is DeliveryState.FAILED:
            self.deliveries_failed += 1
        else:
            self.deliveries_already_handled += 1

    def as_dict(self) -> dict:
        return {
            "messages_seen": self.messages_seen,
            "deliveries_novel": self.deliveries_novel,
            "deliveries_duplicate": self.deliveries_duplicate,
            "deliveries_untracked": self.deliveries_untracked,
            "deliveries_failed": self.deliveries_failed,
            "deliveries_already_handled": self.deliveries_already_handled,
            "messages_filtered": self.messages_filtered,
            "messages_skipped": self.messages_skipped,
        }


@dataclass(frozen=True)
class CleanupResult:
    """Result of a maintenance cleanup run."""

    days_old: int
    dry_run: bool
    processing_records_matched: int
    fast_store_entries_matched: int
    processing_records_deleted: int
    fast_store_entries_deleted: int
