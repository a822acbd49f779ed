"""Duplicate coordinator for inbound message processing.

Decides two things independently for every delivery:
- Message level: was this (message id, recipient) already handled?
  The bounded fast store answers quickly; the processing ledger is
  authoritative and is consulted on every fast-store miss.
- Content level: were these attachments stored before? The content key is
  looked up in the content ledger; novel content is persisted through the
  document store, duplicate content reuses the recorded artifact location.

Every delivery that gets past the message check is recorded in the
processing ledger (Success or Error) and announced to the notification sink.
Error records do not count as handled: the delivery is tried again on the
next run and the record is replaced once it succeeds.

Messages whose subject does not match the configured patterns are skipped
before any of this and leave no trace in either ledger.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from src.intake.clients import DocumentStore, NotificationSink, build_artifact_name
from src.intake.errors import ArtifactPersistenceError, IntakeError, LedgerUnavailableError
from src.intake.ingestion.fingerprint import generate_content_key, is_fallback_key
from src.intake.ingestion.subject_filter import compile_patterns, subject_matches
from src.intake.models import (
    Attachment,
    BatchSummary,
    DeliveryOutcome,
    DeliveryState,
    DuplicateRecord,
    InboundMessage,
    ProcessingRecord,
    ProcessingStatus,
)
from src.intake.services.content_ledger import ContentLedger
from src.intake.services.fast_store import BoundedFastStore
from src.intake.services.processing_ledger import ProcessingLedger

logger = logging.getLogger(__name__)

CONTENT_LOCK_STRIPES = 64

# State, artifact location and error of one content resolution
ContentResolution = Tuple[DeliveryState, Optional[str], Optional[str]]


def delivery_key(message_id: str, recipient: str = "") -> str:
    """Key used for a delivery in the bounded fast store."""
    return f"{message_id}#{recipient}" if recipient else message_id


def distinct_recipients(recipients: Iterable[str]) -> List[str]:
    """Lowercase addresses and drop blanks and repeats, keeping order."""
    seen = set()
    result = []
    for recipient in recipients:
        address = recipient.strip().lower()
        if address and address not in seen:
            seen.add(address)
            result.append(address)
    return result


class DuplicateCoordinator:
    """Runs each delivery through message check, content check and logging."""

    def __init__(
        self,
        fast_store: BoundedFastStore,
        processing_ledger: ProcessingLedger,
        content_ledger: ContentLedger,
        document_store: DocumentStore,
        notification_sink: NotificationSink,
        granularity_minutes: int = 1,
        attachment_extensions: Sequence[str] = (".pdf",),
        subject_patterns: Sequence[Union[str, Pattern]] = (),
        match_mode: str = "any",
    ):
        self._fast_store = fast_store
        self._processing_ledger = processing_ledger
        self._content_ledger = content_ledger
        self._document_store = document_store
        self._notification_sink = notification_sink
        self._granularity_minutes = granularity_minutes
        self._attachment_extensions = tuple(ext.lower() for ext in attachment_extensions)

        self._subject_patterns = compile_patterns(subject_patterns)
        self._match_mode = match_mode

        # Keys hashing to the same stripe share a lock
        self._content_locks = [threading.Lock() for _ in range(CONTENT_LOCK_STRIPES)]

    # --- Message level ---

    def is_already_handled(self, message_id: str, recipient: str = "") -> bool:
        """Check the fast store, then the processing ledger.

        A successful processing-ledger hit is copied back into the fast store.
        An Error record means the delivery is due for a retry.

        Raises:
            LedgerUnavailableError: If the processing ledger cannot be read.
        """
        key = delivery_key(message_id, recipient)
        try:
            if self._fast_store.contains(key):
                logger.debug(f"Fast store hit for {key}")
                return True
        except LedgerUnavailableError as e:
            logger.warning(f"Fast store unavailable, checking processing ledger: {e}")

        record = self._processing_ledger.lookup(message_id, recipient)
        if record is None:
            return False

        if record.status is ProcessingStatus.ERROR:
            logger.info(f"Retrying failed delivery {key}: {record.error}")
            return False

        logger.info(f"Message {message_id} found as processed in ledger")
        self._remember(key)
        return True

    def _remember(self, key: str) -> None:
        try:
            self._fast_store.try_insert(key)
        except LedgerUnavailableError as e:
            logger.warning(f"Could not cache {key} in fast store: {e}")

    # --- Content level ---

    def tracked_attachments(self, message: InboundMessage) -> List[Attachment]:
        """Attachments whose names end with a deduplicated extension."""
        return [
            attachment
            for attachment in message.attachments
            if attachment.name.lower().endswith(self._attachment_extensions)
        ]

    def content_key_for(self, message: InboundMessage) -> Optional[str]:
        """Content key over the tracked attachments, or None if there are none."""
        tracked = self.tracked_attachments(message)
        if not tracked:
            return None
        return generate_content_key(
            sender=message.sender,
            sent_at=message.sent_at,
            subject=message.subject,
            attachment_names=[attachment.name for attachment in tracked],
            granularity_minutes=self._granularity_minutes,
        )

    def _content_lock(self, content_key: str) -> threading.Lock:
        return self._content_locks[hash(content_key) % len(self._content_locks)]

    def _resolve_content(
        self,
        message: InboundMessage,
        content_key: str,
        tracked: List[Attachment],
    ) -> Tuple[DeliveryState, str]:
        """Reuse a recorded artifact or persist and record a new one.

        Raises:
            ArtifactPersistenceError: If the document store fails; nothing is
                recorded in the content ledger in that case.
        """
        with self._content_lock(content_key):
            existing = self._content_ledger.lookup(content_key)
            if existing is not None:
                logger.info(f"Duplicate content {content_key}; reusing {existing.artifact_location}")
                return DeliveryState.DUPLICATE, existing.artifact_location

            if is_fallback_key(content_key):
                logger.warning(f"Message {message.message_id} stored without duplicate detection")

            location = self._persist_artifacts(message, tracked)
            now = datetime.now(timezone.utc)
            self._content_ledger.append(
                DuplicateRecord(
                    content_key=content_key,
                    sender=message.sender,
                    sent_at=message.sent_at or now,
                    subject=message.subject,
                    attachment_names=tuple(attachment.name for attachment in tracked),
                    artifact_location=location,
                    first_seen_at=now,
                )
            )
            return DeliveryState.NOVEL, location

    def _persist_artifacts(self, message: InboundMessage, tracked: List[Attachment]) -> str:
        sent_at = message.sent_at or datetime.now(timezone.utc)
        locations = []
        for index, attachment in enumerate(tracked):
            suggested_name = build_artifact_name(message.subject, sent_at, index, attachment.name)
            try:
                locations.append(self._document_store.store(attachment.read(), suggested_name))
            except Exception as e:
                raise ArtifactPersistenceError(
                    f"Failed to save attachment {index + 1} ({attachment.name}) "
                    f"of {message.message_id}: {e}"
                ) from e

        logger.info(f"Saved {len(locations)} attachments for {message.message_id}")
        return "\n".join(locations)

    def _try_resolve_content(
        self,
        message: InboundMessage,
        content_key: str,
        tracked: List[Attachment],
    ) -> ContentResolution:
        try:
            state, location = self._resolve_content(message, content_key, tracked)
        except ArtifactPersistenceError as e:
            logger.error(str(e))
            return DeliveryState.FAILED, None, str(e)
        return state, location, None

    # --- Delivery ---

    def matches_subject(self, message: InboundMessage) -> bool:
        """True if the subject passes the configured pattern filter."""
        return subject_matches(message.subject, self._subject_patterns, self._match_mode)

    def handle_delivery(
        self,
        message: InboundMessage,
        recipient: str = "",
        content_key: Optional[str] = None,
    ) -> DeliveryOutcome:
        """Process one (message, recipient) delivery.

        Args:
            message: The inbound message.
            recipient: Recipient this delivery is logged for ("" for none).
            content_key: Precomputed content key shared across recipients.

        Returns:
            DeliveryOutcome describing what happened.

        Raises:
            LedgerUnavailableError: If a ledger cannot be read or written; the
                delivery is then not marked as processed.
        """
        return self._handle_delivery(message, recipient, content_key, resolved={})

    def _handle_delivery(
        self,
        message: InboundMessage,
        recipient: str,
        content_key: Optional[str],
        resolved: Dict[str, ContentResolution],
    ) -> DeliveryOutcome:
        if self.is_already_handled(message.message_id, recipient):
            return DeliveryOutcome(
                message_id=message.message_id,
                recipient=recipient,
                state=DeliveryState.ALREADY_HANDLED,
                subject=message.subject,
                sender=message.sender,
            )

        tracked = self.tracked_attachments(message)
        location: Optional[str] = None
        error: Optional[str] = None

        if not tracked:
            content_key = None
            state = DeliveryState.UNTRACKED
        else:
            content_key = content_key or self.content_key_for(message)
            if content_key in resolved:
                # Stored (or failed) for an earlier recipient of this message
                state, location, error = resolved[content_key]
                if state is DeliveryState.NOVEL:
                    state = DeliveryState.DUPLICATE
            else:
                state, location, error = self._try_resolve_content(message, content_key, tracked)
                resolved[content_key] = (state, location, error)

        self._processing_ledger.append(
            ProcessingRecord(
                message_id=message.message_id,
                recipient=recipient,
                processed_at=datetime.now(timezone.utc),
                status=ProcessingStatus.ERROR if error else ProcessingStatus.SUCCESS,
                content_key=content_key,
                subject=message.subject,
                sender=message.sender,
                error=error,
            )
        )
        # Failed deliveries stay out of the fast store so the next run retries them
        if error is None:
            self._remember(delivery_key(message.message_id, recipient))

        outcome = DeliveryOutcome(
            message_id=message.message_id,
            recipient=recipient,
            state=state,
            content_key=content_key,
            artifact_location=location,
            subject=message.subject,
            sender=message.sender,
            error=error,
        )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: DeliveryOutcome) -> None:
        try:
            self._notification_sink.notify(outcome)
        except Exception as e:
            # Already recorded; a failed notice must not change the outcome
            logger.error(f"Error sending notification for {outcome.message_id}: {e}")

    def process_message(self, message: InboundMessage) -> List[DeliveryOutcome]:
        """Handle a message once per distinct recipient.

        The content key is computed and resolved once and shared, so the
        artifact is stored at most once while every recipient gets its own
        record. Messages failing the subject filter return no outcomes.
        """
        if not self.matches_subject(message):
            logger.info(f"Subject {message.subject!r} does not match; skipping {message.message_id}")
            return []

        logger.info(f"Processing message: {message.message_id} ({message.subject!r})")
        recipients = distinct_recipients(message.recipients) or [""]
        content_key = self.content_key_for(message)
        resolved: Dict[str, ContentResolution] = {}
        return [
            self._handle_delivery(message, recipient, content_key, resolved)
            for recipient in recipients
        ]

    def process_batch(self, messages: Iterable[InboundMessage]) -> BatchSummary:
        """Process messages independently; one failure never stops the batch."""
        summary = BatchSummary()

        for message in messages:
            summary.messages_seen += 1
            try:
                outcomes = self.process_message(message)
                if not outcomes:
                    summary.messages_filtered += 1
                for outcome in outcomes:
                    summary.record(outcome)
            except LedgerUnavailableError as e:
                logger.error(f"Ledger unavailable, leaving {message.message_id} for next run: {e}")
                summary.messages_skipped += 1
            except IntakeError as e:
                logger.error(f"Failed to process message {message.message_id}: {e}")
                summary.messages_skipped += 1
            except Exception:
                logger.exception(f"Unexpected error processing message {message.message_id}")
                summary.messages_skipped += 1

        logger.info(
            f"Batch complete: {summary.messages_seen} messages, "
            f"{summary.deliveries_novel} novel, {summary.deliveries_duplicate} duplicate, "
            f"{summary.deliveries_failed} failed, "
            f"{summary.deliveries_already_handled} already handled, "
            f"{summary.messages_filtered} filtered, "
            f"{summary.messages_skipped} skipped"
        )
        return summary
