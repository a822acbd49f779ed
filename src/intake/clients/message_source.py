"""Inbound message source reading RFC 822 files from a directory."""

import logging
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path
from typing import Iterator, List, Optional

from src.intake.models import Attachment, InboundMessage

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _addresses(message: EmailMessage, *headers: str) -> List[str]:
    values = [str(value) for header in headers for value in message.get_all(header, [])]
    return [address for _, address in getaddresses(values) if address]


def parse_eml(raw: bytes, fallback_id: str) -> InboundMessage:
    """Convert raw message bytes into an InboundMessage.

    Args:
        raw: Message bytes as stored on disk.
        fallback_id: Identifier used when the Message-ID header is absent.

    Returns:
        The parsed message with attachment bytes loaded on demand.
    """
    message = BytesParser(policy=policy.default).parsebytes(raw)

    attachments = []
    for index, part in enumerate(message.iter_attachments()):
        name = part.get_filename() or f"attachment_{index + 1}"
        attachments.append(
            Attachment(name=name, loader=lambda part=part: part.get_payload(decode=True) or b"")
        )

    senders = _addresses(message, "From")

    return InboundMessage(
        message_id=str(message.get("Message-ID", "")).strip() or fallback_id,
        sender=senders[0] if senders else str(message.get("From", "")),
        sent_at=_parse_date(message.get("Date")),
        subject=str(message.get("Subject", "")),
        recipients=tuple(_addresses(message, "To", "Cc")),
        attachments=tuple(attachments),
    )


class EmlDirectorySource:
    """Yields messages from ``*.eml`` files in a directory, oldest file first."""

    def __init__(self, inbox_dir: str):
        self._inbox = Path(inbox_dir)

    def __iter__(self) -> Iterator[InboundMessage]:
        if not self._inbox.is_dir():
            logger.warning(f"Inbox directory not found: {self._inbox}")
            return

        paths = sorted(self._inbox.glob("*.eml"), key=lambda p: (p.stat().st_mtime, p.name))
        for path in paths:
            try:
                yield parse_eml(path.read_bytes(), fallback_id=path.stem)
            except (OSError, ValueError) as e:
                logger.error(f"Skipping unreadable message {path.name}: {e}")
