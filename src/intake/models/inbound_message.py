"""Inbound message models supplied by a message source."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Tuple


@dataclass(frozen=True)
class Attachment:
    """A named attachment whose bytes are loaded on demand."""

    name: str
    loader: Callable[[], bytes] = field(repr=False, compare=False)
    size: Optional[int] = None

    def read(self) -> bytes:
        """Return the attachment content."""
        return self.loader()

    @classmethod
    def from_bytes(cls, name: str, content: bytes) -> "Attachment":
        """Build an attachment around content that is already in memory."""
        return cls(name=name, loader=lambda: content, size=len(content))


@dataclass(frozen=True)
class InboundMessage:
    """One delivered message as reported by the mail source."""

    message_id: str
    sender: str
    sent_at: Optional[datetime]
    subject: str
    recipients: Tuple[str, ...] = ()
    attachments: Tuple[Attachment, ...] = ()

    @property
    def attachment_names(self) -> Tuple[str, ...]:
        return tuple(attachment.name for attachment in self.attachments)
