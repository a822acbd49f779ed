"""Document store clients for persisting attachment artifacts."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Protocol

from src.intake.errors import DocumentStoreError

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*【】「」／]')
_WHITESPACE = re.compile(r"\s+")
MAX_FOLDER_NAME_LENGTH = 100
MAX_UNIQUE_ATTEMPTS = 100


class DocumentStore(Protocol):
    """Anything that can persist bytes and hand back a location."""

    def store(self, content: bytes, suggested_name: str) -> str:
        ...


def clean_subject_for_folder(subject: str) -> str:
    """Clean an email subject for use as a folder name."""
    cleaned = _INVALID_NAME_CHARS.sub("_", subject or "")
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:MAX_FOLDER_NAME_LENGTH] or "untitled"


def build_artifact_name(
    subject: str,
    sent_at: datetime,
    index: int,
    original_name: str,
) -> str:
    """Build the suggested store path for one attachment.

    Args:
        subject: Email subject, used for the folder.
        sent_at: Email timestamp, used as a YYYYMMDD prefix.
        index: Zero-based position of the attachment in the message.
        original_name: Attachment file name as delivered.

    Returns:
        Relative path in the form ``YYYYMMDD_Subject/YYYYMMDD_name``.
    """
    date_str = sent_at.strftime("%Y%m%d")
    folder = f"{date_str}_{clean_subject_for_folder(subject)}"

    clean_name = _INVALID_NAME_CHARS.sub("_", original_name or "").strip()
    if not clean_name:
        clean_name = f"attachment_{index + 1}"

    return f"{folder}/{date_str}_{clean_name}"


class LocalDocumentStore:
    """Stores artifacts as files below a root directory.

    Existing files are never overwritten; a numeric suffix is added instead.
    """

    def __init__(self, root_dir: str):
        self._root = Path(root_dir)

    @property
    def root(self) -> Path:
        return self._root

    def store(self, content: bytes, suggested_name: str) -> str:
        """Write content to the store.

        Args:
            content: Raw attachment bytes.
            suggested_name: Relative path; folder components are created.

        Returns:
            A file:// URI for the written file.

        Raises:
            DocumentStoreError: If the name is unsafe or the write fails.
        """
        relative = Path(suggested_name)
        if relative.is_absolute() or ".." in relative.parts or not relative.name:
            raise DocumentStoreError(f"Refusing unsafe artifact name: {suggested_name!r}")

        try:
            target_dir = self._root / relative.parent
            target_dir.mkdir(parents=True, exist_ok=True)
            target = self._ensure_unique(target_dir / relative.name)
            # "xb" fails if the file already exists
            with open(target, "xb") as f:
                f.write(content)
        except OSError as e:
            raise DocumentStoreError(f"Failed to store {suggested_name}: {e}") from e

        logger.info(f"Stored artifact {target} ({len(content)} bytes)")
        return target.resolve().as_uri()

    def _ensure_unique(self, path: Path) -> Path:
        if not path.exists():
            return path

        for counter in range(1, MAX_UNIQUE_ATTEMPTS):
            candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
            if not candidate.exists():
                logger.debug(f"Generated unique filename: {candidate.name}")
                return candidate

        raise DocumentStoreError(f"No free file name for {path} after {MAX_UNIQUE_ATTEMPTS} attempts")
