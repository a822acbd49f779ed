"""Exceptions raised by the intake ledger services."""


class IntakeError(Exception):
    """Base exception for intake processing failures."""

    pass


class LedgerUnavailableError(IntakeError):
    """Raised when a backing ledger store cannot be read or written."""

    pass


class DocumentStoreError(IntakeError):
    """Raised by document store implementations when a write fails."""

    pass


class ArtifactPersistenceError(IntakeError):
    """Raised when attachments for novel content could not be persisted."""

    pass


class NotificationError(IntakeError):
    """Raised by notification sinks when delivery of a notice fails."""

    pass
