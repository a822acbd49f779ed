"""Client modules for external services."""

from src.intake.clients.sqlite_client import SqliteClient
from src.intake.clients.document_store import (
    DocumentStore,
    LocalDocumentStore,
    build_artifact_name,
    clean_subject_for_folder,
)
from src.intake.clients.message_source import EmlDirectorySource, parse_eml
from src.intake.clients.notification_sink import (
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
)

__all__ = [
    "SqliteClient",
    "DocumentStore",
    "LocalDocumentStore",
    "build_artifact_name",
    "clean_subject_for_folder",
    "EmlDirectorySource",
    "parse_eml",
    "LoggingNotificationSink",
    "NotificationSink",
    "WebhookNotificationSink",
]
