"""Notification sinks told about every handled delivery."""

import logging
from typing import Protocol

import requests

from src.intake.errors import NotificationError
from src.intake.models import DeliveryOutcome

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Receives the final outcome of each (message, recipient) delivery."""

    def notify(self, outcome: DeliveryOutcome) -> None:
        ...


class LoggingNotificationSink:
    """Writes each outcome to the application log."""

    def notify(self, outcome: DeliveryOutcome) -> None:
        label = "duplicate" if outcome.is_duplicate else outcome.state.value.lower()
        logger.info(
            f"Delivery {outcome.message_id} to {outcome.recipient or '<all>'}: "
            f"{label}, artifact={outcome.artifact_location or '-'}"
        )


class WebhookNotificationSink:
    """Posts a compact JSON payload per outcome to an incoming webhook."""

    def __init__(self, webhook_url: str, channel: str = "#general", timeout_seconds: int = 10):
        """Initialize the webhook sink.

        Args:
            webhook_url: Incoming webhook URL (kept in .env).
            channel: Channel name passed through in the payload.
            timeout_seconds: Request timeout.
        """
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout_seconds

    def build_payload(self, outcome: DeliveryOutcome) -> dict:
        return {
            "channel": self._channel,
            "message_id": outcome.message_id,
            "recipient": outcome.recipient,
            "subject": outcome.subject,
            "sender": outcome.sender,
            "state": outcome.state.value,
            "is_duplicate": outcome.is_duplicate,
            "content_key": outcome.content_key,
            "artifact_location": outcome.artifact_location,
            "error": outcome.error,
        }

    def notify(self, outcome: DeliveryOutcome) -> None:
        """Send the outcome.

        Raises:
            NotificationError: If the webhook call fails.
        """
        try:
            response = requests.post(
                self._webhook_url,
                json=self.build_payload(outcome),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise NotificationError(
                f"Webhook notification failed for {outcome.message_id}: {e}"
            ) from e

        logger.debug(f"Webhook notified for {outcome.message_id}")
