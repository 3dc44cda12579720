"""
Notifiers invoked after an appointment has been created.
"""

import asyncio
import logging
from typing import Any, Dict

import requests

from ..domain.exceptions import NotificationError

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Posts ``{"event": ..., "payload": ...}`` to a webhook (e.g. the mail function)."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, session: requests.Session | None = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._post, event, payload)

    def _post(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            response = self.session.post(
                self.url,
                json={"event": event, "payload": payload},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Webhook delivery of '{event}' failed: {e}") from e

        logger.debug("Delivered '%s' to %s", event, self.url)


class LoggingNotifier:
    """Notifier used when no webhook is configured; it only logs the event."""

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info("Event %s: %s", event, payload)
