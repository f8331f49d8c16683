"""Hand-off points for batches of newly ingested tenders."""

from __future__ import annotations

from typing import Protocol, Sequence

import httpx

from ..config import NotifierSettings
from ..logging_conf import configure_logging
from .models import Record


class Notifier(Protocol):
    def notify(self, source_name: str, new_records: Sequence[Record]) -> None: ...


class LoggingNotifier:
    """Default notifier: records the batch in the application log."""

    def __init__(self) -> None:
        self.logger = configure_logging().bind(component="notifier")

    def notify(self, source_name: str, new_records: Sequence[Record]) -> None:
        self.logger.info(
            "new_tenders",
            source_name=source_name,
            count=len(new_records),
            names=[record.name for record in new_records[:10]],
        )


class WebhookNotifier:
    """POST each batch as JSON to a configured endpoint."""

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)
        self.logger = configure_logging().bind(component="notifier")

    def notify(self, source_name: str, new_records: Sequence[Record]) -> None:
        payload = {
            "source_name": source_name,
            "count": len(new_records),
            "tenders": [record.to_dict() for record in new_records],
        }
        response = self._client.post(self.url, json=payload)
        response.raise_for_status()
        self.logger.info("webhook_delivered", source_name=source_name, count=len(new_records))

    def close(self) -> None:
        self._client.close()


def build_notifier(settings: NotifierSettings) -> Notifier:
    if settings.webhook_url:
        return WebhookNotifier(settings.webhook_url, timeout=settings.timeout_seconds)
    return LoggingNotifier()


__all__ = ["LoggingNotifier", "Notifier", "WebhookNotifier", "build_notifier"]
