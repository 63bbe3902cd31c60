"""
Cache-invalidation notifiers.

WebhookCacheNotifier POSTs a small JSON payload to a revalidation URL so a
downstream site cache drops stale pages. Delivery is fire-and-forget: by
default the POST runs on a daemon thread and failures are only logged.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

import httpx

from content_lifecycle.core.ports.notify import InvalidationEvent

logger = logging.getLogger(__name__)


def _serialize_payload(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


class WebhookCacheNotifier:
    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        background: bool = True,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._timeout = max(0.2, timeout_seconds)
        self._background = background
        self._client = client

    def notify(self, event: InvalidationEvent) -> None:
        """
        Send the event. In background mode this never raises; in foreground
        mode an HTTP or transport error propagates to the caller.
        """
        if not self._background:
            self._deliver(event)
            return

        thread = threading.Thread(
            target=self._deliver_logged,
            args=(event,),
            name="cache-invalidation",
            daemon=True,
        )
        thread.start()

    def _deliver_logged(self, event: InvalidationEvent) -> None:
        try:
            self._deliver(event)
        except httpx.HTTPError:
            logger.warning("Cache invalidation for %s failed", event.content_id, exc_info=True)

    def _deliver(self, event: InvalidationEvent) -> None:
        body = _serialize_payload(event.to_payload())
        headers = {"Content-Type": "application/json"}
        if self._client is not None:
            response = self._client.post(self._url, content=body, headers=headers)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(self._url, content=body, headers=headers)
        response.raise_for_status()
        logger.debug("Cache invalidation for %s delivered (%d)", event.content_id, response.status_code)


class LoggingNotifier:
    """Used when no revalidation URL is configured."""

    def notify(self, event: InvalidationEvent) -> None:
        logger.info(
            "Invalidate %s (%s, %s) locales=%s",
            event.slug,
            event.status,
            event.action,
            ",".join(event.locales),
        )
