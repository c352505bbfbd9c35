"""Notification sinks: log-only and webhook with exponential backoff retry logic"""

import logging
import time
from typing import Callable, Optional

import httpx

from biblioteca_gateway.config import settings
from biblioteca_gateway.domain.exceptions import NotificationError
from biblioteca_gateway.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)


class LoggingNotifier:
    """Writes notifications to the service log"""

    def notify(self, message: str) -> None:
        logging.info(message, extra={"step": "notification"})


class WebhookNotifier:
    """Client for posting staff notifications to a webhook"""

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.webhook_url = webhook_url or settings.notify_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.transport = transport
        self.sleep = sleep

    def notify(self, message: str) -> None:
        """
        Send a notification with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ...
        - Retries on HTTP errors and network failures

        Raises:
            NotificationError: Still failing after max_retries attempts
        """
        payload = {"service": settings.service_name, "message": message}
        attempt = 0
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise NotificationError(
                            f"Webhook failed after {attempt} attempts: {e}"
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    self.sleep(backoff)
