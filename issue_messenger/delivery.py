"""Post payloads to chat webhooks."""
from __future__ import annotations

import concurrent.futures

import requests
from loguru import logger

from issue_messenger.models import Payload

HTTP_ERROR_THRESHOLD = 400
DEFAULT_TIMEOUT = 30
DEFAULT_WORKERS = 4


class MessengerWebhookError(RuntimeError):
    """Raised when a webhook call fails."""

    def __init__(self, status_code: int, text: str) -> None:
        """Create a webhook error."""
        super().__init__(f"Messenger webhook failed ({status_code}): {text}")
        self.status_code = status_code


def post_payload(url: str, payload: Payload, timeout: int = DEFAULT_TIMEOUT) -> None:
    """Post a payload to a webhook URL."""
    response = requests.post(url, json=payload.to_json(), timeout=timeout)
    if response.status_code >= HTTP_ERROR_THRESHOLD:
        raise MessengerWebhookError(response.status_code, response.text)


class WebhookDispatcher:
    """Deliver payloads in the background, one request per channel."""

    def __init__(
        self,
        max_workers: int = DEFAULT_WORKERS,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.timeout = timeout
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="messenger",
        )

    def deliver(self, url: str, payload: Payload) -> None:
        """Post a payload and wait for the response."""
        post_payload(url, payload, self.timeout)
        logger.info("Delivered message", channel=payload.channel)

    def enqueue(self, url: str, payload: Payload) -> None:
        """Schedule a payload for delivery without waiting for it."""
        future = self._executor.submit(self.deliver, url, payload)
        future.add_done_callback(lambda done: self._log_failure(done, payload))

    def shutdown(self) -> None:
        """Wait for pending deliveries and stop the worker threads."""
        self._executor.shutdown(wait=True)

    @staticmethod
    def _log_failure(future: concurrent.futures.Future[None], payload: Payload) -> None:
        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error(
                "Message delivery failed",
                channel=payload.channel,
            )
