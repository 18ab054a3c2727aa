"""
app/connectors/webhook_notifier.py

Post-registration notification webhook.

After a lote's files land in object storage, downstream processing is told
where to find them with a JSON POST of ``{"bucket": ..., "file_path": ...}``.
Delivery is retried on transient failures; callers treat a final failure as
non-fatal.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol

import requests

from app.config import WebhookSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class WebhookDeliveryError(RuntimeError):
    """
    Raised when the webhook cannot be delivered after retries.
    """


class UploadNotifier(Protocol):
    def notify_upload(self, *, bucket: str, file_path: str) -> None:
        ...


class NoOpUploadNotifier:
    def notify_upload(self, *, bucket: str, file_path: str) -> None:
        return None


class WebhookUploadNotifier:
    """
    requests-based notifier with exponential backoff on retryable failures.
    """

    def __init__(
        self,
        *,
        url: str,
        settings: WebhookSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._max_retries = settings.max_retries
        self._backoff_initial_seconds = settings.backoff_initial_seconds

    def notify_upload(self, *, bucket: str, file_path: str) -> None:
        payload = {"bucket": bucket, "file_path": file_path}

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.post(
                    self._url,
                    json=payload,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    raise WebhookDeliveryError(
                        f"Upload webhook rejected notification (status={status_code})."
                    ) from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (2**attempt)
            logger.warning(
                "Upload webhook retry attempt=%s/%s wait_seconds=%.2f",
                attempt + 1,
                self._max_retries,
                backoff_seconds,
            )
            time.sleep(backoff_seconds)

        raise WebhookDeliveryError("Upload webhook failed after retries.") from last_error


def build_upload_notifier(settings: WebhookSettings) -> UploadNotifier:
    if not settings.enabled or not settings.url:
        return NoOpUploadNotifier()
    return WebhookUploadNotifier(url=settings.url, settings=settings)
