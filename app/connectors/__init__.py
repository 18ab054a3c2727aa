"""
app/connectors package marker.
"""

from app.connectors.webhook_notifier import (
    NoOpUploadNotifier,
    UploadNotifier,
    WebhookDeliveryError,
    WebhookUploadNotifier,
    build_upload_notifier,
)

__all__ = [
    "NoOpUploadNotifier",
    "UploadNotifier",
    "WebhookDeliveryError",
    "WebhookUploadNotifier",
    "build_upload_notifier",
]
