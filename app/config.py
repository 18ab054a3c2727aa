"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from db.config import load_env_files

DEFAULT_BUSINESS_TIMEZONE = "America/Bogota"


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_timezone_env(name: str, default: str) -> str:
    """
    Read an IANA timezone name, falling back when the zone is unknown.
    """

    candidate = _get_str_env(name, default)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return candidate


@dataclass(frozen=True)
class EnvioIngestionSettings:
    """
    Runtime settings for envío validation and registration.

    ``max_lines_per_file`` of 0 disables the per-file line cap.
    """

    timezone: str = DEFAULT_BUSINESS_TIMEZONE
    max_lines_per_file: int = 0
    parallel_workers: int = 3
    detail_batch_size: int = 1000

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class ChunkUploadSettings:
    """
    Scratch area for chunked uploads.
    """

    temp_dir: str = "tmp/furips-uploads"


@dataclass(frozen=True)
class ObjectStorageSettings:
    """
    Storage backend settings for submitted envío files.
    """

    root_dir: str = "data/object_storage"
    bucket: str = "furips"


@dataclass(frozen=True)
class WebhookSettings:
    """
    Post-registration notification webhook.
    """

    enabled: bool = False
    url: str | None = None
    timeout_seconds: float = 10.0
    max_retries: int = 2
    backoff_initial_seconds: float = 0.5


@lru_cache(maxsize=1)
def get_envio_ingestion_settings() -> EnvioIngestionSettings:
    """
    Return cached envío ingestion settings from environment variables.
    """

    return EnvioIngestionSettings(
        timezone=_get_timezone_env("ENVIO_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE),
        max_lines_per_file=max(0, _get_int_env("ENVIO_MAX_LINES_PER_FILE", 0)),
        parallel_workers=max(1, _get_int_env("ENVIO_PARALLEL_WORKERS", 3)),
        detail_batch_size=max(1, _get_int_env("ENVIO_DETAIL_BATCH_SIZE", 1000)),
    )


@lru_cache(maxsize=1)
def get_chunk_upload_settings() -> ChunkUploadSettings:
    return ChunkUploadSettings(
        temp_dir=_get_str_env("CHUNK_UPLOAD_TEMP_DIR", "tmp/furips-uploads"),
    )


@lru_cache(maxsize=1)
def get_object_storage_settings() -> ObjectStorageSettings:
    return ObjectStorageSettings(
        root_dir=_get_str_env("OBJECT_STORAGE_ROOT", "data/object_storage"),
        bucket=_get_str_env("OBJECT_STORAGE_BUCKET", "furips"),
    )


@lru_cache(maxsize=1)
def get_webhook_settings() -> WebhookSettings:
    """
    Return webhook settings. The webhook is off unless both enabled and a URL
    is configured.
    """

    url = _get_optional_str_env("UPLOAD_WEBHOOK_URL")
    return WebhookSettings(
        enabled=_get_bool_env("UPLOAD_WEBHOOK_ENABLED", url is not None) and url is not None,
        url=url,
        timeout_seconds=max(1.0, _get_float_env("UPLOAD_WEBHOOK_TIMEOUT_SECONDS", 10.0)),
        max_retries=max(0, _get_int_env("UPLOAD_WEBHOOK_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(0.0, _get_float_env("UPLOAD_WEBHOOK_BACKOFF_SECONDS", 0.5)),
    )
