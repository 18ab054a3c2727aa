"""
Object storage abstractions for submitted envío files.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from collections.abc import Sequence
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from db.repositories.errors import ObjectStorageError
from db.repositories.types import StoredFolderMetadata, StoredObjectInput

MAX_SEGMENT_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_\-.]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


class ObjectStorageBackend(Protocol):
    """
    Abstract storage backend used by the lote registrar.
    """

    bucket: str

    def save_folder(
        self,
        *,
        folder_path: str,
        files: Sequence[StoredObjectInput],
    ) -> StoredFolderMetadata:
        ...

    def delete_folder(self, *, folder_path: str) -> None:
        ...


def sanitize_path_segment(value: str) -> str:
    """
    Make a provider or envío name safe to use as one path segment.

    Accents are stripped, anything outside ``[A-Za-z0-9_.-]`` becomes ``_``,
    runs of ``_`` collapse, and the result is capped at 100 characters.
    """

    decomposed = unicodedata.normalize("NFD", value)
    without_accents = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    safe = _UNSAFE_CHARS.sub("_", without_accents)
    safe = _REPEATED_UNDERSCORES.sub("_", safe)
    return safe[:MAX_SEGMENT_LENGTH]


def build_envio_folder_path(nombre_ips: str, nombre_archivo: str, day: date, *, lote_id: int) -> str:
    """
    ``{provider}/{YYYY-MM-DD}_{nombre_archivo}_lote-{id}``, names sanitized.

    The lote id makes the folder unique per lote, so two envíos never share
    stored files even when provider name, envío name and day coincide.
    """

    return (
        f"{sanitize_path_segment(nombre_ips)}/"
        f"{day.isoformat()}_{sanitize_path_segment(nombre_archivo)}_lote-{lote_id}"
    )


def normalize_object_name(file_name: str) -> str:
    """
    Relative object name inside an envío folder.

    Backslashes count as separators; empty, ``.`` and ``..`` segments are
    dropped. Returns an empty string when nothing usable is left.
    """

    parts = [part.strip() for part in file_name.replace("\\", "/").split("/")]
    return "/".join(part for part in parts if part and part not in {".", ".."})


class LocalObjectStorage:
    """
    Filesystem-backed object store laid out as ``{root}/{bucket}/{folder}/{file}``.
    """

    def __init__(self, root_dir: str | Path = "data/object_storage", bucket: str = "furips") -> None:
        self._root_dir = Path(root_dir)
        self.bucket = bucket

    def _bucket_dir(self) -> Path:
        return self._root_dir / self.bucket

    def save_folder(
        self,
        *,
        folder_path: str,
        files: Sequence[StoredObjectInput],
    ) -> StoredFolderMetadata:
        if not files:
            raise ObjectStorageError("No files to store.")

        stored_at = datetime.now(timezone.utc)
        folder_dir = self._bucket_dir() / Path(folder_path)
        object_keys: list[str] = []
        seen: set[str] = set()
        total_bytes = 0

        try:
            folder_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ObjectStorageError("Failed to create envío folder in storage.") from exc

        for item in files:
            safe_file_name = normalize_object_name(item.file_name)
            if not safe_file_name:
                raise ObjectStorageError(f"Invalid file name: {item.file_name!r}")
            if safe_file_name in seen:
                raise ObjectStorageError(f"Duplicate object name: {safe_file_name}")
            seen.add(safe_file_name)
            absolute_path = folder_dir / safe_file_name
            try:
                absolute_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ObjectStorageError(f"Failed to create folder for {safe_file_name}.") from exc
            tmp_path = absolute_path.with_suffix(f"{absolute_path.suffix}.tmp")
            try:
                with tmp_path.open("wb") as handle:
                    handle.write(item.content)
                tmp_path.replace(absolute_path)
            except OSError as exc:
                raise ObjectStorageError(f"Failed to write {safe_file_name} to storage.") from exc
            finally:
                if tmp_path.exists():
                    try:
                        tmp_path.unlink()
                    except OSError:
                        pass

            object_keys.append(f"{folder_path}/{safe_file_name}")
            total_bytes += len(item.content)

        return StoredFolderMetadata(
            folder_path=folder_path,
            object_keys=tuple(object_keys),
            total_bytes=total_bytes,
            stored_at=stored_at,
        )

    def delete_folder(self, *, folder_path: str) -> None:
        target = self._bucket_dir() / Path(folder_path)
        if not target.exists():
            return
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise ObjectStorageError("Failed to delete envío folder from storage.") from exc
