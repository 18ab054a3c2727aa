"""
app/services/chunked_upload_service.py

Chunked transfer assembler.

Large archives arrive as numbered chunks, one request per chunk, written to
``<temp_dir>/<upload_id>/chunk_00000``, ``chunk_00001``, ... . The zero-padded
names make lexicographic order equal to chunk order, so arrival order does
not matter. Assembly concatenates, then removes the scratch directory.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from app.config import ChunkUploadSettings, get_chunk_upload_settings

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "chunk_"
MAX_CHUNK_INDEX = 99_999

_UPLOAD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


class ChunkedUploadError(Exception):
    """Base exception for chunked transfer failures."""


class InvalidUploadIdError(ChunkedUploadError):
    def __init__(self, upload_id: str) -> None:
        super().__init__(f"Invalid upload id: {upload_id!r}")
        self.upload_id = upload_id


class InvalidChunkError(ChunkedUploadError):
    """Chunk index out of range or empty chunk payload."""


class ChunkSetNotFoundError(ChunkedUploadError):
    """
    The chunk set is missing or incomplete.

    A transient transfer condition; the client should restart the upload.
    """

    def __init__(self, upload_id: str, *, expected: int | None = None, found: int = 0) -> None:
        if expected is None:
            message = f"No se encontraron los chunks del upload {upload_id}"
        else:
            message = (
                f"Upload {upload_id} incompleto: se esperaban {expected} chunks, "
                f"se encontraron {found}"
            )
        super().__init__(message)
        self.upload_id = upload_id
        self.expected = expected
        self.found = found


def chunk_file_name(chunk_index: int) -> str:
    return f"{CHUNK_PREFIX}{chunk_index:05d}"


class ChunkedUploadService:
    def __init__(self, settings: ChunkUploadSettings | None = None) -> None:
        self._settings = settings or get_chunk_upload_settings()
        self._root = Path(self._settings.temp_dir)

    def _upload_dir(self, upload_id: str) -> Path:
        if not _UPLOAD_ID_PATTERN.match(upload_id):
            raise InvalidUploadIdError(upload_id)
        return self._root / upload_id

    def save_chunk(self, upload_id: str, chunk_index: int, data: bytes) -> Path:
        if chunk_index < 0 or chunk_index > MAX_CHUNK_INDEX:
            raise InvalidChunkError(f"Chunk index out of range: {chunk_index}")
        if not data:
            raise InvalidChunkError(f"Chunk {chunk_index} is empty")

        upload_dir = self._upload_dir(upload_id)
        upload_dir.mkdir(parents=True, exist_ok=True)
        target = upload_dir / chunk_file_name(chunk_index)
        tmp_path = target.with_suffix(".tmp")
        with tmp_path.open("wb") as handle:
            handle.write(data)
        tmp_path.replace(target)

        logger.debug(
            "Stored chunk upload_id=%s index=%d bytes=%d",
            upload_id,
            chunk_index,
            len(data),
        )
        return target

    def assemble(
        self,
        upload_id: str,
        expected_count: int | None = None,
        *,
        keep: bool = False,
    ) -> bytes:
        """
        Concatenate all chunks of ``upload_id`` in index order and delete them,
        unless ``keep`` is set and the caller discards them later.

        Raises ChunkSetNotFoundError when the directory is missing or, with
        ``expected_count``, when the number of chunks differs. Chunks are kept
        on a count mismatch so a retry can fill the gap.
        """

        upload_dir = self._upload_dir(upload_id)
        if not upload_dir.is_dir():
            raise ChunkSetNotFoundError(upload_id)

        chunk_paths = sorted(
            (
                path
                for path in upload_dir.iterdir()
                if path.is_file() and path.name.startswith(CHUNK_PREFIX) and path.suffix != ".tmp"
            ),
            key=lambda path: path.name,
        )
        if not chunk_paths:
            raise ChunkSetNotFoundError(upload_id)
        if expected_count is not None and len(chunk_paths) != expected_count:
            raise ChunkSetNotFoundError(upload_id, expected=expected_count, found=len(chunk_paths))

        buffer = bytearray()
        for path in chunk_paths:
            buffer.extend(path.read_bytes())

        if not keep:
            self.discard(upload_id)
        logger.info(
            "Assembled upload upload_id=%s chunks=%d bytes=%d",
            upload_id,
            len(chunk_paths),
            len(buffer),
        )
        return bytes(buffer)

    def discard(self, upload_id: str) -> None:
        upload_dir = self._upload_dir(upload_id)
        try:
            shutil.rmtree(upload_dir)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not remove chunk directory %s: %s", upload_dir, exc)
