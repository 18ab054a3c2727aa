"""
tests/builders.py

Line builders with the correct field count for each file kind, and an
in-memory object store.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from db.repositories.errors import ObjectStorageError
from db.repositories.types import StoredFolderMetadata, StoredObjectInput

PROVIDER_CODE = "1234567890"


def build_line(field_count: int, values: dict[int, str]) -> str:
    fields = [""] * field_count
    for index, value in values.items():
        fields[index] = value
    return ",".join(fields)


def furips1_line(
    *,
    code: str = PROVIDER_CODE,
    factura: str = "FAC-1",
    condicion: str = "1",
    estado: str = "1",
    extra: dict[int, str] | None = None,
) -> str:
    values = {2: factura, 4: code, 18: condicion, 27: estado}
    values.update(extra or {})
    return build_line(102, values)


def furips2_line(
    *,
    factura: str = "FAC-1",
    tipo: str = "1",
    amount: str = "100",
    extra: dict[int, str] | None = None,
) -> str:
    values = {0: factura, 2: tipo, 8: amount}
    values.update(extra or {})
    return build_line(9, values)


def furtran_line(
    *,
    code: str = PROVIDER_CODE,
    factura: str = "TR-1",
    amount: str = "50",
    extra: dict[int, str] | None = None,
) -> str:
    values = {2: factura, 3: code, 44: amount}
    values.update(extra or {})
    return build_line(46, values)


def join_lines(lines: Sequence[str]) -> str:
    return "\n".join(lines) + "\n"


class InMemoryObjectStorage:
    def __init__(self, *, fail: bool = False) -> None:
        self.bucket = "furips-test"
        self.folders: dict[str, dict[str, bytes]] = {}
        self.deleted: list[str] = []
        self._fail = fail

    def save_folder(
        self,
        *,
        folder_path: str,
        files: Sequence[StoredObjectInput],
    ) -> StoredFolderMetadata:
        if self._fail:
            raise ObjectStorageError("storage offline")
        stored = self.folders.setdefault(folder_path, {})
        for item in files:
            stored[item.file_name] = item.content
        return StoredFolderMetadata(
            folder_path=folder_path,
            object_keys=tuple(f"{folder_path}/{item.file_name}" for item in files),
            total_bytes=sum(len(item.content) for item in files),
            stored_at=datetime.now(timezone.utc),
        )

    def delete_folder(self, *, folder_path: str) -> None:
        self.deleted.append(folder_path)
        self.folders.pop(folder_path, None)
