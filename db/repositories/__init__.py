"""
Repository layer exports.
"""

from db.repositories.errors import (
    DuplicateLoteError,
    LoteNotFoundError,
    LotePersistenceError,
    LoteRepositoryError,
    ObjectStorageError,
)
from db.repositories.furips_row_repository import FuripsRowRepository
from db.repositories.lote_repository import LoteRepository
from db.repositories.storage import (
    LocalObjectStorage,
    ObjectStorageBackend,
    build_envio_folder_path,
    sanitize_path_segment,
)
from db.repositories.types import LoteCreate, StoredFolderMetadata, StoredObjectInput

__all__ = [
    "LoteRepository",
    "FuripsRowRepository",
    "LoteCreate",
    "StoredObjectInput",
    "StoredFolderMetadata",
    "ObjectStorageBackend",
    "LocalObjectStorage",
    "build_envio_folder_path",
    "sanitize_path_segment",
    "LoteRepositoryError",
    "LotePersistenceError",
    "LoteNotFoundError",
    "DuplicateLoteError",
    "ObjectStorageError",
]
