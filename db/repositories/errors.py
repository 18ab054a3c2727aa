"""
Repository-layer exceptions for lote persistence and object storage.
"""

from __future__ import annotations


class LoteRepositoryError(Exception):
    """Base exception for lote repository failures."""


class LotePersistenceError(LoteRepositoryError):
    """Raised when lote or detail-row persistence fails."""


class LoteNotFoundError(LoteRepositoryError):
    """Raised when a referenced lote does not exist."""


class DuplicateLoteError(LoteRepositoryError):
    """Raised when the same-day uniqueness constraint rejects a lote."""


class ObjectStorageError(LoteRepositoryError):
    """Raised when storing or deleting envío files fails."""
