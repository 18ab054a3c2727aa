"""
app/domain package marker.
"""

from app.domain.furips import (
    CallerIdentity,
    CallerRole,
    EnvioSummary,
    FileKind,
    FileValidationResult,
    LineValidationError,
    RawSubmission,
)

__all__ = [
    "CallerIdentity",
    "CallerRole",
    "EnvioSummary",
    "FileKind",
    "FileValidationResult",
    "LineValidationError",
    "RawSubmission",
]
