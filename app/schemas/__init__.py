"""
app/schemas package marker.
"""

from app.schemas.envios import (
    ChunkAcceptedResponse,
    CodeFrequencyResponse,
    DetailInsertResponse,
    EnvioRegistrationResponse,
    EnvioSummaryResponse,
    EnvioValidationResponse,
    EstadoUpdateRequest,
    FileValidationResponse,
    FurtranSummaryResponse,
    LineValidationErrorResponse,
    LoteListResponse,
    LoteResponse,
)

__all__ = [
    "ChunkAcceptedResponse",
    "CodeFrequencyResponse",
    "DetailInsertResponse",
    "EnvioRegistrationResponse",
    "EnvioSummaryResponse",
    "EnvioValidationResponse",
    "EstadoUpdateRequest",
    "FileValidationResponse",
    "FurtranSummaryResponse",
    "LineValidationErrorResponse",
    "LoteListResponse",
    "LoteResponse",
]
