"""
app/services package marker.
"""

from app.services.aggregation_service import AggregationService
from app.services.chunked_upload_service import ChunkedUploadService, ChunkSetNotFoundError
from app.services.envio_ingestion_service import (
    EnvioIngestionService,
    UploadNotAllowedError,
    get_envio_ingestion_service,
)
from app.services.lote_registration_service import (
    DuplicateEnvioError,
    LoteRegistrationService,
    RegistrationOutcome,
    StorageUnavailableError,
)
from app.services.reconciliation_service import (
    ForbiddenMismatchError,
    MissingRequiredFileError,
    ReconciliationService,
)

__all__ = [
    "AggregationService",
    "ChunkedUploadService",
    "ChunkSetNotFoundError",
    "EnvioIngestionService",
    "UploadNotAllowedError",
    "get_envio_ingestion_service",
    "DuplicateEnvioError",
    "LoteRegistrationService",
    "RegistrationOutcome",
    "StorageUnavailableError",
    "ForbiddenMismatchError",
    "MissingRequiredFileError",
    "ReconciliationService",
]
