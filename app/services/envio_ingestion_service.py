"""
app/services/envio_ingestion_service.py

End-to-end orchestration for one envío submission.

Flow
----
    files ──► per-kind stage (parallel: validate, then aggregate if valid)
          ──► join
          ──► structural errors?  → EnvioValidationOutcome(success=False)
          ──► reconcile           → EnvioSummary
          ──► register (optional) → RegistrationResult

The per-kind stage is pure and runs on a thread pool. Reconciliation and
registration run after the join, on the calling thread.
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from mimetypes import guess_type
from pathlib import PurePosixPath

from app.config import (
    EnvioIngestionSettings,
    get_envio_ingestion_settings,
    get_object_storage_settings,
    get_webhook_settings,
)
from app.connectors.webhook_notifier import build_upload_notifier
from app.domain.furips import (
    CallerIdentity,
    CallerRole,
    EnvioSummary,
    FileKind,
    FileValidationResult,
    ProcessedFile,
    RawSubmission,
)
from app.logging_utils import log_event
from app.services.aggregation_service import AggregationService
from app.services.chunked_upload_service import ChunkedUploadService
from app.services.lote_registration_service import (
    DuplicateEnvioError,
    LoteRegistrationService,
    RegistrationResult,
)
from app.services.reconciliation_service import ReconciliationService
from app.validators.furips_validator import FuripsFileValidator
from db.repositories.storage import LocalObjectStorage
from db.repositories.types import StoredObjectInput

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EnvioIngestionError(Exception):
    """Base exception for envío ingestion request failures."""


class UploadNotAllowedError(EnvioIngestionError):
    def __init__(self, role: str) -> None:
        super().__init__(f"El rol {role} no puede cargar archivos")
        self.role = role


class InvalidEnvioRequestError(EnvioIngestionError):
    """Request is missing required input or carries unreadable content."""


class FileTooLargeError(EnvioIngestionError):
    def __init__(self, kind: str, line_count: int, max_lines: int) -> None:
        super().__init__(
            f"El archivo {kind} tiene {line_count} líneas; el máximo permitido es {max_lines}"
        )
        self.kind = kind
        self.line_count = line_count
        self.max_lines = max_lines


class InvalidArchiveError(EnvioIngestionError):
    """The assembled supporting-documents archive is not a readable ZIP."""


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnvioValidationOutcome:
    success: bool
    files: dict[str, ProcessedFile] = field(default_factory=dict)
    summary: EnvioSummary | None = None

    @property
    def validation(self) -> dict[str, FileValidationResult]:
        return {kind: result.validation for kind, result in self.files.items()}


@dataclass(frozen=True)
class EnvioSubmissionOutcome:
    validation: EnvioValidationOutcome
    registration: RegistrationResult | None = None


# ---------------------------------------------------------------------------
# Archive extraction
# ---------------------------------------------------------------------------


def extract_archive_documents(archive: bytes) -> list[StoredObjectInput]:
    """
    Unpack the supporting-documents ZIP into storage inputs.

    Directories, hidden entries and macOS resource forks are skipped. Each
    document keeps its path inside the archive, so same-named files in
    different folders stay apart.
    """

    try:
        bundle = zipfile.ZipFile(io.BytesIO(archive))
    except zipfile.BadZipFile as exc:
        raise InvalidArchiveError("El archivo de soportes no es un ZIP válido.") from exc

    documents: list[StoredObjectInput] = []
    with bundle:
        for entry in bundle.infolist():
            if entry.is_dir():
                continue
            entry_path = PurePosixPath(entry.filename)
            if entry_path.name.startswith(".") or "__MACOSX" in entry_path.parts:
                continue
            try:
                payload = bundle.read(entry)
            except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
                raise InvalidArchiveError(f"No se pudo leer {entry.filename} del ZIP.") from exc
            documents.append(
                StoredObjectInput(
                    file_name=entry.filename,
                    content=payload,
                    content_type=guess_type(entry_path.name)[0] or "application/octet-stream",
                )
            )
    return documents


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EnvioIngestionService:
    def __init__(
        self,
        *,
        registration_service: LoteRegistrationService,
        reconciliation_service: ReconciliationService | None = None,
        validator: FuripsFileValidator | None = None,
        aggregator: AggregationService | None = None,
        chunk_service: ChunkedUploadService | None = None,
        settings: EnvioIngestionSettings | None = None,
    ) -> None:
        self._registration = registration_service
        self._reconciliation = reconciliation_service or ReconciliationService()
        self._validator = validator or FuripsFileValidator()
        self._aggregator = aggregator or AggregationService()
        self._chunks = chunk_service or ChunkedUploadService()
        self._settings = settings or get_envio_ingestion_settings()

    @property
    def registration(self) -> LoteRegistrationService:
        return self._registration

    # -- gates --------------------------------------------------------------

    @staticmethod
    def ensure_can_upload(caller: CallerIdentity) -> None:
        if caller.role not in (CallerRole.ADMIN, CallerRole.USER):
            raise UploadNotAllowedError(caller.role)

    @staticmethod
    def _require_id_envio(id_envio: str) -> str:
        cleaned = (id_envio or "").strip()
        if not cleaned:
            raise InvalidEnvioRequestError("Se requiere el ID/Nombre del Envío")
        return cleaned

    # -- per-kind stage -----------------------------------------------------

    def process_file(self, submission: RawSubmission) -> ProcessedFile:
        """
        Validate one file and, only when structurally valid, aggregate it.
        """

        content = submission.text()
        validation = self._validator.validate_kind(content, submission.kind)
        max_lines = self._settings.max_lines_per_file
        if max_lines and validation.total_lines > max_lines:
            raise FileTooLargeError(submission.kind, validation.total_lines, max_lines)

        aggregation = None
        if validation.is_valid:
            if submission.kind == FileKind.FURIPS1:
                aggregation = self._aggregator.aggregate_furips1(content)
            elif submission.kind == FileKind.FURIPS2:
                aggregation = self._aggregator.aggregate_furips2(content)
            else:
                aggregation = self._aggregator.aggregate_furtran(content)

        return ProcessedFile(
            kind=submission.kind,
            file_name=submission.file_name,
            content=content,
            validation=validation,
            aggregation=aggregation,
        )

    def process_files(self, submissions: Sequence[RawSubmission]) -> dict[str, ProcessedFile]:
        if len(submissions) <= 1:
            return {item.kind: self.process_file(item) for item in submissions}

        workers = min(self._settings.parallel_workers, len(submissions))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="envio-file") as executor:
            futures = [executor.submit(self.process_file, item) for item in submissions]
            # result() re-raises worker exceptions on the calling thread.
            results = [future.result() for future in futures]
        return {result.kind: result for result in results}

    # -- operations ---------------------------------------------------------

    def validate_envio(
        self,
        submissions: Sequence[RawSubmission],
        *,
        id_envio: str,
        caller: CallerIdentity,
    ) -> EnvioValidationOutcome:
        """
        Validate, aggregate and reconcile a FURIPS envío without registering it.

        Structural errors are data: the outcome carries every error list and
        no summary.
        """

        self.ensure_can_upload(caller)
        id_envio = self._require_id_envio(id_envio)
        kinds = [item.kind for item in submissions]
        if len(set(kinds)) != len(kinds):
            raise InvalidEnvioRequestError("Cada tipo de archivo puede enviarse una sola vez")

        processed = self.process_files(submissions)
        for required in (FileKind.FURIPS1, FileKind.FURIPS2):
            if required not in processed:
                raise InvalidEnvioRequestError(f"Se requiere el archivo {required}")

        if not all(result.is_valid for result in processed.values()):
            log_event(
                logger,
                logging.INFO,
                "envio.validation_failed",
                id_envio=id_envio,
                errors={kind: len(result.validation.errors) for kind, result in processed.items()},
            )
            return EnvioValidationOutcome(success=False, files=processed)

        summary = self._reconciliation.reconcile(
            id_envio=id_envio,
            furips1=processed.get(FileKind.FURIPS1),
            furips2=processed.get(FileKind.FURIPS2),
            furtran=processed.get(FileKind.FURTRAN),
            caller=caller,
        )
        return EnvioValidationOutcome(success=True, files=processed, summary=summary)

    def submit_envio(
        self,
        submissions: Sequence[RawSubmission],
        *,
        id_envio: str,
        caller: CallerIdentity,
    ) -> EnvioSubmissionOutcome:
        outcome = self.validate_envio(submissions, id_envio=id_envio, caller=caller)
        if not outcome.success or outcome.summary is None:
            return EnvioSubmissionOutcome(validation=outcome)

        registration = self._registration.register(outcome.summary, caller)
        return EnvioSubmissionOutcome(validation=outcome, registration=registration)

    def submit_furtran(
        self,
        submission: RawSubmission,
        *,
        id_envio: str,
        caller: CallerIdentity,
    ) -> EnvioSubmissionOutcome:
        self.ensure_can_upload(caller)
        id_envio = self._require_id_envio(id_envio)
        if submission.kind != FileKind.FURTRAN:
            raise InvalidEnvioRequestError("Se requiere el archivo FURTRAN")

        processed = self.process_file(submission)
        if not processed.is_valid:
            return EnvioSubmissionOutcome(
                validation=EnvioValidationOutcome(
                    success=False,
                    files={FileKind.FURTRAN: processed},
                )
            )

        summary = self._reconciliation.reconcile_furtran_only(
            id_envio=id_envio,
            furtran=processed,
            caller=caller,
        )
        registration = self._registration.register(summary, caller)
        return EnvioSubmissionOutcome(
            validation=EnvioValidationOutcome(
                success=True,
                files={FileKind.FURTRAN: processed},
                summary=summary,
            ),
            registration=registration,
        )

    def save_chunk(
        self,
        *,
        upload_id: str,
        chunk_index: int,
        data: bytes,
        caller: CallerIdentity,
    ) -> None:
        self.ensure_can_upload(caller)
        self._chunks.save_chunk(upload_id, chunk_index, data)

    def submit_chunked(
        self,
        submissions: Sequence[RawSubmission],
        *,
        upload_id: str,
        expected_chunks: int | None,
        id_envio: str,
        caller: CallerIdentity,
    ) -> EnvioSubmissionOutcome:
        """
        Assemble a chunked supporting-documents archive and submit it with
        the envío's FURIPS files.

        The FURIPS files are validated before the chunks are read. Chunks are
        discarded only when a retry could not reuse them: after registration
        or a duplicate rejection, and when the archive is unreadable. Any other
        failure leaves them in place for a retry.
        """

        outcome = self.validate_envio(submissions, id_envio=id_envio, caller=caller)
        if not outcome.success or outcome.summary is None:
            return EnvioSubmissionOutcome(validation=outcome)

        archive = self._chunks.assemble(upload_id, expected_chunks, keep=True)
        try:
            documents = extract_archive_documents(archive)
        except InvalidArchiveError:
            self._chunks.discard(upload_id)
            raise
        log_event(
            logger,
            logging.INFO,
            "envio.archive_assembled",
            upload_id=upload_id,
            archive_bytes=len(archive),
            documents=len(documents),
        )
        try:
            registration = self._registration.register(
                outcome.summary,
                caller,
                extra_files=documents,
            )
        except DuplicateEnvioError:
            self._chunks.discard(upload_id)
            raise
        self._chunks.discard(upload_id)
        return EnvioSubmissionOutcome(validation=outcome, registration=registration)


@lru_cache(maxsize=1)
def get_envio_ingestion_service() -> EnvioIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """

    storage_settings = get_object_storage_settings()
    registration = LoteRegistrationService(
        storage_backend=LocalObjectStorage(storage_settings.root_dir, storage_settings.bucket),
        notifier=build_upload_notifier(get_webhook_settings()),
    )
    return EnvioIngestionService(registration_service=registration)


def get_lote_registration_service() -> LoteRegistrationService:
    return get_envio_ingestion_service().registration
