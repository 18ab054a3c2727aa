"""
app/api/routers/envios.py

Envío submission, chunked upload and lote control HTTP endpoints.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from app.api.dependencies import get_caller_identity, read_submission, require_admin
from app.domain.furips import (
    CallerIdentity,
    CodeFrequencyEntry,
    EnvioSummary,
    FileKind,
    ProcessedFile,
    RawSubmission,
)
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
from app.services.chunked_upload_service import (
    ChunkSetNotFoundError,
    InvalidChunkError,
    InvalidUploadIdError,
)
from app.services.envio_ingestion_service import (
    EnvioIngestionService,
    EnvioSubmissionOutcome,
    EnvioValidationOutcome,
    FileTooLargeError,
    InvalidArchiveError,
    InvalidEnvioRequestError,
    UploadNotAllowedError,
    get_envio_ingestion_service,
    get_lote_registration_service,
)
from app.services.lote_registration_service import (
    DuplicateEnvioError,
    EnvioNotFoundError,
    InvalidEstadoError,
    LoteRegistrationService,
    RegistrationOutcome,
    RegistrationPersistenceError,
    StorageUnavailableError,
)
from app.services.reconciliation_service import (
    ForbiddenMismatchError,
    InvalidFileError,
    MissingRequiredFileError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/envios", tags=["envios"])

_BAD_REQUEST_ERRORS = (
    InvalidEnvioRequestError,
    MissingRequiredFileError,
    InvalidFileError,
    FileTooLargeError,
    InvalidArchiveError,
    InvalidUploadIdError,
    InvalidChunkError,
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _raise_http_error(exc: Exception) -> NoReturn:
    if isinstance(exc, (UploadNotAllowedError, ForbiddenMismatchError)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, DuplicateEnvioError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(exc), "existing_envio_id": exc.existing_id},
        ) from exc
    if isinstance(exc, _BAD_REQUEST_ERRORS):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, ChunkSetNotFoundError):
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(exc)) from exc
    if isinstance(exc, StorageUnavailableError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, RegistrationPersistenceError):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No fue posible registrar el envío.",
        ) from exc
    raise exc


_HANDLED_ERRORS = (
    UploadNotAllowedError,
    ForbiddenMismatchError,
    DuplicateEnvioError,
    ChunkSetNotFoundError,
    StorageUnavailableError,
    RegistrationPersistenceError,
    *_BAD_REQUEST_ERRORS,
)


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def _frequency(entries: list[CodeFrequencyEntry]) -> list[CodeFrequencyResponse]:
    return [
        CodeFrequencyResponse(
            code=entry.code,
            label=entry.label,
            count=entry.count,
            monetary_total=entry.monetary_total,
            percentage=entry.percentage,
        )
        for entry in entries
    ]


def _file_validation(processed: ProcessedFile) -> FileValidationResponse:
    result = processed.validation
    return FileValidationResponse(
        file_name=processed.file_name,
        is_valid=result.is_valid,
        errors=[
            LineValidationErrorResponse(
                line=error.line,
                expected_fields=error.expected_fields,
                actual_fields=error.actual_fields,
                preview=error.preview,
            )
            for error in result.errors
        ],
        total_lines=result.total_lines,
        valid_lines=result.valid_lines,
    )


def _summary(summary: EnvioSummary) -> EnvioSummaryResponse:
    return EnvioSummaryResponse(
        id_envio=summary.id_envio,
        codigo_habilitacion=summary.habilitacion_code,
        nombre_ips=summary.nombre_ips,
        cantidad_facturas=summary.invoice_count,
        cantidad_items=summary.item_count,
        valor_total=summary.total_value,
        estado_aseguramiento=_frequency(summary.furips1.insurance_status) if summary.furips1 else [],
        condicion_victima=_frequency(summary.furips1.victim_condition) if summary.furips1 else [],
        tipo_servicio=_frequency(summary.furips2.service_type) if summary.furips2 else [],
        furtran=(
            FurtranSummaryResponse(
                codigo_habilitacion=summary.furtran.habilitacion_code,
                cantidad_registros=summary.furtran.record_count,
                valor_total=summary.furtran.total_value,
            )
            if summary.furtran is not None
            else None
        ),
    )


def _validation_response(outcome: EnvioValidationOutcome) -> EnvioValidationResponse:
    return EnvioValidationResponse(
        success=outcome.success,
        message=(
            "Archivos validados correctamente"
            if outcome.success
            else "Los archivos contienen errores de formato"
        ),
        validation={kind: _file_validation(processed) for kind, processed in outcome.files.items()},
        summary=_summary(outcome.summary) if outcome.summary is not None else None,
    )


def _registration_response(
    outcome: EnvioSubmissionOutcome,
    response: Response,
) -> EnvioRegistrationResponse:
    base = _validation_response(outcome.validation)
    registration = outcome.registration
    if registration is None:
        return EnvioRegistrationResponse(**base.model_dump())

    partial = registration.outcome == RegistrationOutcome.PARTIAL_INSERT
    if partial:
        response.status_code = status.HTTP_207_MULTI_STATUS

    return EnvioRegistrationResponse(
        success=True,
        message=(
            "Envío registrado con errores en la inserción de datos"
            if partial
            else "Envío registrado correctamente"
        ),
        validation=base.validation,
        summary=base.summary,
        envio_id=registration.lote_id,
        nombre_archivo=registration.nombre_archivo,
        ruta_storage=registration.ruta_drive,
        outcome=registration.outcome,
        data_insert_success=registration.data_insert_success,
        insert_results=[
            DetailInsertResponse(kind=detail.kind, inserted=detail.inserted, error=detail.error)
            for detail in registration.details.values()
        ],
        coercion_warnings=len(registration.coercion_warnings),
    )


def _collect_submissions(
    *,
    id_envio: str,
    furips1: UploadFile | None,
    furips2: UploadFile | None,
    furtran: UploadFile | None,
) -> list[RawSubmission]:
    submissions: list[RawSubmission] = []
    for kind, upload in (
        (FileKind.FURIPS1, furips1),
        (FileKind.FURIPS2, furips2),
        (FileKind.FURTRAN, furtran),
    ):
        if upload is not None:
            submissions.append(read_submission(upload, kind=kind, id_envio=id_envio))
    return submissions


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/validate", response_model=EnvioValidationResponse)
def validate_envio(
    id_envio: str = Form(default="", alias="idEnvio"),
    furips1: UploadFile | None = File(default=None),
    furips2: UploadFile | None = File(default=None),
    furtran: UploadFile | None = File(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: EnvioIngestionService = Depends(get_envio_ingestion_service),
) -> EnvioValidationResponse:
    """
    Validate, aggregate and reconcile an envío without registering it.
    """

    submissions = _collect_submissions(
        id_envio=id_envio, furips1=furips1, furips2=furips2, furtran=furtran
    )
    try:
        outcome = service.validate_envio(submissions, id_envio=id_envio, caller=caller)
    except _HANDLED_ERRORS as exc:
        _raise_http_error(exc)
    return _validation_response(outcome)


@router.post("", response_model=EnvioRegistrationResponse)
def submit_envio(
    response: Response,
    id_envio: str = Form(default="", alias="idEnvio"),
    furips1: UploadFile | None = File(default=None),
    furips2: UploadFile | None = File(default=None),
    furtran: UploadFile | None = File(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: EnvioIngestionService = Depends(get_envio_ingestion_service),
) -> EnvioRegistrationResponse:
    """
    Validate and register a FURIPS envío (FURIPS1 + FURIPS2, optional FURTRAN).
    """

    submissions = _collect_submissions(
        id_envio=id_envio, furips1=furips1, furips2=furips2, furtran=furtran
    )
    try:
        outcome = service.submit_envio(submissions, id_envio=id_envio, caller=caller)
    except _HANDLED_ERRORS as exc:
        _raise_http_error(exc)
    return _registration_response(outcome, response)


@router.post("/furtran", response_model=EnvioRegistrationResponse)
def submit_furtran(
    response: Response,
    id_envio: str = Form(default="", alias="idEnvio"),
    furtran: UploadFile | None = File(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: EnvioIngestionService = Depends(get_envio_ingestion_service),
) -> EnvioRegistrationResponse:
    if furtran is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Se requiere el archivo FURTRAN",
        )
    submission = read_submission(furtran, kind=FileKind.FURTRAN, id_envio=id_envio)
    try:
        outcome = service.submit_furtran(submission, id_envio=id_envio, caller=caller)
    except _HANDLED_ERRORS as exc:
        _raise_http_error(exc)
    return _registration_response(outcome, response)


@router.post("/chunks", response_model=ChunkAcceptedResponse)
def upload_chunk(
    upload_id: str = Form(..., alias="uploadId"),
    chunk_index: int = Form(..., alias="chunkIndex", ge=0),
    chunk: UploadFile = File(...),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: EnvioIngestionService = Depends(get_envio_ingestion_service),
) -> ChunkAcceptedResponse:
    try:
        data = chunk.file.read()
    finally:
        chunk.file.close()

    try:
        service.save_chunk(upload_id=upload_id, chunk_index=chunk_index, data=data, caller=caller)
    except _HANDLED_ERRORS as exc:
        _raise_http_error(exc)
    return ChunkAcceptedResponse(upload_id=upload_id, chunk_index=chunk_index, received_bytes=len(data))


@router.post("/chunks/complete", response_model=EnvioRegistrationResponse)
def complete_chunked_upload(
    response: Response,
    upload_id: str = Form(..., alias="uploadId"),
    total_chunks: int | None = Form(default=None, alias="totalChunks", ge=1),
    id_envio: str = Form(default="", alias="idEnvio"),
    furips1: UploadFile | None = File(default=None),
    furips2: UploadFile | None = File(default=None),
    furtran: UploadFile | None = File(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: EnvioIngestionService = Depends(get_envio_ingestion_service),
) -> EnvioRegistrationResponse:
    """
    Assemble the chunked supporting-documents archive and register the envío.
    """

    submissions = _collect_submissions(
        id_envio=id_envio, furips1=furips1, furips2=furips2, furtran=furtran
    )
    try:
        outcome = service.submit_chunked(
            submissions,
            upload_id=upload_id,
            expected_chunks=total_chunks,
            id_envio=id_envio,
            caller=caller,
        )
    except _HANDLED_ERRORS as exc:
        _raise_http_error(exc)
    return _registration_response(outcome, response)


@router.get("", response_model=LoteListResponse)
def list_envios(
    estado: str | None = Query(default=None, description="Optional EN_PROCESO / FINALIZADO filter"),
    limit: int = Query(default=100, ge=1, le=500),
    caller: CallerIdentity = Depends(get_caller_identity),
    registration: LoteRegistrationService = Depends(get_lote_registration_service),
) -> LoteListResponse:
    lotes = registration.list_lotes(caller, estado=estado, limit=limit)
    items = [LoteResponse.model_validate(lote) for lote in lotes]
    return LoteListResponse(items=items, count=len(items))


@router.patch("/{envio_id}/estado", response_model=LoteResponse)
def update_envio_estado(
    envio_id: int,
    payload: EstadoUpdateRequest,
    caller: CallerIdentity = Depends(get_caller_identity),
    registration: LoteRegistrationService = Depends(get_lote_registration_service),
) -> LoteResponse:
    require_admin(caller)
    try:
        lote = registration.update_estado(envio_id, estado=payload.estado.strip().upper(), actor=caller)
    except InvalidEstadoError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except EnvioNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return LoteResponse.model_validate(lote)
