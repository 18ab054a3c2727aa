"""
app/services/lote_registration_service.py

Batch/Lote registrar: turns a reconciled EnvioSummary into one durable lote.

Pipeline
--------
1. Same-day duplicate check for (provider code, envío name).
2. Insert and flush the lote control row (EN_PROCESO).
3. Upload the submitted files into a folder keyed by the new lote id.
4. Insert decoded detail rows, one savepoint per file kind.
5. Commit, then notify the upload webhook (best effort).

Supporting documents go under ``soportes/`` and every object name in the
folder is unique, so no extra file can replace a submitted one.

The database unique constraint on (codigo_habilitacion, nombre_archivo,
fecha_carga_dia) backs step 1: when two submissions race past the check, the
loser's INSERT fails before anything is uploaded and is reported as the same
duplicate error.

A failed detail insert does not roll back the lote; the outcome is reported
as PARTIAL_INSERT with per-kind counts and errors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from pathlib import PurePosixPath

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import EnvioIngestionSettings, get_envio_ingestion_settings
from app.connectors.webhook_notifier import NoOpUploadNotifier, UploadNotifier
from app.domain.furips import ALL_FILE_KINDS, CallerIdentity, EnvioSummary
from app.logging_utils import log_event
from app.mappers.furips_record_mapper import CoercionWarning, FuripsRecordMapper
from db.models.lote import ALLOWED_LOTE_ESTADOS, Lote, LoteEstado, TipoEnvio
from db.repositories.errors import LoteNotFoundError, ObjectStorageError
from db.repositories.furips_row_repository import FuripsRowRepository
from db.repositories.lote_repository import LoteRepository
from db.repositories.storage import (
    ObjectStorageBackend,
    build_envio_folder_path,
    normalize_object_name,
)
from db.repositories.types import LoteCreate, StoredFolderMetadata, StoredObjectInput

logger = logging.getLogger(__name__)

FURTRAN_NAME_PREFIX = "FURTRAN_"
SUPPORT_FOLDER = "soportes"


class RegistrationOutcome:
    REGISTERED = "REGISTERED"
    PARTIAL_INSERT = "PARTIAL_INSERT"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LoteRegistrationError(Exception):
    """Base exception for lote registration failures."""


class DuplicateEnvioError(LoteRegistrationError):
    def __init__(self, *, id_envio: str, existing_id: int | None) -> None:
        super().__init__(f'El envío "{id_envio}" ya existe para el día de hoy.')
        self.id_envio = id_envio
        self.existing_id = existing_id


class StorageUnavailableError(LoteRegistrationError):
    """Object storage could not accept the files; nothing was persisted."""


class RegistrationPersistenceError(LoteRegistrationError):
    """The lote control row could not be written."""


class EnvioNotFoundError(LoteRegistrationError):
    def __init__(self, lote_id: int) -> None:
        super().__init__(f"Envío no encontrado: {lote_id}")
        self.lote_id = lote_id


class InvalidEstadoError(LoteRegistrationError):
    def __init__(self, estado: str) -> None:
        super().__init__(
            f"Estado inválido: {estado}. Valores permitidos: {sorted(ALLOWED_LOTE_ESTADOS)}"
        )
        self.estado = estado


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetailInsertResult:
    kind: str
    inserted: int
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RegistrationResult:
    outcome: str
    lote_id: int
    nombre_archivo: str
    ruta_drive: str
    fecha_carga: datetime
    details: dict[str, DetailInsertResult] = field(default_factory=dict)
    coercion_warnings: list[CoercionWarning] = field(default_factory=list)

    @property
    def data_insert_success(self) -> bool:
        return self.outcome == RegistrationOutcome.REGISTERED


# ---------------------------------------------------------------------------
# Stored objects
# ---------------------------------------------------------------------------


def _unique_object_name(name: str, taken: set[str]) -> str:
    path = PurePosixPath(name)
    candidate = name
    counter = 2
    # Compared case-insensitively.
    while candidate.lower() in taken:
        candidate = str(path.with_name(f"{path.stem}_{counter}{path.suffix}"))
        counter += 1
    taken.add(candidate.lower())
    return candidate


def _envio_objects(
    summary: EnvioSummary,
    extra_files: Sequence[StoredObjectInput],
) -> list[StoredObjectInput]:
    """
    Submitted files at the folder root, supporting documents under
    ``soportes/`` keeping their relative path. Colliding names get a
    ``_2``, ``_3`` suffix.
    """

    taken: set[str] = set()
    objects: list[StoredObjectInput] = []
    for kind, submitted in summary.files.items():
        name = PurePosixPath(normalize_object_name(submitted.file_name)).name or f"{kind}.txt"
        objects.append(
            StoredObjectInput(
                file_name=_unique_object_name(name, taken),
                content=submitted.content.encode("utf-8"),
            )
        )
    for extra in extra_files:
        relative = normalize_object_name(extra.file_name) or "documento"
        objects.append(
            StoredObjectInput(
                file_name=_unique_object_name(f"{SUPPORT_FOLDER}/{relative}", taken),
                content=extra.content,
                content_type=extra.content_type,
            )
        )
    return objects


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class LoteRegistrationService:
    def __init__(
        self,
        *,
        storage_backend: ObjectStorageBackend,
        session_factory: sessionmaker[Session] | None = None,
        notifier: UploadNotifier | None = None,
        mapper: FuripsRecordMapper | None = None,
        settings: EnvioIngestionSettings | None = None,
        clock: Callable[[], datetime] | None = None,
        row_repository_factory: Callable[[Session], FuripsRowRepository] = FuripsRowRepository,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._storage = storage_backend
        self._notifier = notifier or NoOpUploadNotifier()
        self._mapper = mapper or FuripsRecordMapper()
        self._settings = settings or get_envio_ingestion_settings()
        self._clock = clock or (lambda: datetime.now(self._settings.tzinfo))
        self._row_repository_factory = row_repository_factory

    # -- time ---------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=self._settings.tzinfo)
        return now.astimezone(self._settings.tzinfo)

    def _day_bounds(self, now: datetime) -> tuple[datetime, datetime]:
        day_start = datetime.combine(now.date(), time.min, tzinfo=self._settings.tzinfo)
        return day_start, day_start + timedelta(days=1)

    # -- registration -------------------------------------------------------

    def register(
        self,
        summary: EnvioSummary,
        caller: CallerIdentity,
        *,
        extra_files: Sequence[StoredObjectInput] = (),
    ) -> RegistrationResult:
        """
        Register one reconciled envío.

        Raises DuplicateEnvioError when the same provider already loaded this
        envío name today, and StorageUnavailableError when object storage is
        unreachable. Neither leaves anything behind.
        """

        furtran_only = summary.is_furtran_only
        nombre_archivo = (
            f"{FURTRAN_NAME_PREFIX}{summary.id_envio}" if furtran_only else summary.id_envio
        )
        now = self._now()
        day_start, day_end = self._day_bounds(now)

        existing_id = self._find_same_day(
            summary.habilitacion_code, nombre_archivo, day_start, day_end
        )
        if existing_id is not None:
            log_event(
                logger,
                logging.INFO,
                "envio.duplicate_rejected",
                habilitacion=summary.habilitacion_code,
                nombre_archivo=nombre_archivo,
                existing_id=existing_id,
            )
            raise DuplicateEnvioError(id_envio=summary.id_envio, existing_id=existing_id)

        mapped = {
            kind: self._mapper.map_content(kind, submitted.content)
            for kind, submitted in summary.files.items()
        }

        objects = _envio_objects(summary, extra_files)
        usuario = caller.email or caller.display_name or None
        record = LoteCreate(
            codigo_habilitacion=summary.habilitacion_code,
            nombre_ips=summary.nombre_ips,
            nombre_archivo=nombre_archivo,
            tipo_envio=TipoEnvio.FURTRAN if furtran_only else TipoEnvio.FURIPS,
            cantidad_facturas=summary.invoice_count,
            cantidad_items=summary.item_count,
            valor_total=summary.total_value,
            fecha_carga=now,
            fecha_carga_dia=now.date(),
            cargado_por=usuario,
        )

        # The lote row is flushed before any upload: a lost insert race never
        # touches storage, and the folder is keyed by the new lote id.
        details: dict[str, DetailInsertResult] = {}
        stored: StoredFolderMetadata | None = None
        try:
            with self._session_factory() as session:
                with session.begin():
                    lote = LoteRepository(session).create_lote(record)
                    lote_id = lote.id
                    stored = self._store_files(
                        build_envio_folder_path(
                            summary.nombre_ips, nombre_archivo, now.date(), lote_id=lote_id
                        ),
                        objects,
                    )
                    lote.ruta_drive = stored.folder_path
                    session.flush()
                    row_repo = self._row_repository_factory(session)
                    for kind in ALL_FILE_KINDS:
                        if kind not in mapped:
                            continue
                        details[kind] = self._insert_detail_rows(
                            session,
                            row_repo,
                            kind=kind,
                            lote_id=lote_id,
                            usuario=usuario,
                            rows=mapped[kind].rows,
                        )
        except IntegrityError as exc:
            if stored is not None:
                self._delete_folder_quietly(stored.folder_path)
            winner_id = self._find_same_day(
                summary.habilitacion_code, nombre_archivo, day_start, day_end
            )
            logger.info(
                "Concurrent duplicate envío lost the insert race habilitacion=%s nombre_archivo=%s",
                summary.habilitacion_code,
                nombre_archivo,
            )
            raise DuplicateEnvioError(id_envio=summary.id_envio, existing_id=winner_id) from exc
        except SQLAlchemyError as exc:
            if stored is not None:
                self._delete_folder_quietly(stored.folder_path)
            raise RegistrationPersistenceError("Failed to persist lote.") from exc

        outcome = (
            RegistrationOutcome.REGISTERED
            if all(result.success for result in details.values())
            else RegistrationOutcome.PARTIAL_INSERT
        )
        warnings = [warning for result in mapped.values() for warning in result.warnings]

        log_event(
            logger,
            logging.INFO if outcome == RegistrationOutcome.REGISTERED else logging.WARNING,
            "envio.registered",
            lote_id=lote_id,
            outcome=outcome,
            habilitacion=summary.habilitacion_code,
            nombre_archivo=nombre_archivo,
            ruta=stored.folder_path,
            inserted={kind: result.inserted for kind, result in details.items()},
            coercion_warnings=len(warnings),
        )

        self._notify(folder_path=stored.folder_path)

        return RegistrationResult(
            outcome=outcome,
            lote_id=lote_id,
            nombre_archivo=nombre_archivo,
            ruta_drive=stored.folder_path,
            fecha_carga=now,
            details=details,
            coercion_warnings=warnings,
        )

    def _store_files(
        self, folder_path: str, objects: Sequence[StoredObjectInput]
    ) -> StoredFolderMetadata:
        try:
            return self._storage.save_folder(folder_path=folder_path, files=objects)
        except ObjectStorageError as exc:
            logger.error("Object storage upload failed folder=%s error=%s", folder_path, exc)
            self._delete_folder_quietly(folder_path)
            raise StorageUnavailableError("El almacenamiento de archivos no está disponible.") from exc

    def _insert_detail_rows(
        self,
        session: Session,
        row_repo: FuripsRowRepository,
        *,
        kind: str,
        lote_id: int,
        usuario: str | None,
        rows: list[dict],
    ) -> DetailInsertResult:
        try:
            with session.begin_nested():
                inserted = row_repo.bulk_insert(
                    kind,
                    numero_lote=lote_id,
                    usuario=usuario,
                    rows=rows,
                    batch_size=self._settings.detail_batch_size,
                )
        except SQLAlchemyError as exc:
            logger.error(
                "Detail insert failed kind=%s lote_id=%s error=%s",
                kind,
                lote_id,
                exc,
            )
            return DetailInsertResult(kind=kind, inserted=0, error=str(exc.__cause__ or exc))
        return DetailInsertResult(kind=kind, inserted=inserted)

    def _find_same_day(
        self,
        codigo_habilitacion: str,
        nombre_archivo: str,
        day_start: datetime,
        day_end: datetime,
    ) -> int | None:
        with self._session_factory() as session:
            existing = LoteRepository(session).find_same_day(
                codigo_habilitacion=codigo_habilitacion,
                nombre_archivo=nombre_archivo,
                day_start=day_start,
                day_end=day_end,
            )
            return existing.id if existing is not None else None

    def _delete_folder_quietly(self, folder_path: str) -> None:
        try:
            self._storage.delete_folder(folder_path=folder_path)
        except ObjectStorageError:
            logger.warning("Could not remove stored folder=%s after failed insert", folder_path)

    def _notify(self, *, folder_path: str) -> None:
        # Webhook is best-effort; the lote is already durable.
        try:
            self._notifier.notify_upload(bucket=self._storage.bucket, file_path=folder_path)
        except Exception as exc:
            logger.warning("Upload webhook failed folder=%s error=%s", folder_path, exc)

    # -- operator actions ---------------------------------------------------

    def update_estado(self, lote_id: int, *, estado: str, actor: CallerIdentity) -> Lote:
        """
        Move a lote between EN_PROCESO and FINALIZADO.

        FINALIZADO stamps who processed it and when; going back to
        EN_PROCESO clears both.
        """

        if estado not in ALLOWED_LOTE_ESTADOS:
            raise InvalidEstadoError(estado)

        if estado == LoteEstado.FINALIZADO:
            fecha_procesado: datetime | None = self._now()
            procesado_por: str | None = actor.display_name or actor.email
        else:
            fecha_procesado = None
            procesado_por = None

        with self._session_factory() as session:
            with session.begin():
                try:
                    lote = LoteRepository(session).update_estado(
                        lote_id,
                        estado=estado,
                        procesado_por=procesado_por,
                        fecha_procesado=fecha_procesado,
                    )
                except LoteNotFoundError as exc:
                    raise EnvioNotFoundError(lote_id) from exc

        log_event(
            logger,
            logging.INFO,
            "envio.estado_updated",
            lote_id=lote_id,
            estado=estado,
            actor=procesado_por,
        )
        return lote

    def list_lotes(
        self,
        caller: CallerIdentity,
        *,
        estado: str | None = None,
        limit: int = 100,
    ) -> list[Lote]:
        """
        Newest first. Provider-role callers only ever see their own lotes.
        """

        if caller.is_provider and not caller.habilitacion_code:
            return []
        codigo = caller.habilitacion_code if caller.is_provider else None
        with self._session_factory() as session:
            return LoteRepository(session).list_lotes(
                codigo_habilitacion=codigo,
                estado=estado,
                limit=limit,
            )
