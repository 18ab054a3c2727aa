"""
app/services/reconciliation_service.py

Cross-file reconciliation: joins the per-file results of one envío into a
single EnvioSummary.

Steps
-----
1. Require structurally valid FURIPS1 and FURIPS2 results.
2. Enforce provider match for the restricted provider role.
3. Resolve the provider display name from previously registered lotes.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.furips import (
    CallerIdentity,
    EnvioSummary,
    FileKind,
    Furips1Aggregation,
    Furips2Aggregation,
    FurtranAggregation,
    ProcessedFile,
    SubmittedFile,
)
from db.repositories.lote_repository import LoteRepository

logger = logging.getLogger(__name__)

UNKNOWN_PROVIDER_NAME = "IPS No encontrada"
# Placeholder used by FURTRAN-only envíos when no better name is known.
FURTRAN_ONLY_PROVIDER_NAME = "IPS"


class ReconciliationError(Exception):
    """Base exception for cross-file reconciliation failures."""


class MissingRequiredFileError(ReconciliationError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Se requiere el archivo {kind}")
        self.kind = kind


class InvalidFileError(ReconciliationError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"El archivo {kind} contiene errores de formato")
        self.kind = kind


class ForbiddenMismatchError(ReconciliationError):
    """
    A provider-role caller submitted files for another provider.

    Carries only the two codes, never file content.
    """

    def __init__(self, *, caller_code: str | None, file_code: str) -> None:
        super().__init__(
            f"El código de habilitación del archivo ({file_code}) no coincide "
            f"con el del usuario ({caller_code})"
        )
        self.caller_code = caller_code
        self.file_code = file_code


def ensure_provider_match(caller: CallerIdentity, file_code: str) -> None:
    if caller.is_provider and caller.habilitacion_code != file_code:
        raise ForbiddenMismatchError(caller_code=caller.habilitacion_code, file_code=file_code)


def _require_valid(result: ProcessedFile | None, kind: str) -> ProcessedFile:
    if result is None:
        raise MissingRequiredFileError(kind)
    if not result.is_valid or result.aggregation is None:
        raise InvalidFileError(kind)
    return result


class ReconciliationService:
    def __init__(self, *, session_factory: sessionmaker[Session] | None = None) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

    def reconcile(
        self,
        *,
        id_envio: str,
        furips1: ProcessedFile | None,
        furips2: ProcessedFile | None,
        furtran: ProcessedFile | None,
        caller: CallerIdentity,
    ) -> EnvioSummary:
        furips1 = _require_valid(furips1, FileKind.FURIPS1)
        furips2 = _require_valid(furips2, FileKind.FURIPS2)
        if furtran is not None and (not furtran.is_valid or furtran.aggregation is None):
            raise InvalidFileError(FileKind.FURTRAN)

        furips1_agg = cast(Furips1Aggregation, furips1.aggregation)
        furips2_agg = cast(Furips2Aggregation, furips2.aggregation)
        furtran_agg = cast(FurtranAggregation, furtran.aggregation) if furtran is not None else None

        code = furips1_agg.habilitacion_code
        ensure_provider_match(caller, code)

        nombre_ips = (
            (self.lookup_provider_name(code) if code else None)
            or caller.display_name.strip()
            or UNKNOWN_PROVIDER_NAME
        )

        files = {
            result.kind: SubmittedFile(file_name=result.file_name, content=result.content)
            for result in (furips1, furips2, furtran)
            if result is not None
        }
        validation = {
            result.kind: result.validation
            for result in (furips1, furips2, furtran)
            if result is not None
        }

        return EnvioSummary(
            id_envio=id_envio,
            habilitacion_code=code,
            nombre_ips=nombre_ips,
            invoice_count=furips1_agg.invoice_count,
            item_count=furips2_agg.item_count,
            total_value=furips2_agg.total_value,
            furips1=furips1_agg,
            furips2=furips2_agg,
            furtran=furtran_agg,
            validation=validation,
            files=files,
        )

    def reconcile_furtran_only(
        self,
        *,
        id_envio: str,
        furtran: ProcessedFile | None,
        caller: CallerIdentity,
    ) -> EnvioSummary:
        furtran = _require_valid(furtran, FileKind.FURTRAN)
        furtran_agg = cast(FurtranAggregation, furtran.aggregation)

        code = furtran_agg.habilitacion_code or (caller.habilitacion_code or "")
        if furtran_agg.habilitacion_code:
            ensure_provider_match(caller, code)

        nombre_ips = (
            (self.lookup_provider_name(code) if code else None)
            or caller.display_name.strip()
            or FURTRAN_ONLY_PROVIDER_NAME
        )

        return EnvioSummary(
            id_envio=id_envio,
            habilitacion_code=code,
            nombre_ips=nombre_ips,
            invoice_count=0,
            item_count=furtran_agg.record_count,
            total_value=furtran_agg.total_value or Decimal("0"),
            furips1=None,
            furips2=None,
            furtran=furtran_agg,
            validation={FileKind.FURTRAN: furtran.validation},
            files={
                FileKind.FURTRAN: SubmittedFile(
                    file_name=furtran.file_name,
                    content=furtran.content,
                )
            },
        )

    def lookup_provider_name(self, habilitacion_code: str) -> str | None:
        """
        Name of the first previously registered lote under this code, if any.

        A lookup failure degrades to the caller-name fallback instead of
        failing the envío.
        """

        try:
            with self._session_factory() as session:
                name = LoteRepository(session).find_nombre_ips_by_code_prefix(habilitacion_code)
        except SQLAlchemyError:
            logger.warning(
                "Provider name lookup failed habilitacion=%s",
                habilitacion_code,
                exc_info=True,
            )
            return None
        if name is None:
            return None
        return name.strip() or None
