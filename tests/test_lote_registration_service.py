"""
tests/test_lote_registration_service.py

LoteRegistrationService against in-memory SQLite and an in-memory object
store.

Coverage
--------
- Successful registration writes the lote, the detail rows and the files
- Same-day duplicate rejection, next-day acceptance, insert-race handling
- One storage folder per lote; supporting files never replace submitted ones
- FURTRAN-only envíos are stored under a prefixed name
- Partial detail insert keeps the lote
- Storage and webhook failures
- Estado transitions and role-filtered listing
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from app.config import EnvioIngestionSettings
from app.domain.furips import (
    CallerIdentity,
    CallerRole,
    EnvioSummary,
    FileKind,
    SubmittedFile,
)
from app.services.aggregation_service import AggregationService
from app.services.lote_registration_service import (
    DuplicateEnvioError,
    EnvioNotFoundError,
    InvalidEstadoError,
    LoteRegistrationService,
    RegistrationOutcome,
    StorageUnavailableError,
)
from db.models.furips_rows import Furips1Row
from db.models.lote import Lote, LoteEstado, TipoEnvio
from db.repositories.furips_row_repository import FuripsRowRepository
from db.repositories.lote_repository import LoteRepository
from db.repositories.types import LoteCreate, StoredObjectInput
from tests.builders import (
    PROVIDER_CODE,
    InMemoryObjectStorage,
    furips1_line,
    furips2_line,
    furtran_line,
    join_lines,
)

BOGOTA = ZoneInfo("America/Bogota")


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls: list[tuple[str, str]] = []
        self._fail = fail

    def notify_upload(self, *, bucket: str, file_path: str) -> None:
        self.calls.append((bucket, file_path))
        if self._fail:
            raise RuntimeError("webhook unreachable")


class FailingFurips2Repository(FuripsRowRepository):
    def bulk_insert(self, kind, **kwargs):
        if kind == FileKind.FURIPS2:
            raise OperationalError("INSERT INTO furips2", {}, Exception("disk full"))
        return super().bulk_insert(kind, **kwargs)


class RaceLosingRegistrationService(LoteRegistrationService):
    """Misses the winner on the pre-insert check, as a concurrent request would."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._checks = 0

    def _find_same_day(self, *args):
        self._checks += 1
        if self._checks == 1:
            return None
        return super()._find_same_day(*args)


def _furips_summary(id_envio: str = "ENVIO-001") -> EnvioSummary:
    furips1_content = join_lines([furips1_line(factura="A"), furips1_line(factura="B")])
    furips2_content = join_lines([furips2_line(amount="100"), furips2_line(amount="200")])
    aggregator = AggregationService()
    furips1 = aggregator.aggregate_furips1(furips1_content)
    furips2 = aggregator.aggregate_furips2(furips2_content)
    return EnvioSummary(
        id_envio=id_envio,
        habilitacion_code=furips1.habilitacion_code,
        nombre_ips="Clínica Prueba S.A.S",
        invoice_count=furips1.invoice_count,
        item_count=furips2.item_count,
        total_value=furips2.total_value,
        furips1=furips1,
        furips2=furips2,
        furtran=None,
        validation={},
        files={
            FileKind.FURIPS1: SubmittedFile(file_name="FURIPS1.txt", content=furips1_content),
            FileKind.FURIPS2: SubmittedFile(file_name="FURIPS2.txt", content=furips2_content),
        },
    )


def _furtran_summary(id_envio: str = "ENVIO-001") -> EnvioSummary:
    content = join_lines([furtran_line(amount="30")])
    furtran = AggregationService().aggregate_furtran(content)
    return EnvioSummary(
        id_envio=id_envio,
        habilitacion_code=furtran.habilitacion_code,
        nombre_ips="IPS",
        invoice_count=0,
        item_count=furtran.record_count,
        total_value=furtran.total_value,
        furips1=None,
        furips2=None,
        furtran=furtran,
        validation={},
        files={FileKind.FURTRAN: SubmittedFile(file_name="FURTRAN.txt", content=content)},
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 18, 9, 30, tzinfo=BOGOTA))


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def svc(session_factory, storage, notifier, clock) -> LoteRegistrationService:
    return LoteRegistrationService(
        storage_backend=storage,
        session_factory=session_factory,
        notifier=notifier,
        settings=EnvioIngestionSettings(detail_batch_size=1),
        clock=clock,
    )


class TestRegister:
    def test_registers_lote_rows_and_files(
        self, svc, session_factory, storage, notifier, provider
    ) -> None:
        result = svc.register(_furips_summary(), provider)

        assert result.outcome == RegistrationOutcome.REGISTERED
        assert result.data_insert_success is True
        assert result.nombre_archivo == "ENVIO-001"
        assert result.ruta_drive == f"Clinica_Prueba_S.A.S/2026-10-18_ENVIO-001_lote-{result.lote_id}"
        assert {kind: detail.inserted for kind, detail in result.details.items()} == {
            FileKind.FURIPS1: 2,
            FileKind.FURIPS2: 2,
        }
        assert set(storage.folders[result.ruta_drive]) == {"FURIPS1.txt", "FURIPS2.txt"}
        assert notifier.calls == [("furips-test", result.ruta_drive)]

        with session_factory() as session:
            lote = session.get(Lote, result.lote_id)
            assert lote.estado == LoteEstado.EN_PROCESO
            assert lote.tipo_envio == TipoEnvio.FURIPS
            assert lote.cantidad_facturas == 2
            assert lote.valor_total == Decimal("300")
            assert lote.cargado_por == "ips@example.com"
            rows = session.query(Furips1Row).filter_by(numero_lote=result.lote_id).all()
            assert sorted(row.numero_factura for row in rows) == ["A", "B"]
            assert all(row.usuario == "ips@example.com" for row in rows)

    def test_extra_files_are_stored_under_soportes(self, svc, storage, provider) -> None:
        extra = StoredObjectInput(file_name="soporte.pdf", content=b"%PDF", content_type="application/pdf")

        result = svc.register(_furips_summary(), provider, extra_files=[extra])

        assert storage.folders[result.ruta_drive]["soportes/soporte.pdf"] == b"%PDF"

    def test_extra_files_never_replace_submitted_files(self, svc, storage, provider) -> None:
        summary = _furips_summary()
        extras = [
            StoredObjectInput(file_name="FURIPS1.txt", content=b"not validated"),
            StoredObjectInput(file_name="a/x.pdf", content=b"first"),
            StoredObjectInput(file_name="b/x.pdf", content=b"second"),
            StoredObjectInput(file_name="a/X.pdf", content=b"third"),
        ]

        result = svc.register(summary, provider, extra_files=extras)

        stored = storage.folders[result.ruta_drive]
        assert stored == {
            "FURIPS1.txt": summary.files[FileKind.FURIPS1].content.encode("utf-8"),
            "FURIPS2.txt": summary.files[FileKind.FURIPS2].content.encode("utf-8"),
            "soportes/FURIPS1.txt": b"not validated",
            "soportes/a/x.pdf": b"first",
            "soportes/b/x.pdf": b"second",
            "soportes/a/X_2.pdf": b"third",
        }

    def test_submitted_files_with_the_same_name_are_both_kept(self, svc, storage, provider) -> None:
        summary = _furips_summary()
        files = {
            kind: replace(submitted, file_name="datos.txt")
            for kind, submitted in summary.files.items()
        }

        result = svc.register(replace(summary, files=files), provider)

        assert set(storage.folders[result.ruta_drive]) == {"datos.txt", "datos_2.txt"}

    def test_same_envio_for_two_providers_gets_separate_folders(self, svc, storage, admin) -> None:
        first_summary = _furips_summary()
        other_content = join_lines([furips1_line(code="9999999999", factura="Z")])
        second_summary = replace(
            first_summary,
            habilitacion_code="9999999999",
            files={
                **first_summary.files,
                FileKind.FURIPS1: SubmittedFile(file_name="FURIPS1.txt", content=other_content),
            },
        )

        first = svc.register(first_summary, admin)
        second = svc.register(second_summary, admin)

        assert first.ruta_drive != second.ruta_drive
        assert storage.folders[first.ruta_drive]["FURIPS1.txt"] == (
            first_summary.files[FileKind.FURIPS1].content.encode("utf-8")
        )
        assert storage.folders[second.ruta_drive]["FURIPS1.txt"] == other_content.encode("utf-8")

    def test_same_day_duplicate_is_rejected(self, svc, provider) -> None:
        first = svc.register(_furips_summary(), provider)

        with pytest.raises(DuplicateEnvioError) as exc_info:
            svc.register(_furips_summary(), provider)

        assert exc_info.value.existing_id == first.lote_id

    def test_same_name_is_accepted_on_another_day(self, svc, clock, provider) -> None:
        first = svc.register(_furips_summary(), provider)
        clock.now = datetime(2026, 10, 19, 8, 0, tzinfo=BOGOTA)

        second = svc.register(_furips_summary(), provider)

        assert second.lote_id != first.lote_id

    def test_day_boundary_uses_business_timezone(self, svc, clock, provider) -> None:
        # 23:30 in Bogotá is already the next day in UTC.
        clock.now = datetime(2026, 10, 18, 23, 30, tzinfo=BOGOTA)
        svc.register(_furips_summary(), provider)
        clock.now = datetime(2026, 10, 18, 6, 0, tzinfo=BOGOTA)

        with pytest.raises(DuplicateEnvioError):
            svc.register(_furips_summary(), provider)

    def test_furtran_only_envio_uses_prefixed_name(self, svc, session_factory, provider) -> None:
        furips = svc.register(_furips_summary(), provider)

        furtran = svc.register(_furtran_summary(), provider)

        assert furtran.nombre_archivo == "FURTRAN_ENVIO-001"
        assert furtran.lote_id != furips.lote_id
        assert furtran.ruta_drive != furips.ruta_drive
        with session_factory() as session:
            assert session.get(Lote, furtran.lote_id).tipo_envio == TipoEnvio.FURTRAN

    def test_unique_constraint_race_reports_duplicate(
        self, svc, session_factory, storage, provider
    ) -> None:
        # A concurrent winner already holds the (code, name, day) slot.
        with session_factory() as session:
            with session.begin():
                LoteRepository(session).create_lote(
                    LoteCreate(
                        codigo_habilitacion=PROVIDER_CODE,
                        nombre_ips="Clínica Prueba S.A.S",
                        nombre_archivo="ENVIO-001",
                        tipo_envio=TipoEnvio.FURIPS,
                        cantidad_facturas=0,
                        cantidad_items=0,
                        valor_total=Decimal("0"),
                        fecha_carga=datetime(2026, 10, 17, 9, 0, tzinfo=BOGOTA),
                        fecha_carga_dia=date(2026, 10, 18),
                    )
                )

        with pytest.raises(DuplicateEnvioError):
            svc.register(_furips_summary(), provider)

        assert storage.folders == {}
        assert storage.deleted == []

    def test_race_loser_leaves_winner_files_untouched(
        self, session_factory, storage, clock, provider
    ) -> None:
        winner_service = LoteRegistrationService(
            storage_backend=storage,
            session_factory=session_factory,
            clock=clock,
            settings=EnvioIngestionSettings(),
        )
        loser_service = RaceLosingRegistrationService(
            storage_backend=storage,
            session_factory=session_factory,
            clock=clock,
            settings=EnvioIngestionSettings(),
        )
        winner = winner_service.register(_furips_summary(), provider)
        snapshot = {path: dict(files) for path, files in storage.folders.items()}
        loser_summary = _furips_summary()
        loser_files = {
            kind: replace(submitted, content=submitted.content + "\n")
            for kind, submitted in loser_summary.files.items()
        }

        with pytest.raises(DuplicateEnvioError) as exc_info:
            loser_service.register(replace(loser_summary, files=loser_files), provider)

        assert exc_info.value.existing_id == winner.lote_id
        assert storage.folders == snapshot
        assert storage.deleted == []

    def test_partial_insert_keeps_lote(self, session_factory, storage, clock, provider) -> None:
        svc = LoteRegistrationService(
            storage_backend=storage,
            session_factory=session_factory,
            clock=clock,
            settings=EnvioIngestionSettings(),
            row_repository_factory=FailingFurips2Repository,
        )

        result = svc.register(_furips_summary(), provider)

        assert result.outcome == RegistrationOutcome.PARTIAL_INSERT
        assert result.data_insert_success is False
        assert result.details[FileKind.FURIPS1].success is True
        assert result.details[FileKind.FURIPS2].inserted == 0
        assert result.details[FileKind.FURIPS2].error
        with session_factory() as session:
            assert session.get(Lote, result.lote_id) is not None
            repo = FuripsRowRepository(session)
            assert repo.count_for_lote(FileKind.FURIPS1, result.lote_id) == 2
            assert repo.count_for_lote(FileKind.FURIPS2, result.lote_id) == 0

    def test_storage_failure_persists_nothing(self, session_factory, clock, provider) -> None:
        failing_storage = InMemoryObjectStorage(fail=True)
        svc = LoteRegistrationService(
            storage_backend=failing_storage,
            session_factory=session_factory,
            clock=clock,
            settings=EnvioIngestionSettings(),
        )

        with pytest.raises(StorageUnavailableError):
            svc.register(_furips_summary(), provider)

        with session_factory() as session:
            assert session.query(Lote).count() == 0
        assert len(failing_storage.deleted) == 1

    def test_webhook_failure_does_not_fail_registration(
        self, session_factory, storage, clock, provider
    ) -> None:
        notifier = RecordingNotifier(fail=True)
        svc = LoteRegistrationService(
            storage_backend=storage,
            session_factory=session_factory,
            notifier=notifier,
            clock=clock,
            settings=EnvioIngestionSettings(),
        )

        result = svc.register(_furips_summary(), provider)

        assert result.outcome == RegistrationOutcome.REGISTERED
        assert len(notifier.calls) == 1


class TestUpdateEstado:
    def test_finalize_and_reopen(self, svc, provider, admin) -> None:
        registered = svc.register(_furips_summary(), provider)

        finalized = svc.update_estado(registered.lote_id, estado=LoteEstado.FINALIZADO, actor=admin)

        assert finalized.estado == LoteEstado.FINALIZADO
        assert finalized.procesado_por == "Auditor Central"
        assert finalized.fecha_procesado is not None

        reopened = svc.update_estado(registered.lote_id, estado=LoteEstado.EN_PROCESO, actor=admin)

        assert reopened.procesado_por is None
        assert reopened.fecha_procesado is None

    def test_invalid_estado(self, svc, admin) -> None:
        with pytest.raises(InvalidEstadoError):
            svc.update_estado(1, estado="CERRADO", actor=admin)

    def test_missing_lote(self, svc, admin) -> None:
        with pytest.raises(EnvioNotFoundError):
            svc.update_estado(404, estado=LoteEstado.FINALIZADO, actor=admin)


class TestListLotes:
    def test_provider_sees_only_own_lotes(self, svc, provider, admin) -> None:
        svc.register(_furips_summary("ENV-A"), provider)
        other = CallerIdentity(
            role=CallerRole.USER,
            habilitacion_code="5555555555",
            display_name="Otra IPS",
        )
        summary = replace(_furips_summary("ENV-B"), habilitacion_code="5555555555")
        svc.register(summary, other)

        own = svc.list_lotes(provider)
        everything = svc.list_lotes(admin)

        assert [lote.codigo_habilitacion for lote in own] == [PROVIDER_CODE]
        assert len(everything) == 2

    def test_provider_without_code_sees_nothing(self, svc, provider) -> None:
        svc.register(_furips_summary(), provider)
        anonymous = CallerIdentity(role=CallerRole.USER, habilitacion_code=None, display_name="x")

        assert svc.list_lotes(anonymous) == []

    def test_estado_filter(self, svc, provider, admin) -> None:
        first = svc.register(_furips_summary("ENV-A"), provider)
        svc.register(_furips_summary("ENV-B"), provider)
        svc.update_estado(first.lote_id, estado=LoteEstado.FINALIZADO, actor=admin)

        finalized = svc.list_lotes(admin, estado=LoteEstado.FINALIZADO)

        assert [lote.id for lote in finalized] == [first.lote_id]
