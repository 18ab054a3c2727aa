"""
tests/test_envio_ingestion_service.py

End-to-end EnvioIngestionService flows over in-memory SQLite, an in-memory
object store and a temporary chunk directory.
"""

from __future__ import annotations

import io
import zipfile
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from app.config import ChunkUploadSettings, EnvioIngestionSettings
from app.domain.furips import CallerIdentity, CallerRole, FileKind, RawSubmission
from app.services.chunked_upload_service import ChunkedUploadService, ChunkSetNotFoundError
from app.services.envio_ingestion_service import (
    EnvioIngestionService,
    FileTooLargeError,
    InvalidArchiveError,
    InvalidEnvioRequestError,
    UploadNotAllowedError,
    extract_archive_documents,
)
from app.services.lote_registration_service import (
    DuplicateEnvioError,
    LoteRegistrationService,
    RegistrationOutcome,
    StorageUnavailableError,
)
from app.services.reconciliation_service import ForbiddenMismatchError, ReconciliationService
from tests.builders import (
    InMemoryObjectStorage,
    furips1_line,
    furips2_line,
    furtran_line,
    join_lines,
)

CLOCK_NOW = datetime(2026, 10, 18, 11, 0, tzinfo=ZoneInfo("America/Bogota"))


def _submission(kind: str, content: str, id_envio: str = "ENV-1") -> RawSubmission:
    return RawSubmission(
        kind=kind,
        file_name=f"{kind}.txt",
        content=content.encode("utf-8"),
        id_envio=id_envio,
    )


def _valid_submissions() -> list[RawSubmission]:
    return [
        _submission(FileKind.FURIPS1, join_lines([furips1_line(), furips1_line(factura="FAC-2")])),
        _submission(FileKind.FURIPS2, join_lines([furips2_line(amount="10"), furips2_line(amount="15")])),
    ]


def _zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, payload in entries.items():
            bundle.writestr(name, payload)
    return buffer.getvalue()


@pytest.fixture()
def settings() -> EnvioIngestionSettings:
    return EnvioIngestionSettings(parallel_workers=3)


@pytest.fixture()
def chunk_service(tmp_path) -> ChunkedUploadService:
    return ChunkedUploadService(ChunkUploadSettings(temp_dir=str(tmp_path / "chunks")))


@pytest.fixture()
def svc(session_factory, storage, settings, chunk_service) -> EnvioIngestionService:
    registration = LoteRegistrationService(
        storage_backend=storage,
        session_factory=session_factory,
        settings=settings,
        clock=lambda: CLOCK_NOW,
    )
    return EnvioIngestionService(
        registration_service=registration,
        reconciliation_service=ReconciliationService(session_factory=session_factory),
        chunk_service=chunk_service,
        settings=settings,
    )


class TestValidateEnvio:
    def test_valid_envio_produces_summary(self, svc, provider) -> None:
        outcome = svc.validate_envio(_valid_submissions(), id_envio="ENV-1", caller=provider)

        assert outcome.success is True
        assert outcome.summary is not None
        assert outcome.summary.invoice_count == 2
        assert outcome.summary.total_value == Decimal("25")
        assert set(outcome.validation) == {FileKind.FURIPS1, FileKind.FURIPS2}

    def test_structural_errors_are_returned_not_raised(self, svc, provider) -> None:
        submissions = [
            _submission(FileKind.FURIPS1, join_lines([furips1_line()])),
            _submission(FileKind.FURIPS2, "a,b,c\n" + furips2_line() + "\n1,2\n"),
        ]

        outcome = svc.validate_envio(submissions, id_envio="ENV-1", caller=provider)

        assert outcome.success is False
        assert outcome.summary is None
        assert outcome.validation[FileKind.FURIPS1].is_valid is True
        assert [e.line for e in outcome.validation[FileKind.FURIPS2].errors] == [1, 3]

    def test_analyst_cannot_upload(self, svc) -> None:
        analyst = CallerIdentity(role=CallerRole.ANALYST, habilitacion_code=None, display_name="A")

        with pytest.raises(UploadNotAllowedError):
            svc.validate_envio(_valid_submissions(), id_envio="ENV-1", caller=analyst)

    def test_blank_id_envio(self, svc, admin) -> None:
        with pytest.raises(InvalidEnvioRequestError):
            svc.validate_envio(_valid_submissions(), id_envio="   ", caller=admin)

    def test_furips2_is_required(self, svc, admin) -> None:
        with pytest.raises(InvalidEnvioRequestError):
            svc.validate_envio(_valid_submissions()[:1], id_envio="ENV-1", caller=admin)

    def test_duplicate_kind_is_rejected(self, svc, admin) -> None:
        submissions = _valid_submissions() + _valid_submissions()[:1]

        with pytest.raises(InvalidEnvioRequestError):
            svc.validate_envio(submissions, id_envio="ENV-1", caller=admin)

    def test_provider_mismatch_propagates(self, svc) -> None:
        caller = CallerIdentity(role=CallerRole.USER, habilitacion_code="0000000000", display_name="X")

        with pytest.raises(ForbiddenMismatchError):
            svc.validate_envio(_valid_submissions(), id_envio="ENV-1", caller=caller)

    def test_latin1_content_is_decoded(self, svc, admin) -> None:
        submissions = _valid_submissions()
        latin = join_lines([furips2_line(extra={4: "Atención"})]).encode("latin-1")
        submissions[1] = RawSubmission(FileKind.FURIPS2, "FURIPS2.txt", latin, "ENV-1")

        outcome = svc.validate_envio(submissions, id_envio="ENV-1", caller=admin)

        assert outcome.success is True
        assert "Atención" in outcome.files[FileKind.FURIPS2].content

    def test_extreme_amount_does_not_fail_the_parallel_stage(self, svc, admin) -> None:
        submissions = _valid_submissions()
        submissions[1] = _submission(
            FileKind.FURIPS2,
            join_lines([furips2_line(amount="1e999999999"), furips2_line(amount="7")]),
        )

        outcome = svc.validate_envio(submissions, id_envio="ENV-1", caller=admin)

        assert outcome.success is True
        assert outcome.summary.total_value == Decimal("7")

    def test_max_lines_cap(self, session_factory, storage, chunk_service, admin) -> None:
        settings = EnvioIngestionSettings(max_lines_per_file=1)
        svc = EnvioIngestionService(
            registration_service=LoteRegistrationService(
                storage_backend=storage, session_factory=session_factory, settings=settings
            ),
            reconciliation_service=ReconciliationService(session_factory=session_factory),
            chunk_service=chunk_service,
            settings=settings,
        )

        with pytest.raises(FileTooLargeError):
            svc.validate_envio(_valid_submissions(), id_envio="ENV-1", caller=admin)


class TestSubmit:
    def test_submit_registers_lote(self, svc, storage, provider) -> None:
        outcome = svc.submit_envio(_valid_submissions(), id_envio="ENV-1", caller=provider)

        assert outcome.registration is not None
        assert outcome.registration.outcome == RegistrationOutcome.REGISTERED
        assert outcome.registration.details[FileKind.FURIPS1].inserted == 2
        assert outcome.registration.ruta_drive in storage.folders

    def test_invalid_envio_is_not_registered(self, svc, storage, provider) -> None:
        submissions = [
            _submission(FileKind.FURIPS1, "x,y\n"),
            _valid_submissions()[1],
        ]

        outcome = svc.submit_envio(submissions, id_envio="ENV-1", caller=provider)

        assert outcome.registration is None
        assert storage.folders == {}

    def test_envio_with_optional_furtran(self, svc, provider) -> None:
        submissions = _valid_submissions() + [
            _submission(FileKind.FURTRAN, join_lines([furtran_line()])),
        ]

        outcome = svc.submit_envio(submissions, id_envio="ENV-1", caller=provider)

        assert outcome.registration.details[FileKind.FURTRAN].inserted == 1
        assert outcome.validation.summary.furtran is not None

    def test_submit_furtran_only(self, svc, provider) -> None:
        submission = _submission(FileKind.FURTRAN, join_lines([furtran_line(), furtran_line()]))

        outcome = svc.submit_furtran(submission, id_envio="ENV-1", caller=provider)

        assert outcome.registration.nombre_archivo == "FURTRAN_ENV-1"
        assert outcome.validation.summary.item_count == 2

    def test_submit_furtran_rejects_other_kinds(self, svc, provider) -> None:
        with pytest.raises(InvalidEnvioRequestError):
            svc.submit_furtran(_valid_submissions()[0], id_envio="ENV-1", caller=provider)


class TestChunkedSubmission:
    def test_archive_documents_are_stored_with_envio(
        self, svc, storage, chunk_service, provider
    ) -> None:
        archive = _zip({"facturas/factura.pdf": b"%PDF-1.4", "__MACOSX/._factura.pdf": b"junk"})
        half = len(archive) // 2
        svc.save_chunk(upload_id="u1", chunk_index=1, data=archive[half:], caller=provider)
        svc.save_chunk(upload_id="u1", chunk_index=0, data=archive[:half], caller=provider)

        outcome = svc.submit_chunked(
            _valid_submissions(),
            upload_id="u1",
            expected_chunks=2,
            id_envio="ENV-1",
            caller=provider,
        )

        stored = storage.folders[outcome.registration.ruta_drive]
        assert set(stored) == {"FURIPS1.txt", "FURIPS2.txt", "soportes/facturas/factura.pdf"}
        assert stored["soportes/facturas/factura.pdf"] == b"%PDF-1.4"
        with pytest.raises(ChunkSetNotFoundError):
            chunk_service.assemble("u1")

    def test_same_named_archive_entries_are_all_kept(self, svc, storage, provider) -> None:
        archive = _zip({"a/FURIPS1.txt": b"uno", "b/FURIPS1.txt": b"dos"})
        svc.save_chunk(upload_id="u5", chunk_index=0, data=archive, caller=provider)
        submissions = _valid_submissions()

        outcome = svc.submit_chunked(
            submissions, upload_id="u5", expected_chunks=1, id_envio="ENV-1", caller=provider
        )

        stored = storage.folders[outcome.registration.ruta_drive]
        assert stored["FURIPS1.txt"] == submissions[0].content
        assert stored["soportes/a/FURIPS1.txt"] == b"uno"
        assert stored["soportes/b/FURIPS1.txt"] == b"dos"

    def test_storage_outage_keeps_chunks_for_retry(
        self, session_factory, settings, chunk_service, provider
    ) -> None:
        svc = EnvioIngestionService(
            registration_service=LoteRegistrationService(
                storage_backend=InMemoryObjectStorage(fail=True),
                session_factory=session_factory,
                settings=settings,
                clock=lambda: CLOCK_NOW,
            ),
            reconciliation_service=ReconciliationService(session_factory=session_factory),
            chunk_service=chunk_service,
            settings=settings,
        )
        archive = _zip({"acta.pdf": b"%PDF"})
        svc.save_chunk(upload_id="u6", chunk_index=0, data=archive, caller=provider)

        with pytest.raises(StorageUnavailableError):
            svc.submit_chunked(
                _valid_submissions(),
                upload_id="u6",
                expected_chunks=1,
                id_envio="ENV-1",
                caller=provider,
            )

        assert chunk_service.assemble("u6", expected_count=1) == archive

    def test_duplicate_envio_discards_chunks(self, svc, chunk_service, provider) -> None:
        svc.submit_envio(_valid_submissions(), id_envio="ENV-1", caller=provider)
        svc.save_chunk(upload_id="u7", chunk_index=0, data=_zip({"a.pdf": b"1"}), caller=provider)

        with pytest.raises(DuplicateEnvioError):
            svc.submit_chunked(
                _valid_submissions(),
                upload_id="u7",
                expected_chunks=1,
                id_envio="ENV-1",
                caller=provider,
            )

        with pytest.raises(ChunkSetNotFoundError):
            chunk_service.assemble("u7")

    def test_invalid_envio_keeps_chunks(self, svc, chunk_service, provider) -> None:
        svc.save_chunk(upload_id="u2", chunk_index=0, data=_zip({"a.pdf": b"1"}), caller=provider)
        submissions = [_submission(FileKind.FURIPS1, "bad\n"), _valid_submissions()[1]]

        outcome = svc.submit_chunked(
            submissions, upload_id="u2", expected_chunks=1, id_envio="ENV-1", caller=provider
        )

        assert outcome.registration is None
        assert chunk_service.assemble("u2", expected_count=1)

    def test_missing_chunks(self, svc, provider) -> None:
        with pytest.raises(ChunkSetNotFoundError):
            svc.submit_chunked(
                _valid_submissions(),
                upload_id="gone",
                expected_chunks=1,
                id_envio="ENV-1",
                caller=provider,
            )

    def test_analyst_cannot_send_chunks(self, svc) -> None:
        analyst = CallerIdentity(role=CallerRole.ANALYST, habilitacion_code=None, display_name="A")

        with pytest.raises(UploadNotAllowedError):
            svc.save_chunk(upload_id="u3", chunk_index=0, data=b"x", caller=analyst)


def test_extract_archive_keeps_paths_and_skips_directories_and_hidden_files() -> None:
    archive = _zip({"docs/": b"", "docs/.DS_Store": b"x", "docs/acta.txt": b"hola"})

    documents = extract_archive_documents(archive)

    assert [(doc.file_name, doc.content, doc.content_type) for doc in documents] == [
        ("docs/acta.txt", b"hola", "text/plain")
    ]


def test_extract_archive_rejects_non_zip() -> None:
    with pytest.raises(InvalidArchiveError):
        extract_archive_documents(b"not a zip")
