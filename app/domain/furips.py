"""
app/domain/furips.py

Domain models for FURIPS1 / FURIPS2 / FURTRAN envío ingestion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Final


class FileKind:
    FURIPS1 = "FURIPS1"
    FURIPS2 = "FURIPS2"
    FURTRAN = "FURTRAN"


ALL_FILE_KINDS: Final[tuple[str, ...]] = (
    FileKind.FURIPS1,
    FileKind.FURIPS2,
    FileKind.FURTRAN,
)


class CallerRole:
    ADMIN = "ADMIN"
    USER = "USER"
    ANALYST = "ANALYST"


ALLOWED_CALLER_ROLES: Final[frozenset[str]] = frozenset(
    {CallerRole.ADMIN, CallerRole.USER, CallerRole.ANALYST}
)

HABILITACION_CODE_LENGTH: Final[int] = 10
PREVIEW_MAX_CHARS: Final[int] = 100


@dataclass(frozen=True)
class FileSchema:
    """
    Compiled-in shape of one regulatory flat-file kind.

    Field positions live on the per-kind record classes in
    ``app.domain.furips_records``.
    """

    kind: str
    expected_fields: int


FURIPS1_SCHEMA: Final[FileSchema] = FileSchema(
    kind=FileKind.FURIPS1,
    expected_fields=102,
)

FURIPS2_SCHEMA: Final[FileSchema] = FileSchema(
    kind=FileKind.FURIPS2,
    expected_fields=9,
)

FURTRAN_SCHEMA: Final[FileSchema] = FileSchema(
    kind=FileKind.FURTRAN,
    expected_fields=46,
)

SCHEMAS_BY_KIND: Final[dict[str, FileSchema]] = {
    FileKind.FURIPS1: FURIPS1_SCHEMA,
    FileKind.FURIPS2: FURIPS2_SCHEMA,
    FileKind.FURTRAN: FURTRAN_SCHEMA,
}


@dataclass(frozen=True)
class RawSubmission:
    """
    One uploaded flat file as received. Never persisted as-is.
    """

    kind: str
    file_name: str
    content: bytes
    id_envio: str

    def text(self) -> str:
        """
        UTF-8 (BOM tolerated), falling back to Latin-1 for files exported by
        Windows tools.
        """

        try:
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return self.content.decode("latin-1")


@dataclass(frozen=True)
class CallerIdentity:
    """
    Identity supplied by the authentication gateway. Not verified here.
    """

    role: str
    habilitacion_code: str | None
    display_name: str
    email: str | None = None

    @property
    def is_provider(self) -> bool:
        return self.role == CallerRole.USER


@dataclass(frozen=True)
class LineValidationError:
    """
    One structurally malformed line.
    """

    line: int
    expected_fields: int
    actual_fields: int
    preview: str


@dataclass(frozen=True)
class FileValidationResult:
    is_valid: bool
    errors: list[LineValidationError] = field(default_factory=list)
    total_lines: int = 0
    valid_lines: int = 0


@dataclass(frozen=True)
class CodeFrequencyEntry:
    code: str
    label: str
    count: int
    monetary_total: Decimal
    percentage: float


@dataclass(frozen=True)
class Furips1Aggregation:
    habilitacion_code: str
    invoice_count: int
    insurance_status: list[CodeFrequencyEntry] = field(default_factory=list)
    victim_condition: list[CodeFrequencyEntry] = field(default_factory=list)


@dataclass(frozen=True)
class Furips2Aggregation:
    item_count: int
    total_value: Decimal
    service_type: list[CodeFrequencyEntry] = field(default_factory=list)


@dataclass(frozen=True)
class FurtranAggregation:
    habilitacion_code: str
    record_count: int
    total_value: Decimal


@dataclass(frozen=True)
class ProcessedFile:
    """
    Output of the per-kind stage: validation always, aggregation only when
    the file is structurally valid.
    """

    kind: str
    file_name: str
    content: str
    validation: FileValidationResult
    aggregation: Furips1Aggregation | Furips2Aggregation | FurtranAggregation | None = None

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


@dataclass(frozen=True)
class SubmittedFile:
    """
    File name and decoded text kept for the storage-upload collaborator.
    """

    file_name: str
    content: str


@dataclass(frozen=True)
class EnvioSummary:
    """
    Reconciled, envío-level result handed to the registrar.
    """

    id_envio: str
    habilitacion_code: str
    nombre_ips: str
    invoice_count: int
    item_count: int
    total_value: Decimal
    furips1: Furips1Aggregation | None
    furips2: Furips2Aggregation | None
    furtran: FurtranAggregation | None
    validation: dict[str, FileValidationResult]
    files: dict[str, SubmittedFile]

    @property
    def is_furtran_only(self) -> bool:
        return self.furips1 is None and self.furips2 is None and self.furtran is not None
