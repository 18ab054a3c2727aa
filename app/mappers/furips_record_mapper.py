"""
app/mappers/furips_record_mapper.py

Maps validated FURIPS1 / FURIPS2 / FURTRAN lines into detail-row dicts ready
for bulk insertion.

Coercion never rejects a line. A value that cannot be read as its column type
is stored as NULL and a warning is recorded; an over-long text value is cut
to the column length, also with a warning. The raw field list of every line
is kept in ``campos`` where the target table has one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Final

from app.domain.furips import FileKind
from app.domain.furips_records import (
    Furips1Record,
    Furips2Record,
    FurtranRecord,
    is_amount_in_range,
    parse_decimal,
)
from app.validators.furips_validator import iter_lines

logger = logging.getLogger(__name__)

DATE_FORMATS: Final[tuple[str, ...]] = ("%d/%m/%Y", "%Y/%m/%d", "%Y-%m-%d")
MIN_YEAR: Final[int] = 1900
MAX_YEAR: Final[int] = 2100
# Integer columns are 32-bit.
MIN_INT: Final[int] = -(2**31)
MAX_INT: Final[int] = 2**31 - 1

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


class CoercionIssue:
    INVALID_DATE = "invalid_date"
    INVALID_TIME = "invalid_time"
    INVALID_NUMBER = "invalid_number"
    OUT_OF_RANGE = "out_of_range"
    TRUNCATED = "truncated"


@dataclass(frozen=True)
class CoercionWarning:
    line: int
    field: str
    issue: str
    original_value: str


@dataclass
class MappedRows:
    kind: str
    rows: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[CoercionWarning] = field(default_factory=list)


@dataclass(frozen=True)
class _FieldSpec:
    column: str
    kind: str
    max_length: int | None = None


def _text(column: str, max_length: int) -> _FieldSpec:
    return _FieldSpec(column=column, kind="text", max_length=max_length)


def _typed(column: str, kind: str) -> _FieldSpec:
    return _FieldSpec(column=column, kind=kind)


FURIPS1_FIELDS: Final[tuple[_FieldSpec, ...]] = (
    _text("numero_factura", 20),
    _text("numero_consecutivo_reclamacion", 12),
    _text("codigo_habilitacion", 12),
    _text("tipo_documento_victima", 2),
    _text("numero_documento_victima", 16),
    _typed("fecha_nacimiento_victima", "date"),
    _text("condicion_victima", 2),
    _text("naturaleza_evento", 2),
    _typed("fecha_ocurrencia_evento", "date"),
    _typed("hora_ocurrencia_evento", "time"),
    _text("estado_aseguramiento", 2),
    _text("placa", 10),
    _text("numero_poliza_soat", 20),
    _text("numero_radicado_siras", 20),
    _typed("fecha_ingreso", "date"),
    _typed("fecha_egreso", "date"),
    _text("codigo_diagnostico_principal_ingreso", 4),
    _typed("total_facturado_gastos_medicos", "decimal"),
    _typed("total_reclamado_gastos_medicos", "decimal"),
    _typed("total_facturado_transporte", "decimal"),
    _typed("total_reclamado_transporte", "decimal"),
)

FURIPS2_FIELDS: Final[tuple[_FieldSpec, ...]] = (
    _text("numero_factura", 20),
    _text("numero_consecutivo_reclamacion", 12),
    _text("tipo_servicio", 1),
    _text("codigo_servicio", 15),
    _text("descripcion_servicio", 80),
    _typed("cantidad_servicios", "int"),
    _typed("valor_unitario", "decimal"),
    _typed("valor_total_facturado", "decimal"),
    _typed("valor_total_reclamado", "decimal"),
)

FURTRAN_FIELDS: Final[tuple[_FieldSpec, ...]] = (
    _text("numero_factura", 20),
    _text("codigo_habilitacion", 12),
    _text("tipo_documento_reclamante", 2),
    _text("numero_documento_reclamante", 16),
    _text("placa_vehiculo_traslado", 10),
    _text("numero_documento_victima", 16),
    _typed("fecha_traslado_victima", "date"),
    _typed("hora_traslado_victima", "time"),
    _typed("condicion_victima", "int"),
    _typed("estado_aseguramiento", "int"),
    _text("numero_radicado_siras", 20),
    _typed("valor_facturado", "decimal"),
    _typed("valor_reclamado", "decimal"),
)

_LAYOUTS: Final[dict[str, tuple[type, tuple[_FieldSpec, ...], bool]]] = {
    FileKind.FURIPS1: (Furips1Record, FURIPS1_FIELDS, True),
    FileKind.FURIPS2: (Furips2Record, FURIPS2_FIELDS, False),
    FileKind.FURTRAN: (FurtranRecord, FURTRAN_FIELDS, True),
}


def parse_date(value: str) -> date | None:
    """
    Accepts DD/MM/YYYY, YYYY/MM/DD and YYYY-MM-DD. Years outside 1900-2100
    are treated as unreadable.
    """

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt).date()
        except ValueError:
            continue
        if MIN_YEAR <= parsed.year <= MAX_YEAR:
            return parsed
        return None
    return None


def parse_time(value: str) -> time | None:
    match = _TIME_PATTERN.match(value)
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def parse_int(value: str) -> int | None:
    """
    Integral values that fit a 32-bit column; anything else reads as None.
    """

    number = parse_decimal(value)
    # Eleven or more digits never fit; rejected before context arithmetic.
    if number is None or (number and number.adjusted() >= 10):
        return None
    if number != number.to_integral_value():
        return None
    integer = int(number)
    if not MIN_INT <= integer <= MAX_INT:
        return None
    return integer


class FuripsRecordMapper:
    """
    Stateless line-to-row mapper. Safe to share across threads.
    """

    def map_content(self, kind: str, content: str) -> MappedRows:
        layout = _LAYOUTS.get(kind)
        if layout is None:
            raise ValueError(f"Unknown file kind: {kind}")
        record_cls, specs, keep_raw = layout

        result = MappedRows(kind=kind)
        for line_number, fields in iter_lines(content):
            record = record_cls(line_number=line_number, fields=tuple(fields))
            row: dict[str, Any] = {"numero_linea": line_number}
            for spec in specs:
                row[spec.column] = self._coerce(
                    spec,
                    getattr(record, spec.column),
                    line_number,
                    result.warnings,
                )
            if keep_raw:
                row["campos"] = [value.strip() for value in fields]
            result.rows.append(row)

        if result.warnings:
            logger.info(
                "%s mapped rows=%d coercion_warnings=%d",
                kind,
                len(result.rows),
                len(result.warnings),
            )
        return result

    def _coerce(
        self,
        spec: _FieldSpec,
        raw: str,
        line_number: int,
        warnings: list[CoercionWarning],
    ) -> Any:
        if not raw:
            return None

        def warn(issue: str) -> None:
            warnings.append(
                CoercionWarning(
                    line=line_number,
                    field=spec.column,
                    issue=issue,
                    original_value=raw,
                )
            )

        if spec.kind == "text":
            if spec.max_length is not None and len(raw) > spec.max_length:
                warn(CoercionIssue.TRUNCATED)
                return raw[: spec.max_length]
            return raw

        if spec.kind == "date":
            parsed_date = parse_date(raw)
            if parsed_date is None:
                warn(CoercionIssue.INVALID_DATE)
            return parsed_date

        if spec.kind == "time":
            parsed_time = parse_time(raw)
            if parsed_time is None:
                warn(CoercionIssue.INVALID_TIME)
            return parsed_time

        if spec.kind == "int":
            parsed_int = parse_int(raw)
            if parsed_int is None:
                warn(CoercionIssue.INVALID_NUMBER)
            return parsed_int

        amount = parse_decimal(raw)
        if amount is None:
            warn(CoercionIssue.INVALID_NUMBER)
            return None
        if not is_amount_in_range(amount):
            warn(CoercionIssue.OUT_OF_RANGE)
            return None
        return amount.quantize(Decimal("0.01"))
