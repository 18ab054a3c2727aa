"""
app/services/aggregation_service.py

Per-file aggregation for structurally valid FURIPS1, FURIPS2 and FURTRAN
content.

Each method walks the file once and accumulates counts, monetary totals and
code frequencies. Percentages are derived only after the scan completes,
always against the file-level total, so the result does not depend on line
order.

Ordering
--------
    FURIPS1 tables   count desc, code asc
    FURIPS2 table    monetary value desc, code asc

Unparsable amounts count as zero and blank codes are skipped; nothing here
raises for bad field content.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Final, TypeVar

from app.domain.code_tables import (
    CONDICION_VICTIMA,
    ESTADO_ASEGURAMIENTO,
    TIPO_SERVICIO,
    decode,
    is_blank_code,
)
from app.domain.furips import (
    HABILITACION_CODE_LENGTH,
    CodeFrequencyEntry,
    Furips1Aggregation,
    Furips2Aggregation,
    FurtranAggregation,
)
from app.domain.furips_records import (
    Furips1Record,
    Furips2Record,
    FurtranRecord,
    parse_amount,
)
from app.validators.furips_validator import iter_lines

logger = logging.getLogger(__name__)

PERCENTAGE_DECIMALS: Final[int] = 2
_ZERO: Final[Decimal] = Decimal("0")

_RecordT = TypeVar("_RecordT", Furips1Record, Furips2Record, FurtranRecord)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


@dataclass
class _CodeBucket:
    count: int = 0
    value: Decimal = field(default_factory=lambda: _ZERO)


def _iter_records(content: str, factory: Callable[..., _RecordT]) -> Iterator[_RecordT]:
    for line_number, fields in iter_lines(content):
        yield factory(line_number=line_number, fields=tuple(fields))


def _percentage(part: Decimal | int, whole: Decimal | int) -> float:
    if not whole:
        return 0.0
    return round(float(Decimal(part) / Decimal(whole) * 100), PERCENTAGE_DECIMALS)


def _count_table(
    buckets: Mapping[str, _CodeBucket],
    table: Mapping[str, str],
    total_count: int,
) -> list[CodeFrequencyEntry]:
    entries = [
        CodeFrequencyEntry(
            code=code,
            label=decode(code, table),
            count=bucket.count,
            monetary_total=bucket.value,
            percentage=_percentage(bucket.count, total_count),
        )
        for code, bucket in buckets.items()
    ]
    entries.sort(key=lambda entry: (-entry.count, entry.code))
    return entries


def _value_table(
    buckets: Mapping[str, _CodeBucket],
    table: Mapping[str, str],
    total_value: Decimal,
) -> list[CodeFrequencyEntry]:
    entries = [
        CodeFrequencyEntry(
            code=code,
            label=decode(code, table),
            count=bucket.count,
            monetary_total=bucket.value,
            percentage=_percentage(bucket.value, total_value),
        )
        for code, bucket in buckets.items()
    ]
    entries.sort(key=lambda entry: (-entry.monetary_total, entry.code))
    return entries


def extract_habilitacion_code(raw_value: str) -> str:
    """
    Return the regulatory provider prefix of a habilitación field.
    """

    return raw_value[:HABILITACION_CODE_LENGTH]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AggregationService:
    """
    Stateless per-file aggregator. Safe to share across threads.
    """

    def aggregate_furips1(self, content: str) -> Furips1Aggregation:
        """
        Invoice count, provider code and the two FURIPS1 frequency tables.

        The provider code comes from the first line only. Every line in a
        FURIPS1 file belongs to one provider and later lines are never
        consulted, even if they disagree.
        """

        habilitacion_code = ""
        invoice_count = 0
        estado: dict[str, _CodeBucket] = {}
        condicion: dict[str, _CodeBucket] = {}

        for record in _iter_records(content, Furips1Record):
            if invoice_count == 0:
                habilitacion_code = extract_habilitacion_code(record.codigo_habilitacion)
            invoice_count += 1

            if not is_blank_code(record.estado_aseguramiento):
                estado.setdefault(record.estado_aseguramiento, _CodeBucket()).count += 1
            if not is_blank_code(record.condicion_victima):
                condicion.setdefault(record.condicion_victima, _CodeBucket()).count += 1

        logger.debug(
            "FURIPS1 aggregated invoices=%d habilitacion=%s",
            invoice_count,
            habilitacion_code,
        )
        return Furips1Aggregation(
            habilitacion_code=habilitacion_code,
            invoice_count=invoice_count,
            insurance_status=_count_table(estado, ESTADO_ASEGURAMIENTO, invoice_count),
            victim_condition=_count_table(condicion, CONDICION_VICTIMA, invoice_count),
        )

    def aggregate_furips2(self, content: str) -> Furips2Aggregation:
        """
        Line-item count, total claimed value and the service-type table.
        """

        item_count = 0
        total_value = _ZERO
        servicio: dict[str, _CodeBucket] = {}

        for record in _iter_records(content, Furips2Record):
            item_count += 1
            value = parse_amount(record.valor_total_reclamado) or _ZERO
            total_value += value

            if not is_blank_code(record.tipo_servicio):
                bucket = servicio.setdefault(record.tipo_servicio, _CodeBucket())
                bucket.count += 1
                bucket.value += value

        logger.debug("FURIPS2 aggregated items=%d total=%s", item_count, total_value)
        return Furips2Aggregation(
            item_count=item_count,
            total_value=total_value,
            service_type=_value_table(servicio, TIPO_SERVICIO, total_value),
        )

    def aggregate_furtran(self, content: str) -> FurtranAggregation:
        habilitacion_code = ""
        record_count = 0
        total_value = _ZERO

        for record in _iter_records(content, FurtranRecord):
            if record_count == 0:
                habilitacion_code = extract_habilitacion_code(record.codigo_habilitacion)
            record_count += 1
            total_value += parse_amount(record.valor_reclamado) or _ZERO

        return FurtranAggregation(
            habilitacion_code=habilitacion_code,
            record_count=record_count,
            total_value=total_value,
        )
