"""
app/domain/furips_records.py

Fixed-shape line records for each file kind.

Every positional field the pipeline reads is exposed through a named
property backed by one index constant, so no caller indexes the raw field
list directly. Absent positions read as an empty string.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Final

# Numeric(15, 2) holds at most 13 integer digits.
MAX_AMOUNT_DIGITS: Final[int] = 13


class Furips1Field:
    NUMERO_RADICADO_ANTERIOR: Final[int] = 0
    NUMERO_FACTURA: Final[int] = 2
    NUMERO_CONSECUTIVO_RECLAMACION: Final[int] = 3
    CODIGO_HABILITACION: Final[int] = 4
    PRIMER_APELLIDO_VICTIMA: Final[int] = 5
    PRIMER_NOMBRE_VICTIMA: Final[int] = 7
    TIPO_DOCUMENTO_VICTIMA: Final[int] = 9
    NUMERO_DOCUMENTO_VICTIMA: Final[int] = 10
    FECHA_NACIMIENTO_VICTIMA: Final[int] = 11
    SEXO_VICTIMA: Final[int] = 13
    CONDICION_VICTIMA: Final[int] = 18
    NATURALEZA_EVENTO: Final[int] = 19
    FECHA_OCURRENCIA_EVENTO: Final[int] = 22
    HORA_OCURRENCIA_EVENTO: Final[int] = 23
    ESTADO_ASEGURAMIENTO: Final[int] = 27
    PLACA: Final[int] = 29
    CODIGO_ASEGURADORA: Final[int] = 31
    NUMERO_POLIZA_SOAT: Final[int] = 32
    NUMERO_RADICADO_SIRAS: Final[int] = 35
    FECHA_INGRESO: Final[int] = 69
    FECHA_EGRESO: Final[int] = 81
    CODIGO_DIAGNOSTICO_PRINCIPAL_INGRESO: Final[int] = 83
    TOTAL_FACTURADO_GASTOS_MEDICOS: Final[int] = 96
    TOTAL_RECLAMADO_GASTOS_MEDICOS: Final[int] = 97
    TOTAL_FACTURADO_TRANSPORTE: Final[int] = 98
    TOTAL_RECLAMADO_TRANSPORTE: Final[int] = 99


class Furips2Field:
    NUMERO_FACTURA: Final[int] = 0
    NUMERO_CONSECUTIVO_RECLAMACION: Final[int] = 1
    TIPO_SERVICIO: Final[int] = 2
    CODIGO_SERVICIO: Final[int] = 3
    DESCRIPCION_SERVICIO: Final[int] = 4
    CANTIDAD_SERVICIOS: Final[int] = 5
    VALOR_UNITARIO: Final[int] = 6
    VALOR_TOTAL_FACTURADO: Final[int] = 7
    VALOR_TOTAL_RECLAMADO: Final[int] = 8


class FurtranField:
    NUMERO_FACTURA: Final[int] = 2
    CODIGO_HABILITACION: Final[int] = 3
    TIPO_DOCUMENTO_RECLAMANTE: Final[int] = 8
    NUMERO_DOCUMENTO_RECLAMANTE: Final[int] = 9
    PLACA_VEHICULO_TRASLADO: Final[int] = 11
    NUMERO_DOCUMENTO_VICTIMA: Final[int] = 17
    FECHA_TRASLADO_VICTIMA: Final[int] = 29
    HORA_TRASLADO_VICTIMA: Final[int] = 30
    CONDICION_VICTIMA: Final[int] = 34
    ESTADO_ASEGURAMIENTO: Final[int] = 35
    NUMERO_RADICADO_SIRAS: Final[int] = 42
    VALOR_FACTURADO: Final[int] = 43
    VALOR_RECLAMADO: Final[int] = 44


@dataclass(frozen=True)
class _LineRecord:
    line_number: int
    fields: tuple[str, ...]

    def _get(self, index: int) -> str:
        if index < len(self.fields):
            return self.fields[index].strip()
        return ""


@dataclass(frozen=True)
class Furips1Record(_LineRecord):
    """One invoice / victim line."""

    @property
    def numero_radicado_anterior(self) -> str:
        return self._get(Furips1Field.NUMERO_RADICADO_ANTERIOR)

    @property
    def numero_factura(self) -> str:
        return self._get(Furips1Field.NUMERO_FACTURA)

    @property
    def numero_consecutivo_reclamacion(self) -> str:
        return self._get(Furips1Field.NUMERO_CONSECUTIVO_RECLAMACION)

    @property
    def codigo_habilitacion(self) -> str:
        return self._get(Furips1Field.CODIGO_HABILITACION)

    @property
    def primer_apellido_victima(self) -> str:
        return self._get(Furips1Field.PRIMER_APELLIDO_VICTIMA)

    @property
    def primer_nombre_victima(self) -> str:
        return self._get(Furips1Field.PRIMER_NOMBRE_VICTIMA)

    @property
    def tipo_documento_victima(self) -> str:
        return self._get(Furips1Field.TIPO_DOCUMENTO_VICTIMA)

    @property
    def numero_documento_victima(self) -> str:
        return self._get(Furips1Field.NUMERO_DOCUMENTO_VICTIMA)

    @property
    def fecha_nacimiento_victima(self) -> str:
        return self._get(Furips1Field.FECHA_NACIMIENTO_VICTIMA)

    @property
    def sexo_victima(self) -> str:
        return self._get(Furips1Field.SEXO_VICTIMA)

    @property
    def condicion_victima(self) -> str:
        return self._get(Furips1Field.CONDICION_VICTIMA)

    @property
    def naturaleza_evento(self) -> str:
        return self._get(Furips1Field.NATURALEZA_EVENTO)

    @property
    def fecha_ocurrencia_evento(self) -> str:
        return self._get(Furips1Field.FECHA_OCURRENCIA_EVENTO)

    @property
    def hora_ocurrencia_evento(self) -> str:
        return self._get(Furips1Field.HORA_OCURRENCIA_EVENTO)

    @property
    def estado_aseguramiento(self) -> str:
        return self._get(Furips1Field.ESTADO_ASEGURAMIENTO)

    @property
    def placa(self) -> str:
        return self._get(Furips1Field.PLACA)

    @property
    def codigo_aseguradora(self) -> str:
        return self._get(Furips1Field.CODIGO_ASEGURADORA)

    @property
    def numero_poliza_soat(self) -> str:
        return self._get(Furips1Field.NUMERO_POLIZA_SOAT)

    @property
    def numero_radicado_siras(self) -> str:
        return self._get(Furips1Field.NUMERO_RADICADO_SIRAS)

    @property
    def fecha_ingreso(self) -> str:
        return self._get(Furips1Field.FECHA_INGRESO)

    @property
    def fecha_egreso(self) -> str:
        return self._get(Furips1Field.FECHA_EGRESO)

    @property
    def codigo_diagnostico_principal_ingreso(self) -> str:
        return self._get(Furips1Field.CODIGO_DIAGNOSTICO_PRINCIPAL_INGRESO)

    @property
    def total_facturado_gastos_medicos(self) -> str:
        return self._get(Furips1Field.TOTAL_FACTURADO_GASTOS_MEDICOS)

    @property
    def total_reclamado_gastos_medicos(self) -> str:
        return self._get(Furips1Field.TOTAL_RECLAMADO_GASTOS_MEDICOS)

    @property
    def total_facturado_transporte(self) -> str:
        return self._get(Furips1Field.TOTAL_FACTURADO_TRANSPORTE)

    @property
    def total_reclamado_transporte(self) -> str:
        return self._get(Furips1Field.TOTAL_RECLAMADO_TRANSPORTE)


@dataclass(frozen=True)
class Furips2Record(_LineRecord):
    """One claimed service / line item."""

    @property
    def numero_factura(self) -> str:
        return self._get(Furips2Field.NUMERO_FACTURA)

    @property
    def numero_consecutivo_reclamacion(self) -> str:
        return self._get(Furips2Field.NUMERO_CONSECUTIVO_RECLAMACION)

    @property
    def tipo_servicio(self) -> str:
        return self._get(Furips2Field.TIPO_SERVICIO)

    @property
    def codigo_servicio(self) -> str:
        return self._get(Furips2Field.CODIGO_SERVICIO)

    @property
    def descripcion_servicio(self) -> str:
        return self._get(Furips2Field.DESCRIPCION_SERVICIO)

    @property
    def cantidad_servicios(self) -> str:
        return self._get(Furips2Field.CANTIDAD_SERVICIOS)

    @property
    def valor_unitario(self) -> str:
        return self._get(Furips2Field.VALOR_UNITARIO)

    @property
    def valor_total_facturado(self) -> str:
        return self._get(Furips2Field.VALOR_TOTAL_FACTURADO)

    @property
    def valor_total_reclamado(self) -> str:
        return self._get(Furips2Field.VALOR_TOTAL_RECLAMADO)


@dataclass(frozen=True)
class FurtranRecord(_LineRecord):
    """One transport claim."""

    @property
    def numero_factura(self) -> str:
        return self._get(FurtranField.NUMERO_FACTURA)

    @property
    def codigo_habilitacion(self) -> str:
        return self._get(FurtranField.CODIGO_HABILITACION)

    @property
    def tipo_documento_reclamante(self) -> str:
        return self._get(FurtranField.TIPO_DOCUMENTO_RECLAMANTE)

    @property
    def numero_documento_reclamante(self) -> str:
        return self._get(FurtranField.NUMERO_DOCUMENTO_RECLAMANTE)

    @property
    def placa_vehiculo_traslado(self) -> str:
        return self._get(FurtranField.PLACA_VEHICULO_TRASLADO)

    @property
    def numero_documento_victima(self) -> str:
        return self._get(FurtranField.NUMERO_DOCUMENTO_VICTIMA)

    @property
    def fecha_traslado_victima(self) -> str:
        return self._get(FurtranField.FECHA_TRASLADO_VICTIMA)

    @property
    def hora_traslado_victima(self) -> str:
        return self._get(FurtranField.HORA_TRASLADO_VICTIMA)

    @property
    def condicion_victima(self) -> str:
        return self._get(FurtranField.CONDICION_VICTIMA)

    @property
    def estado_aseguramiento(self) -> str:
        return self._get(FurtranField.ESTADO_ASEGURAMIENTO)

    @property
    def numero_radicado_siras(self) -> str:
        return self._get(FurtranField.NUMERO_RADICADO_SIRAS)

    @property
    def valor_facturado(self) -> str:
        return self._get(FurtranField.VALOR_FACTURADO)

    @property
    def valor_reclamado(self) -> str:
        return self._get(FurtranField.VALOR_RECLAMADO)


def parse_decimal(value: str | None) -> Decimal | None:
    """
    Parse a numeric field. Blank, non-numeric and non-finite values read as None.
    """

    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None
    try:
        number = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def is_amount_in_range(amount: Decimal) -> bool:
    """
    True when ``abs(amount) < 10 ** MAX_AMOUNT_DIGITS``.

    Compares exponents only, so values like ``1e999999999`` never reach
    context arithmetic.
    """

    if not amount:
        return True
    return amount.adjusted() < MAX_AMOUNT_DIGITS


def parse_amount(value: str | None) -> Decimal | None:
    """
    Parse a monetary field. Blank, non-numeric, non-finite and out-of-range
    values read as None.
    """

    amount = parse_decimal(value)
    if amount is None or not is_amount_in_range(amount):
        return None
    return amount
