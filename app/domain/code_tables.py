"""
app/domain/code_tables.py

Static lookup tables for coded FURIPS fields.

Keys are the literal codes found in the files (case-sensitive). New tables
are plain data; ``decode`` does not need to change.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Mapping

DEFAULT_FALLBACK_TEMPLATE: Final[str] = "Código {code}"

# FURIPS1 field 28 (index 27)
ESTADO_ASEGURAMIENTO: Final[Mapping[str, str]] = MappingProxyType(
    {
        "1": "Asegurado",
        "2": "No asegurado",
        "3": "Vehículo fantasma",
        "4": "Póliza falsa",
        "5": "Vehículo en fuga",
        "6": "Asegurado D.2497",
        "7": "No asegurado Propietario Indeterminado",
        "8": "No Asegurado - Sin Placa",
    }
)

# FURIPS1 field 19 (index 18)
CONDICION_VICTIMA: Final[Mapping[str, str]] = MappingProxyType(
    {
        "1": "Conductor",
        "2": "Peatón",
        "3": "Ocupante",
        "4": "Ciclista",
    }
)

# FURIPS2 field 3 (index 2)
TIPO_SERVICIO: Final[Mapping[str, str]] = MappingProxyType(
    {
        "1": "1-Medicamentos",
        "2": "2-Procedimientos",
        "3": "3-Transporte Primario",
        "4": "4-Transporte Secundario",
        "5": "5-Insumos",
        "6": "6-Dispositivos Médicos",
        "7": "7-Material de Osteosintesis",
        "8": "8-Procedimientos Art 87",
    }
)


def decode(
    code: str | None,
    table: Mapping[str, str],
    *,
    fallback_template: str = DEFAULT_FALLBACK_TEMPLATE,
) -> str:
    """
    Return the descriptive label for ``code``.

    Never raises: codes missing from ``table`` (blank included) resolve to
    ``fallback_template`` formatted with the stripped code.
    """

    normalized = (code or "").strip()
    label = table.get(normalized)
    if label is not None:
        return label
    return fallback_template.format(code=normalized)


def is_blank_code(code: str | None) -> bool:
    """
    Blank codes are left out of frequency tables entirely.
    """

    return code is None or code.strip() == ""
