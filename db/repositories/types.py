"""
Typed DTOs used by lote persistence and object storage flows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


@dataclass(frozen=True)
class StoredObjectInput:
    """
    One submitted file to be written into an envío folder.
    """

    file_name: str
    content: bytes
    content_type: str | None = "text/plain"


@dataclass(frozen=True)
class StoredFolderMetadata:
    """
    Metadata produced by the storage backend after saving an envío folder.
    """

    folder_path: str
    object_keys: tuple[str, ...]
    total_bytes: int
    stored_at: datetime


@dataclass(frozen=True)
class LoteCreate:
    """
    Normalized control row used for lote insertion.
    """

    codigo_habilitacion: str
    nombre_ips: str
    nombre_archivo: str
    tipo_envio: str
    cantidad_facturas: int
    cantidad_items: int
    valor_total: Decimal
    fecha_carga: datetime
    fecha_carga_dia: date
    ruta_drive: str | None = None
    cargado_por: str | None = None
