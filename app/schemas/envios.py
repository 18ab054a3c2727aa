"""
app/schemas/envios.py

Request and response schemas for envío endpoints.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class LineValidationErrorResponse(BaseModel):
    """
    API response model for one structurally malformed line.
    """

    line: int = Field(..., ge=1)
    expected_fields: int = Field(..., ge=1)
    actual_fields: int = Field(..., ge=1)
    preview: str


class FileValidationResponse(BaseModel):
    file_name: str
    is_valid: bool
    errors: list[LineValidationErrorResponse] = Field(default_factory=list)
    total_lines: int = Field(..., ge=0)
    valid_lines: int = Field(..., ge=0)


class CodeFrequencyResponse(BaseModel):
    code: str
    label: str
    count: int = Field(..., ge=0)
    monetary_total: Decimal
    percentage: float


class FurtranSummaryResponse(BaseModel):
    codigo_habilitacion: str
    cantidad_registros: int = Field(..., ge=0)
    valor_total: Decimal


class EnvioSummaryResponse(BaseModel):
    """
    Reconciled envío totals and frequency tables.
    """

    id_envio: str
    codigo_habilitacion: str
    nombre_ips: str
    cantidad_facturas: int = Field(..., ge=0)
    cantidad_items: int = Field(..., ge=0)
    valor_total: Decimal
    estado_aseguramiento: list[CodeFrequencyResponse] = Field(default_factory=list)
    condicion_victima: list[CodeFrequencyResponse] = Field(default_factory=list)
    tipo_servicio: list[CodeFrequencyResponse] = Field(default_factory=list)
    furtran: FurtranSummaryResponse | None = None


class EnvioValidationResponse(BaseModel):
    """
    Structural errors are reported here with success=false, never as HTTP errors.
    """

    success: bool
    message: str
    validation: dict[str, FileValidationResponse] = Field(default_factory=dict)
    summary: EnvioSummaryResponse | None = None


class DetailInsertResponse(BaseModel):
    kind: str
    inserted: int = Field(..., ge=0)
    error: str | None = None


class EnvioRegistrationResponse(EnvioValidationResponse):
    envio_id: int | None = None
    nombre_archivo: str | None = None
    ruta_storage: str | None = None
    outcome: str | None = None
    data_insert_success: bool | None = None
    insert_results: list[DetailInsertResponse] = Field(default_factory=list)
    coercion_warnings: int = Field(default=0, ge=0)


class ChunkAcceptedResponse(BaseModel):
    upload_id: str
    chunk_index: int = Field(..., ge=0)
    received_bytes: int = Field(..., ge=0)


class LoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    codigo_habilitacion: str
    nombre_ips: str
    nombre_archivo: str
    tipo_envio: str
    cantidad_facturas: int
    cantidad_items: int
    valor_total: Decimal
    ruta_drive: str | None = None
    estado: str
    fecha_carga: datetime
    fecha_procesado: datetime | None = None
    procesado_por: str | None = None
    cargado_por: str | None = None


class LoteListResponse(BaseModel):
    items: list[LoteResponse]
    count: int = Field(..., ge=0)


class EstadoUpdateRequest(BaseModel):
    estado: str = Field(..., min_length=1, description="EN_PROCESO or FINALIZADO")
