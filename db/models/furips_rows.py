"""
db/models/furips_rows.py

Detail-row models: one table per file kind, every row tied to its lote.

Only the fields the audit screens filter on are typed columns. The full raw
field list of the line is kept in ``campos`` so nothing a provider sent is
lost.
"""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Time, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONVariant

if TYPE_CHECKING:
    from db.models.lote import Lote


class Furips1Row(Base):
    __tablename__ = "furips1"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    numero_lote: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("control_envio_ips.id", ondelete="CASCADE"),
        nullable=False,
    )

    usuario: Mapped[str | None] = mapped_column(String(255), nullable=True)

    numero_linea: Mapped[int] = mapped_column(Integer, nullable=False)
    numero_factura: Mapped[str | None] = mapped_column(String(20), nullable=True)
    numero_consecutivo_reclamacion: Mapped[str | None] = mapped_column(String(12), nullable=True)
    codigo_habilitacion: Mapped[str | None] = mapped_column(String(12), nullable=True)
    tipo_documento_victima: Mapped[str | None] = mapped_column(String(2), nullable=True)
    numero_documento_victima: Mapped[str | None] = mapped_column(String(16), nullable=True)
    fecha_nacimiento_victima: Mapped[date | None] = mapped_column(Date, nullable=True)
    condicion_victima: Mapped[str | None] = mapped_column(String(2), nullable=True)
    naturaleza_evento: Mapped[str | None] = mapped_column(String(2), nullable=True)
    fecha_ocurrencia_evento: Mapped[date | None] = mapped_column(Date, nullable=True)
    hora_ocurrencia_evento: Mapped[time | None] = mapped_column(Time, nullable=True)
    estado_aseguramiento: Mapped[str | None] = mapped_column(String(2), nullable=True)
    placa: Mapped[str | None] = mapped_column(String(10), nullable=True)
    numero_poliza_soat: Mapped[str | None] = mapped_column(String(20), nullable=True)
    numero_radicado_siras: Mapped[str | None] = mapped_column(String(20), nullable=True)
    fecha_ingreso: Mapped[date | None] = mapped_column(Date, nullable=True)
    fecha_egreso: Mapped[date | None] = mapped_column(Date, nullable=True)
    codigo_diagnostico_principal_ingreso: Mapped[str | None] = mapped_column(String(4), nullable=True)

    total_facturado_gastos_medicos: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    total_reclamado_gastos_medicos: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    total_facturado_transporte: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    total_reclamado_transporte: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    # Audit workflow flags, toggled later by reviewers.
    verificado_2103: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    preauditoria: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    verificado_2108: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    verificado_soat: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    campos: Mapped[list[Any]] = mapped_column(JSONVariant, nullable=False)

    lote: Mapped["Lote"] = relationship("Lote", back_populates="furips1_rows")

    __table_args__ = (
        Index("ix_furips1_numero_lote", "numero_lote"),
        Index("ix_furips1_numero_factura", "numero_factura"),
    )


class Furips2Row(Base):
    __tablename__ = "furips2"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    numero_lote: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("control_envio_ips.id", ondelete="CASCADE"),
        nullable=False,
    )

    usuario: Mapped[str | None] = mapped_column(String(255), nullable=True)

    numero_linea: Mapped[int] = mapped_column(Integer, nullable=False)
    numero_factura: Mapped[str | None] = mapped_column(String(20), nullable=True)
    numero_consecutivo_reclamacion: Mapped[str | None] = mapped_column(String(12), nullable=True)
    tipo_servicio: Mapped[str | None] = mapped_column(String(1), nullable=True)
    codigo_servicio: Mapped[str | None] = mapped_column(String(15), nullable=True)
    descripcion_servicio: Mapped[str | None] = mapped_column(String(80), nullable=True)
    cantidad_servicios: Mapped[int | None] = mapped_column(Integer, nullable=True)
    valor_unitario: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    valor_total_facturado: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    valor_total_reclamado: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    lote: Mapped["Lote"] = relationship("Lote", back_populates="furips2_rows")

    __table_args__ = (
        Index("ix_furips2_numero_lote", "numero_lote"),
        Index("ix_furips2_numero_factura", "numero_factura"),
    )


class FurtranRow(Base):
    __tablename__ = "furtran"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    numero_lote: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("control_envio_ips.id", ondelete="CASCADE"),
        nullable=False,
    )

    usuario: Mapped[str | None] = mapped_column(String(255), nullable=True)

    numero_linea: Mapped[int] = mapped_column(Integer, nullable=False)
    numero_factura: Mapped[str | None] = mapped_column(String(20), nullable=True)
    codigo_habilitacion: Mapped[str | None] = mapped_column(String(12), nullable=True)
    tipo_documento_reclamante: Mapped[str | None] = mapped_column(String(2), nullable=True)
    numero_documento_reclamante: Mapped[str | None] = mapped_column(String(16), nullable=True)
    placa_vehiculo_traslado: Mapped[str | None] = mapped_column(String(10), nullable=True)
    numero_documento_victima: Mapped[str | None] = mapped_column(String(16), nullable=True)
    fecha_traslado_victima: Mapped[date | None] = mapped_column(Date, nullable=True)
    hora_traslado_victima: Mapped[time | None] = mapped_column(Time, nullable=True)
    condicion_victima: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estado_aseguramiento: Mapped[int | None] = mapped_column(Integer, nullable=True)
    numero_radicado_siras: Mapped[str | None] = mapped_column(String(20), nullable=True)
    valor_facturado: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    valor_reclamado: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    campos: Mapped[list[Any]] = mapped_column(JSONVariant, nullable=False)

    lote: Mapped["Lote"] = relationship("Lote", back_populates="furtran_rows")

    __table_args__ = (
        Index("ix_furtran_numero_lote", "numero_lote"),
        Index("ix_furtran_numero_factura", "numero_factura"),
    )
