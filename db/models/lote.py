"""
db/models/lote.py

Lote model: one accepted envío (batch submission) from a healthcare provider.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.furips_rows import Furips1Row, Furips2Row, FurtranRow


class LoteEstado:
    """Valid states; only an operator moves a lote to FINALIZADO."""

    EN_PROCESO = "EN_PROCESO"
    FINALIZADO = "FINALIZADO"


ALLOWED_LOTE_ESTADOS = frozenset({LoteEstado.EN_PROCESO, LoteEstado.FINALIZADO})


class TipoEnvio:
    FURIPS = "FURIPS"
    FURTRAN = "FURTRAN"


class Lote(Base, TimestampMixin):
    """
    Control row for one envío.

    fecha_carga_dia is the calendar day of fecha_carga in the business
    timezone. The unique constraint over (codigo_habilitacion,
    nombre_archivo, fecha_carga_dia) is what keeps two concurrent
    submissions of the same envío from both being registered.
    """

    __tablename__ = "control_envio_ips"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    codigo_habilitacion: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="10-character provider habilitación prefix",
    )

    nombre_ips: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    nombre_archivo: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Caller-supplied envío name (idEnvio)",
    )

    tipo_envio: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TipoEnvio.FURIPS,
    )

    cantidad_facturas: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    cantidad_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    valor_total: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
        default=Decimal("0"),
    )

    ruta_drive: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Opaque object-storage folder path",
    )

    estado: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LoteEstado.EN_PROCESO,
    )

    fecha_carga: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    fecha_carga_dia: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    fecha_procesado: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    procesado_por: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    cargado_por: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    furips1_rows: Mapped[list["Furips1Row"]] = relationship(
        "Furips1Row",
        back_populates="lote",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    furips2_rows: Mapped[list["Furips2Row"]] = relationship(
        "Furips2Row",
        back_populates="lote",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    furtran_rows: Mapped[list["FurtranRow"]] = relationship(
        "FurtranRow",
        back_populates="lote",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        UniqueConstraint(
            "codigo_habilitacion",
            "nombre_archivo",
            "fecha_carga_dia",
            name="uq_control_envio_ips_codigo_archivo_dia",
        ),
        Index("ix_control_envio_ips_codigo_habilitacion", "codigo_habilitacion"),
        Index("ix_control_envio_ips_fecha_carga", "fecha_carga"),
        Index("ix_control_envio_ips_estado", "estado"),
    )

    def __repr__(self) -> str:
        return (
            f"<Lote id={self.id} codigo={self.codigo_habilitacion!r} "
            f"archivo={self.nombre_archivo!r} estado={self.estado!r}>"
        )
