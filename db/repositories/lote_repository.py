"""
Lote repository responsible for control-row writes and lookups.

Never commits; the calling service owns the transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.lote import Lote, LoteEstado
from db.repositories.errors import LoteNotFoundError
from db.repositories.types import LoteCreate


class LoteRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, lote_id: int) -> Lote:
        lote = self._session.get(Lote, lote_id)
        if lote is None:
            raise LoteNotFoundError(f"Lote not found: {lote_id}")
        return lote

    def find_same_day(
        self,
        *,
        codigo_habilitacion: str,
        nombre_archivo: str,
        day_start: datetime,
        day_end: datetime,
    ) -> Lote | None:
        """
        Existing lote for the same provider and envío name loaded inside
        ``[day_start, day_end)``.
        """

        stmt = (
            select(Lote)
            .where(
                Lote.codigo_habilitacion == codigo_habilitacion,
                Lote.nombre_archivo == nombre_archivo,
                Lote.fecha_carga >= day_start,
                Lote.fecha_carga < day_end,
            )
            .order_by(Lote.id)
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def create_lote(self, record: LoteCreate) -> Lote:
        lote = Lote(
            codigo_habilitacion=record.codigo_habilitacion,
            nombre_ips=record.nombre_ips,
            nombre_archivo=record.nombre_archivo,
            tipo_envio=record.tipo_envio,
            cantidad_facturas=record.cantidad_facturas,
            cantidad_items=record.cantidad_items,
            valor_total=record.valor_total,
            ruta_drive=record.ruta_drive,
            estado=LoteEstado.EN_PROCESO,
            fecha_carga=record.fecha_carga,
            fecha_carga_dia=record.fecha_carga_dia,
            cargado_por=record.cargado_por,
        )
        self._session.add(lote)
        self._session.flush()
        return lote

    def find_nombre_ips_by_code_prefix(self, codigo_habilitacion: str) -> str | None:
        """
        Most recent provider name registered under a code starting with
        ``codigo_habilitacion``.
        """

        stmt = (
            select(Lote.nombre_ips)
            .where(Lote.codigo_habilitacion.startswith(codigo_habilitacion, autoescape=True))
            .order_by(Lote.fecha_carga.desc(), Lote.id.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def list_lotes(
        self,
        *,
        codigo_habilitacion: str | None = None,
        estado: str | None = None,
        limit: int = 100,
    ) -> list[Lote]:
        stmt = select(Lote)
        if codigo_habilitacion is not None:
            stmt = stmt.where(Lote.codigo_habilitacion == codigo_habilitacion)
        if estado is not None:
            stmt = stmt.where(Lote.estado == estado)
        stmt = stmt.order_by(Lote.fecha_carga.desc(), Lote.id.desc()).limit(limit)
        return list(self._session.scalars(stmt).all())

    def update_estado(
        self,
        lote_id: int,
        *,
        estado: str,
        procesado_por: str | None,
        fecha_procesado: datetime | None,
    ) -> Lote:
        lote = self.get(lote_id)
        lote.estado = estado
        lote.procesado_por = procesado_por
        lote.fecha_procesado = fecha_procesado
        self._session.flush()
        return lote
