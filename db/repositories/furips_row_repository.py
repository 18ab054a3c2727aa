"""
Detail-row repository: chunked bulk inserts into the per-kind tables.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session

from db.models.furips_rows import Furips1Row, Furips2Row, FurtranRow

ROW_MODELS_BY_KIND: dict[str, type[Furips1Row] | type[Furips2Row] | type[FurtranRow]] = {
    "FURIPS1": Furips1Row,
    "FURIPS2": Furips2Row,
    "FURTRAN": FurtranRow,
}


class FuripsRowRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def bulk_insert(
        self,
        kind: str,
        *,
        numero_lote: int,
        usuario: str | None,
        rows: Sequence[Mapping[str, Any]],
        batch_size: int = 500,
    ) -> int:
        """
        Insert already-coerced rows for one file kind under ``numero_lote``.

        Uses Core INSERT with chunking instead of ORM per-row add/flush.
        Returns the number of rows written.
        """

        model = ROW_MODELS_BY_KIND.get(kind)
        if model is None:
            raise ValueError(f"Unknown file kind: {kind}")
        if not rows:
            return 0

        written = 0
        for chunk_start in range(0, len(rows), batch_size):
            chunk = rows[chunk_start : chunk_start + batch_size]
            values = [
                {**row, "numero_lote": numero_lote, "usuario": usuario}
                for row in chunk
            ]
            self._session.execute(insert(model), values)
            written += len(values)

        return written

    def count_for_lote(self, kind: str, numero_lote: int) -> int:
        model = ROW_MODELS_BY_KIND[kind]
        stmt = select(func.count()).select_from(model).where(model.numero_lote == numero_lote)
        return int(self._session.scalar(stmt) or 0)
