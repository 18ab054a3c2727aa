"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.furips_rows import Furips1Row, Furips2Row, FurtranRow
from db.models.lote import ALLOWED_LOTE_ESTADOS, Lote, LoteEstado, TipoEnvio

__all__ = [
    "Lote",
    "LoteEstado",
    "TipoEnvio",
    "ALLOWED_LOTE_ESTADOS",
    "Furips1Row",
    "Furips2Row",
    "FurtranRow",
]
