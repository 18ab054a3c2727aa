"""create furips1, furips2 and furtran detail tables

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def _lote_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("numero_lote", sa.Integer(), nullable=False),
        sa.Column("usuario", sa.String(length=255), nullable=True),
        sa.Column("numero_linea", sa.Integer(), nullable=False),
    ]


def _lote_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["numero_lote"], ["control_envio_ips.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "furips1",
        *_lote_columns(),
        sa.Column("numero_factura", sa.String(length=20), nullable=True),
        sa.Column("numero_consecutivo_reclamacion", sa.String(length=12), nullable=True),
        sa.Column("codigo_habilitacion", sa.String(length=12), nullable=True),
        sa.Column("tipo_documento_victima", sa.String(length=2), nullable=True),
        sa.Column("numero_documento_victima", sa.String(length=16), nullable=True),
        sa.Column("fecha_nacimiento_victima", sa.Date(), nullable=True),
        sa.Column("condicion_victima", sa.String(length=2), nullable=True),
        sa.Column("naturaleza_evento", sa.String(length=2), nullable=True),
        sa.Column("fecha_ocurrencia_evento", sa.Date(), nullable=True),
        sa.Column("hora_ocurrencia_evento", sa.Time(), nullable=True),
        sa.Column("estado_aseguramiento", sa.String(length=2), nullable=True),
        sa.Column("placa", sa.String(length=10), nullable=True),
        sa.Column("numero_poliza_soat", sa.String(length=20), nullable=True),
        sa.Column("numero_radicado_siras", sa.String(length=20), nullable=True),
        sa.Column("fecha_ingreso", sa.Date(), nullable=True),
        sa.Column("fecha_egreso", sa.Date(), nullable=True),
        sa.Column("codigo_diagnostico_principal_ingreso", sa.String(length=4), nullable=True),
        sa.Column("total_facturado_gastos_medicos", sa.Numeric(15, 2), nullable=True),
        sa.Column("total_reclamado_gastos_medicos", sa.Numeric(15, 2), nullable=True),
        sa.Column("total_facturado_transporte", sa.Numeric(15, 2), nullable=True),
        sa.Column("total_reclamado_transporte", sa.Numeric(15, 2), nullable=True),
        sa.Column("verificado_2103", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("preauditoria", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("verificado_2108", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("verificado_soat", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("campos", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _lote_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_furips1_numero_lote", "furips1", ["numero_lote"], unique=False)
    op.create_index("ix_furips1_numero_factura", "furips1", ["numero_factura"], unique=False)

    op.create_table(
        "furips2",
        *_lote_columns(),
        sa.Column("numero_factura", sa.String(length=20), nullable=True),
        sa.Column("numero_consecutivo_reclamacion", sa.String(length=12), nullable=True),
        sa.Column("tipo_servicio", sa.String(length=1), nullable=True),
        sa.Column("codigo_servicio", sa.String(length=15), nullable=True),
        sa.Column("descripcion_servicio", sa.String(length=80), nullable=True),
        sa.Column("cantidad_servicios", sa.Integer(), nullable=True),
        sa.Column("valor_unitario", sa.Numeric(15, 2), nullable=True),
        sa.Column("valor_total_facturado", sa.Numeric(15, 2), nullable=True),
        sa.Column("valor_total_reclamado", sa.Numeric(15, 2), nullable=True),
        _lote_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_furips2_numero_lote", "furips2", ["numero_lote"], unique=False)
    op.create_index("ix_furips2_numero_factura", "furips2", ["numero_factura"], unique=False)

    op.create_table(
        "furtran",
        *_lote_columns(),
        sa.Column("numero_factura", sa.String(length=20), nullable=True),
        sa.Column("codigo_habilitacion", sa.String(length=12), nullable=True),
        sa.Column("tipo_documento_reclamante", sa.String(length=2), nullable=True),
        sa.Column("numero_documento_reclamante", sa.String(length=16), nullable=True),
        sa.Column("placa_vehiculo_traslado", sa.String(length=10), nullable=True),
        sa.Column("numero_documento_victima", sa.String(length=16), nullable=True),
        sa.Column("fecha_traslado_victima", sa.Date(), nullable=True),
        sa.Column("hora_traslado_victima", sa.Time(), nullable=True),
        sa.Column("condicion_victima", sa.Integer(), nullable=True),
        sa.Column("estado_aseguramiento", sa.Integer(), nullable=True),
        sa.Column("numero_radicado_siras", sa.String(length=20), nullable=True),
        sa.Column("valor_facturado", sa.Numeric(15, 2), nullable=True),
        sa.Column("valor_reclamado", sa.Numeric(15, 2), nullable=True),
        sa.Column("campos", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _lote_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_furtran_numero_lote", "furtran", ["numero_lote"], unique=False)
    op.create_index("ix_furtran_numero_factura", "furtran", ["numero_factura"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_furtran_numero_factura", table_name="furtran")
    op.drop_index("ix_furtran_numero_lote", table_name="furtran")
    op.drop_table("furtran")
    op.drop_index("ix_furips2_numero_factura", table_name="furips2")
    op.drop_index("ix_furips2_numero_lote", table_name="furips2")
    op.drop_table("furips2")
    op.drop_index("ix_furips1_numero_factura", table_name="furips1")
    op.drop_index("ix_furips1_numero_lote", table_name="furips1")
    op.drop_table("furips1")
