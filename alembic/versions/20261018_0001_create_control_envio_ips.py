"""create control_envio_ips table

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "control_envio_ips",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "codigo_habilitacion",
            sa.String(length=20),
            nullable=False,
            comment="10-character provider habilitación prefix",
        ),
        sa.Column("nombre_ips", sa.String(length=255), nullable=False),
        sa.Column(
            "nombre_archivo",
            sa.String(length=255),
            nullable=False,
            comment="Caller-supplied envío name (idEnvio)",
        ),
        sa.Column("tipo_envio", sa.String(length=20), nullable=False),
        sa.Column("cantidad_facturas", sa.Integer(), nullable=False),
        sa.Column("cantidad_items", sa.Integer(), nullable=False),
        sa.Column("valor_total", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "ruta_drive",
            sa.String(length=500),
            nullable=True,
            comment="Opaque object-storage folder path",
        ),
        sa.Column("estado", sa.String(length=20), nullable=False),
        sa.Column("fecha_carga", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fecha_carga_dia", sa.Date(), nullable=False),
        sa.Column("fecha_procesado", sa.DateTime(timezone=True), nullable=True),
        sa.Column("procesado_por", sa.String(length=255), nullable=True),
        sa.Column("cargado_por", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "codigo_habilitacion",
            "nombre_archivo",
            "fecha_carga_dia",
            name="uq_control_envio_ips_codigo_archivo_dia",
        ),
    )
    op.create_index(
        "ix_control_envio_ips_codigo_habilitacion",
        "control_envio_ips",
        ["codigo_habilitacion"],
        unique=False,
    )
    op.create_index("ix_control_envio_ips_fecha_carga", "control_envio_ips", ["fecha_carga"], unique=False)
    op.create_index("ix_control_envio_ips_estado", "control_envio_ips", ["estado"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_control_envio_ips_estado", table_name="control_envio_ips")
    op.drop_index("ix_control_envio_ips_fecha_carga", table_name="control_envio_ips")
    op.drop_index("ix_control_envio_ips_codigo_habilitacion", table_name="control_envio_ips")
    op.drop_table("control_envio_ips")
