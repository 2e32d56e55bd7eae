"""add procedure catalog

Revision ID: 0002_procedures
Revises: 0001_initial
Create Date: 2026-10-20 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_procedures"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if not inspector.has_table("procedures"):
        op.create_table(
            "procedures",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("code", sa.String(length=32), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("price_minor", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        )
        op.create_index("ix_procedures_code", "procedures", ["code"], unique=True)

    columns = {column["name"] for column in inspector.get_columns("treatment_items")}
    if "procedure_id" not in columns:
        with op.batch_alter_table("treatment_items") as batch:
            batch.add_column(sa.Column("procedure_id", sa.Integer(), nullable=True))
            batch.create_foreign_key(
                "fk_treatment_items_procedure_id", "procedures", ["procedure_id"], ["id"]
            )
            batch.create_index("ix_treatment_items_procedure_id", ["procedure_id"])


def downgrade() -> None:
    with op.batch_alter_table("treatment_items") as batch:
        batch.drop_index("ix_treatment_items_procedure_id")
        batch.drop_constraint("fk_treatment_items_procedure_id", type_="foreignkey")
        batch.drop_column("procedure_id")
    op.drop_index("ix_procedures_code", table_name="procedures")
    op.drop_table("procedures")
