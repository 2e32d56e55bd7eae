"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column(
            "role",
            sa.Enum("admin", "doctor", "receptionist", name="role_enum"),
            nullable=False,
            server_default="receptionist",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("actor_email", sa.String(length=320), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=True),
        sa.Column("request_id", sa.String(length=120), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_patient_id", "audit_logs", ["patient_id"])

    op.create_table(
        "tooth_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("tooth_id", sa.String(length=2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("healthy", "decayed", "planned", "completed", "missing", name="tooth_status"),
            nullable=False,
        ),
        *_audit_columns(),
        sa.UniqueConstraint("patient_id", "tooth_id"),
    )
    op.create_index("ix_tooth_entries_patient_id", "tooth_entries", ["patient_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("doctor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal_minor", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_minor", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_minor", sa.Integer(), nullable=False, server_default="0"),
        *_audit_columns(),
    )
    op.create_index("ix_invoices_patient_id", "invoices", ["patient_id"])
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("entry_type", sa.Enum("debit", "credit", name="ledger_entry_type"), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "treatment_start",
                "treatment_revert",
                "invoice",
                "charge_release",
                "payment",
                name="ledger_entry_category",
            ),
            nullable=False,
        ),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column(
            "method",
            sa.Enum("cash", "upi", "card", "insurance", name="payment_method"),
            nullable=True,
        ),
        sa.Column("reference", sa.String(length=120), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("related_invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("related_item_id", sa.Integer(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("amount_minor > 0", name="ck_ledger_amount_positive"),
    )
    op.create_index("ix_ledger_entries_patient_id", "ledger_entries", ["patient_id"])
    op.create_index("ix_ledger_entries_related_invoice_id", "ledger_entries", ["related_invoice_id"])
    op.create_index("ix_ledger_entries_related_item_id", "ledger_entries", ["related_item_id"])

    op.create_table(
        "treatment_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("tooth_id", sa.String(length=2), nullable=False),
        sa.Column("procedure_name", sa.String(length=200), nullable=False),
        sa.Column("cost_minor", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("proposed", "in_progress", "completed", "billed", name="treatment_item_status"),
            nullable=False,
            server_default="proposed",
        ),
        sa.Column("charge_entry_id", sa.Integer(), sa.ForeignKey("ledger_entries.id"), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_treatment_items_patient_id", "treatment_items", ["patient_id"])
    op.create_index("ix_treatment_items_invoice_id", "treatment_items", ["invoice_id"])

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column(
            "treatment_item_id",
            sa.Integer(),
            sa.ForeignKey("treatment_items.id"),
            nullable=False,
        ),
        sa.Column("procedure_name", sa.String(length=200), nullable=False),
        sa.Column("tooth_id", sa.String(length=2), nullable=False),
        sa.Column("cost_minor", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("treatment_item_id"),
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])


def downgrade() -> None:
    op.drop_index("ix_invoice_lines_invoice_id", table_name="invoice_lines")
    op.drop_table("invoice_lines")
    op.drop_index("ix_treatment_items_invoice_id", table_name="treatment_items")
    op.drop_index("ix_treatment_items_patient_id", table_name="treatment_items")
    op.drop_table("treatment_items")
    op.drop_index("ix_ledger_entries_related_item_id", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_related_invoice_id", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_patient_id", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_invoices_invoice_number", table_name="invoices")
    op.drop_index("ix_invoices_patient_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_tooth_entries_patient_id", table_name="tooth_entries")
    op.drop_table("tooth_entries")
    op.drop_index("ix_audit_logs_patient_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("patients")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    for enum_name in (
        "treatment_item_status",
        "payment_method",
        "ledger_entry_category",
        "ledger_entry_type",
        "tooth_status",
        "role_enum",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
