"""Initial stock ledger, cutting, and workforce tables

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "stock_items",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(64), nullable=True),
        sa.Column("material", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("quantity_milli", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_threshold_milli", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("source_item_id", sa.String(64), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity_milli >= 0", name="ck_stock_items_quantity_non_negative"),
        sa.CheckConstraint("min_threshold_milli >= 0", name="ck_stock_items_threshold_non_negative"),
        sa.ForeignKeyConstraint(["source_item_id"], ["stock_items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("stock_items", schema=None) as batch_op:
        batch_op.create_index("ix_stock_items_kind", ["kind"], unique=False)
        batch_op.create_index("ix_stock_items_source_item_id", ["source_item_id"], unique=False)
        batch_op.create_index("ix_stock_items_kind_name", ["kind", "name"], unique=False)

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("item_id", sa.String(64), nullable=False),
        sa.Column("item_kind", sa.String(32), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("quantity_delta_milli", sa.BigInteger(), nullable=False),
        sa.Column("quantity_before_milli", sa.BigInteger(), nullable=False),
        sa.Column("quantity_after_milli", sa.BigInteger(), nullable=False),
        sa.Column("actor", sa.String(128), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint(
            "quantity_after_milli = quantity_before_milli + quantity_delta_milli",
            name="ck_ledger_tx_balanced",
        ),
        sa.ForeignKeyConstraint(["item_id"], ["stock_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key", name="uq_ledger_transactions_idempotency_key"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("ledger_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_ledger_transactions_timestamp", ["timestamp"], unique=False)
        batch_op.create_index("ix_ledger_transactions_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_ledger_transactions_item_kind", ["item_kind"], unique=False)
        batch_op.create_index("ix_ledger_transactions_kind", ["kind"], unique=False)
        batch_op.create_index("ix_ledger_tx_timestamp_id", ["timestamp", "id"], unique=False)
        batch_op.create_index("ix_ledger_tx_item_timestamp", ["item_id", "timestamp"], unique=False)
        batch_op.create_index("ix_ledger_tx_kind_timestamp", ["kind", "timestamp"], unique=False)
        batch_op.create_index("ix_ledger_tx_actor_timestamp", ["actor", "timestamp"], unique=False)

    op.create_table(
        "cutting_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("fabric_id", sa.String(64), nullable=False),
        sa.Column("cut_piece_id", sa.String(64), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("piece_length_milli", sa.BigInteger(), nullable=False),
        sa.Column("piece_width_milli", sa.BigInteger(), nullable=False),
        sa.Column("piece_count", sa.Integer(), nullable=False),
        sa.Column("total_area_milli", sa.BigInteger(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("usage_location", sa.String(128), nullable=True),
        sa.Column("actor", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["fabric_id"], ["stock_items.id"]),
        sa.ForeignKeyConstraint(["cut_piece_id"], ["stock_items.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["ledger_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("cutting_records", schema=None) as batch_op:
        batch_op.create_index("ix_cutting_records_fabric_id", ["fabric_id"], unique=False)
        batch_op.create_index("ix_cutting_records_cut_piece_id", ["cut_piece_id"], unique=False)
        batch_op.create_index("ix_cutting_records_fabric_created", ["fabric_id", "created_at"], unique=False)

    op.create_table(
        "id_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_id_sequences_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("mobile", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_code", name="uq_employees_code"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("employees", schema=None) as batch_op:
        batch_op.create_index("ix_employees_role_active", ["role", "is_active"], unique=False)

    op.create_table(
        "tailor_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cut_piece_id", sa.String(64), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_produced", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("manufactured_item_id", sa.String(64), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(128), nullable=False),
        sa.Column("closed_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("quantity > 0", name="ck_tailor_assignments_quantity_positive"),
        sa.ForeignKeyConstraint(["cut_piece_id"], ["stock_items.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["manufactured_item_id"], ["stock_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("tailor_assignments", schema=None) as batch_op:
        batch_op.create_index("ix_tailor_assignments_cut_piece_id", ["cut_piece_id"], unique=False)
        batch_op.create_index("ix_tailor_assignments_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_tailor_assignments_status", ["status"], unique=False)
        batch_op.create_index("ix_tailor_assignments_employee_status", ["employee_id", "status"], unique=False)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("check_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("work_minutes", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("attendance_records", schema=None) as batch_op:
        batch_op.create_index("ix_attendance_records_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_attendance_work_date", ["work_date"], unique=False)


def downgrade():
    op.drop_table("attendance_records")
    op.drop_table("tailor_assignments")
    op.drop_table("employees")
    op.drop_table("id_sequences")
    op.drop_table("cutting_records")
    op.drop_table("ledger_transactions")
    op.drop_table("stock_items")
