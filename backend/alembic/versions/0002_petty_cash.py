"""petty cash balances and entries

Revision ID: 0002_petty_cash
Revises: 0001_accounts_journal
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_petty_cash"
down_revision = "0001_accounts_journal"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "petty_cash_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("station_id", sa.String(length=64), nullable=False),
        sa.Column("current_balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("min_limit", sa.Numeric(14, 2), nullable=False, server_default="2000"),
        sa.Column("max_limit", sa.Numeric(14, 2), nullable=False, server_default="10000"),
        sa.Column("last_replenishment_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("last_replenishment_date", sa.Date(), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("current_balance >= 0", name="ck_petty_cash_balance_non_negative"),
    )
    op.create_index("ix_petty_cash_accounts_station_id", "petty_cash_accounts", ["station_id"], unique=True)

    op.create_table(
        "petty_cash_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_code", sa.String(length=32), nullable=False),
        sa.Column("station_id", sa.String(length=64), nullable=False),
        sa.Column("entry_type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=256), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("approval_status", sa.String(length=16), nullable=False, server_default="Pending"),
        sa.Column("requested_by", sa.String(length=64), nullable=False),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("bank_account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("bank_entry_id", sa.Integer(), sa.ForeignKey("journal_entries.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_petty_cash_entries_entry_code", "petty_cash_entries", ["entry_code"], unique=True)
    op.create_index("ix_petty_cash_entries_station_id", "petty_cash_entries", ["station_id"])
    op.create_index("ix_petty_cash_entries_station_date", "petty_cash_entries", ["station_id", "date"])
    op.create_index("ix_petty_cash_entries_status", "petty_cash_entries", ["approval_status"])


def downgrade():
    op.drop_index("ix_petty_cash_entries_status", table_name="petty_cash_entries")
    op.drop_index("ix_petty_cash_entries_station_date", table_name="petty_cash_entries")
    op.drop_index("ix_petty_cash_entries_station_id", table_name="petty_cash_entries")
    op.drop_index("ix_petty_cash_entries_entry_code", table_name="petty_cash_entries")
    op.drop_table("petty_cash_entries")

    op.drop_index("ix_petty_cash_accounts_station_id", table_name="petty_cash_accounts")
    op.drop_table("petty_cash_accounts")
