"""accounts, journal entries, audit log

Revision ID: 0001_accounts_journal
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_accounts_journal"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bank_name", sa.String(length=128), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("account_type", sa.String(length=32), nullable=False, server_default="current"),
        sa.Column("branch", sa.String(length=128), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="LKR"),
        sa.Column("description", sa.String(length=256), nullable=True),
        sa.Column("station_id", sa.String(length=64), nullable=True),
        sa.Column("opening_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_reconciled_at", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("current_balance >= 0", name="ck_accounts_balance_non_negative"),
    )
    op.create_index("ix_accounts_account_number", "accounts", ["account_number"], unique=True)
    op.create_index("ix_accounts_station_id", "accounts", ["station_id"])

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("related_account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("entry_type", sa.String(length=16), nullable=False),
        sa.Column("direction", sa.String(length=8), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(14, 2), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
        sa.Column("description", sa.String(length=256), nullable=False),
        sa.Column("reference", sa.String(length=64), nullable=True),
        sa.Column("transfer_ref", sa.String(length=64), nullable=True),
        sa.Column("reconciled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reconciled_at", sa.Date(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("account_id", "reference", name="uq_journal_entries_account_reference"),
        sa.CheckConstraint("amount > 0", name="ck_journal_entries_amount_positive"),
        sa.CheckConstraint("direction IN ('credit', 'debit')", name="ck_journal_entries_direction"),
    )
    op.create_index("ix_journal_entries_account_id", "journal_entries", ["account_id"])
    op.create_index("ix_journal_entries_date", "journal_entries", ["date"])
    op.create_index("ix_journal_entries_transfer_ref", "journal_entries", ["transfer_ref"])
    op.create_index("ix_journal_entries_account_date", "journal_entries", ["account_id", "date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("actor", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.Column("station_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor"])
    op.create_index("ix_audit_logs_station_id", "audit_logs", ["station_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade():
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_station_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_journal_entries_account_date", table_name="journal_entries")
    op.drop_index("ix_journal_entries_transfer_ref", table_name="journal_entries")
    op.drop_index("ix_journal_entries_date", table_name="journal_entries")
    op.drop_index("ix_journal_entries_account_id", table_name="journal_entries")
    op.drop_table("journal_entries")

    op.drop_index("ix_accounts_station_id", table_name="accounts")
    op.drop_index("ix_accounts_account_number", table_name="accounts")
    op.drop_table("accounts")
