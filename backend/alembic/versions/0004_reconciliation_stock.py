"""reconciliation history, fuel tanks, stock movements

Revision ID: 0004_reconciliation_stock
Revises: 0003_employee_loans
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0004_reconciliation_stock"
down_revision = "0003_employee_loans"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "account_reconciliations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("as_of", sa.Date(), nullable=False),
        sa.Column("statement_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("system_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("difference", sa.Numeric(14, 2), nullable=False),
        sa.Column("performed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_account_reconciliations_account_id", "account_reconciliations", ["account_id"])
    op.create_index("ix_account_reconciliations_as_of", "account_reconciliations", ["as_of"])

    op.create_table(
        "fuel_tanks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tank_code", sa.String(length=32), nullable=False),
        sa.Column("station_id", sa.String(length=64), nullable=False),
        sa.Column("fuel_type", sa.String(length=32), nullable=False),
        sa.Column("capacity", sa.Numeric(14, 3), nullable=False),
        sa.Column("current_volume", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("cost_price", sa.Numeric(14, 4), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_stock_update", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("current_volume >= 0 AND current_volume <= capacity", name="ck_fuel_tanks_volume_range"),
    )
    op.create_index("ix_fuel_tanks_tank_code", "fuel_tanks", ["tank_code"], unique=True)
    op.create_index("ix_fuel_tanks_station_id", "fuel_tanks", ["station_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tank_id", sa.Integer(), sa.ForeignKey("fuel_tanks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("volume", sa.Numeric(14, 3), nullable=False),
        sa.Column("cost_price", sa.Numeric(14, 4), nullable=True),
        sa.Column("volume_after", sa.Numeric(14, 3), nullable=False),
        sa.Column("cost_price_after", sa.Numeric(14, 4), nullable=False),
        sa.Column("reference", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_stock_movements_tank_id", "stock_movements", ["tank_id"])


def downgrade():
    op.drop_index("ix_stock_movements_tank_id", table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index("ix_fuel_tanks_station_id", table_name="fuel_tanks")
    op.drop_index("ix_fuel_tanks_tank_code", table_name="fuel_tanks")
    op.drop_table("fuel_tanks")

    op.drop_index("ix_account_reconciliations_as_of", table_name="account_reconciliations")
    op.drop_index("ix_account_reconciliations_account_id", table_name="account_reconciliations")
    op.drop_table("account_reconciliations")
