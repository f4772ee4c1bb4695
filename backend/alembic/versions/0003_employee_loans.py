"""employee loans and installments

Revision ID: 0003_employee_loans
Revises: 0002_petty_cash
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_employee_loans"
down_revision = "0002_petty_cash"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "loans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("loan_code", sa.String(length=32), nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("purpose", sa.String(length=256), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(8, 4), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("installment_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_repayable", sa.Numeric(14, 2), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("approval_date", sa.Date(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=256), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_loans_loan_code", "loans", ["loan_code"], unique=True)
    op.create_index("ix_loans_employee_id", "loans", ["employee_id"])
    op.create_index("ix_loans_status", "loans", ["status"])

    op.create_table(
        "loan_installments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("loan_id", sa.Integer(), sa.ForeignKey("loans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("payroll_ref", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.String(length=256), nullable=True),
        sa.UniqueConstraint("loan_id", "number", name="uq_loan_installments_loan_number"),
    )
    op.create_index("ix_loan_installments_loan_id", "loan_installments", ["loan_id"])
    op.create_index("ix_loan_installments_due_date", "loan_installments", ["due_date"])
    op.create_index("ix_loan_installments_status", "loan_installments", ["status"])


def downgrade():
    op.drop_index("ix_loan_installments_status", table_name="loan_installments")
    op.drop_index("ix_loan_installments_due_date", table_name="loan_installments")
    op.drop_index("ix_loan_installments_loan_id", table_name="loan_installments")
    op.drop_table("loan_installments")

    op.drop_index("ix_loans_status", table_name="loans")
    op.drop_index("ix_loans_employee_id", table_name="loans")
    op.drop_index("ix_loans_loan_code", table_name="loans")
    op.drop_table("loans")
