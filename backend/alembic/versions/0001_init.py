"""init: users, parties, loans, entries, day closes, audit

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="viewer"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("party_name", sa.String(length=128), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("address", sa.String(length=256), nullable=True),
        sa.Column("mobile1", sa.String(length=32), nullable=True),
        sa.Column("mobile2", sa.String(length=32), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("reference_mobile1", sa.String(length=32), nullable=True),
        sa.Column("reference_mobile2", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
    )
    op.create_index("ix_parties_party_name", "parties", ["party_name"], unique=False)
    op.create_index("ix_parties_account_number", "parties", ["account_number"], unique=True)

    op.create_table(
        "loans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("loan_date", sa.Date(), nullable=False),
        sa.Column("loan_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("interest", sa.Numeric(8, 4), nullable=False),
        sa.Column("balance_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_interest", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_interest_received", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("binned_balance_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("binned_balance_interest", sa.Numeric(14, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.CheckConstraint("balance_amount >= 0", name="ck_loans_balance_amount_nonneg"),
        sa.CheckConstraint("balance_interest >= 0", name="ck_loans_balance_interest_nonneg"),
    )
    op.create_index("ix_loans_party_id", "loans", ["party_id"], unique=False)
    op.create_index("ix_loans_loan_date", "loans", ["loan_date"], unique=False)
    op.create_index("ix_loans_deleted_at", "loans", ["deleted_at"], unique=False)

    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("loan_id", sa.Integer(), sa.ForeignKey("loans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("balance_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("interest_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("received_date", sa.Date(), nullable=True),
        sa.Column("received_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("received_interest", sa.Numeric(14, 2), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
    )
    op.create_index("ix_entries_loan_id", "entries", ["loan_id"], unique=False)
    op.create_index("ix_entries_entry_date", "entries", ["entry_date"], unique=False)
    op.create_index("ix_entries_deleted_at", "entries", ["deleted_at"], unique=False)

    op.create_table(
        "day_closes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("closed_on", sa.Date(), nullable=False),
        sa.Column("closed_by", sa.String(length=64), nullable=False),
        sa.Column("closed_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
    )
    op.create_index("ix_day_closes_closed_on", "day_closes", ["closed_on"], unique=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)
    op.create_index("ix_audit_logs_username", "audit_logs", ["username"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)

def downgrade():
    op.drop_table("audit_logs")
    op.drop_index("ix_day_closes_closed_on", table_name="day_closes")
    op.drop_table("day_closes")
    op.drop_index("ix_entries_deleted_at", table_name="entries")
    op.drop_index("ix_entries_entry_date", table_name="entries")
    op.drop_index("ix_entries_loan_id", table_name="entries")
    op.drop_table("entries")
    op.drop_index("ix_loans_deleted_at", table_name="loans")
    op.drop_index("ix_loans_loan_date", table_name="loans")
    op.drop_index("ix_loans_party_id", table_name="loans")
    op.drop_table("loans")
    op.drop_index("ix_parties_account_number", table_name="parties")
    op.drop_index("ix_parties_party_name", table_name="parties")
    op.drop_table("parties")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
