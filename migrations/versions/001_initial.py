"""Initial schema: users, wallets, tournaments, registrations, deposits

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Tables:
  - users: Telegram players with KYC status
  - wallets / wallet_transactions: balance and its ledger
  - tournaments: schedule (epoch ms), fee, slots
  - registrations: one team per (tournament, user)
  - pending_deposits: payment proofs awaiting admin review, unique request_id
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("country", sa.String(2), nullable=False, server_default="IN"),
        sa.Column("kyc_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)

    # ── wallets ───────────────────────────────────────────────────────────────
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── tournaments ───────────────────────────────────────────────────────────
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("game", sa.String(100), nullable=True),
        sa.Column("match_type", sa.String(20), nullable=False, server_default="SQUAD"),
        sa.Column("entry_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("prize_pool", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("max_teams", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("registered_teams", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_time", sa.BigInteger(), nullable=False),
        sa.Column("registration_start_time", sa.BigInteger(), nullable=True),
        sa.Column("registration_end_time", sa.BigInteger(), nullable=True),
        sa.Column("room_id", sa.String(100), nullable=True),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── pending_deposits ──────────────────────────────────────────────────────
    op.create_table(
        "pending_deposits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("reference", sa.String(100), nullable=False),
        sa.Column("screenshot_url", sa.String(500), nullable=False),
        sa.Column("receipt_url", sa.String(500), nullable=True),
        sa.Column("bank_statement_url", sa.String(500), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.String(1000), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("verified_by", sa.BigInteger(), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_pending_deposits_request_id", "pending_deposits", ["request_id"], unique=True)
    op.create_index("ix_pending_deposits_user_id", "pending_deposits", ["user_id"])
    op.create_index("ix_pending_deposits_reference", "pending_deposits", ["reference"])

    # ── wallet_transactions ───────────────────────────────────────────────────
    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=True),
        sa.Column("deposit_id", sa.Integer(), sa.ForeignKey("pending_deposits.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_wallet_transactions_user_id", "wallet_transactions", ["user_id"])

    # ── registrations ─────────────────────────────────────────────────────────
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("team_name", sa.String(100), nullable=False),
        sa.Column("player_ids", sa.JSON(), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False, server_default="wallet"),
        sa.Column("payment_status", sa.String(30), nullable=False, server_default="completed"),
        sa.Column("registered_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_registration_tournament_user"),
    )


def downgrade() -> None:
    op.drop_table("registrations")
    op.drop_index("ix_wallet_transactions_user_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_index("ix_pending_deposits_reference", table_name="pending_deposits")
    op.drop_index("ix_pending_deposits_user_id", table_name="pending_deposits")
    op.drop_index("ix_pending_deposits_request_id", table_name="pending_deposits")
    op.drop_table("pending_deposits")
    op.drop_table("tournaments")
    op.drop_table("wallets")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
