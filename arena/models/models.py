"""
ORM models for the ARENA tournament platform.

Domain overview
---------------
User: Telegram user / player, carries the KYC status
  ├─ Wallet: cash balance used to pay entry fees
  │    └─ WalletTransaction: ledger row per debit / credit
  ├─ Registration: one team entry into a Tournament
  └─ PendingDeposit: payment proof awaiting admin review
Tournament: a scheduled match with entry fee and team slots

Timestamps that drive registration windows are stored as epoch milliseconds.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arena.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


class MatchType:
    SOLO   = "SOLO"
    DUO    = "DUO"
    TRIO   = "TRIO"
    SQUAD  = "SQUAD"
    CUSTOM = "CUSTOM"

    TEAM_SIZES = {
        SOLO:  1,
        DUO:   2,
        TRIO:  3,
        SQUAD: 4,
    }


class TournamentStatus:
    """Computed from the clock, never stored."""
    UPCOMING    = "UPCOMING"
    STARTS_SOON = "STARTS_SOON"
    ROOM_OPEN   = "ROOM_OPEN"
    ONGOING     = "ONGOING"
    COMPLETED   = "COMPLETED"

    EMOJI = {
        UPCOMING:    "🗓",
        STARTS_SOON: "⏳",
        ROOM_OPEN:   "🚪",
        ONGOING:     "🔴",
        COMPLETED:   "🏆",
    }


class KycStatus:
    PENDING  = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    ALL = (PENDING, VERIFIED, REJECTED)


class PaymentStatus:
    COMPLETED    = "completed"
    NOT_REQUIRED = "not_required"


class DepositStatus:
    PENDING  = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    EMOJI = {
        PENDING:  "⏳",
        APPROVED: "✅",
        REJECTED: "❌",
    }


class TransactionType:
    ENTRY_FEE = "entry_fee"
    DEPOSIT   = "deposit"


# ─────────────────────────── Models ───────────────────────────────────────────

class User(Base):
    """Telegram user / player."""
    __tablename__ = "users"

    id:          Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int]           = mapped_column(BigInteger, unique=True, index=True)
    username:    Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name:  Mapped[str]           = mapped_column(String(255))
    last_name:   Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country:     Mapped[str]           = mapped_column(String(2), default="IN")
    kyc_status:  Mapped[str]           = mapped_column(String(20), default=KycStatus.PENDING)
    created_at:  Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    wallet: Mapped[Optional["Wallet"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    registrations: Mapped[List["Registration"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        parts = [self.first_name]
        if self.last_name:
            parts.append(self.last_name)
        return " ".join(parts)


class Wallet(Base):
    __tablename__ = "wallets"

    id:         Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id:    Mapped[int]      = mapped_column(ForeignKey("users.id"), unique=True)
    balance:    Mapped[float]    = mapped_column(Float, default=0.0)
    currency:   Mapped[str]      = mapped_column(String(3), default="INR")
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    user: Mapped["User"] = relationship(back_populates="wallet")


class WalletTransaction(Base):
    """Ledger entry. Debits are stored with a negative amount."""
    __tablename__ = "wallet_transactions"

    id:            Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id:       Mapped[int]           = mapped_column(ForeignKey("users.id"), index=True)
    type:          Mapped[str]           = mapped_column(String(30))   # TransactionType.*
    amount:        Mapped[float]         = mapped_column(Float)
    currency:      Mapped[str]           = mapped_column(String(3), default="INR")
    tournament_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tournaments.id"), nullable=True)
    deposit_id:    Mapped[Optional[int]] = mapped_column(ForeignKey("pending_deposits.id"), nullable=True)
    created_at:    Mapped[datetime]      = mapped_column(DateTime, default=func.now())


class Tournament(Base):
    """A scheduled match users can register a team for."""
    __tablename__ = "tournaments"

    id:                      Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:                    Mapped[str]           = mapped_column(String(255))
    game:                    Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    match_type:              Mapped[str]           = mapped_column(String(20), default=MatchType.SQUAD)
    entry_fee:               Mapped[float]         = mapped_column(Float, default=0.0)
    prize_pool:              Mapped[float]         = mapped_column(Float, default=0.0)
    currency:                Mapped[str]           = mapped_column(String(3), default="INR")
    max_teams:               Mapped[int]           = mapped_column(Integer, default=0)
    registered_teams:        Mapped[int]           = mapped_column(Integer, default=0)
    start_time:              Mapped[int]           = mapped_column(BigInteger)               # epoch ms
    registration_start_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    registration_end_time:   Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    room_id:                 Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    completed_at:            Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at:              Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    registrations: Mapped[List["Registration"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan"
    )

    @property
    def team_size(self) -> int:
        if self.match_type == MatchType.CUSTOM:
            return max(self.max_teams, 1)
        return MatchType.TEAM_SIZES.get((self.match_type or "").upper(), 4)

    @property
    def slots_left(self) -> int:
        return max(self.max_teams - self.registered_teams, 0)


class Registration(Base):
    """A team entry. One per (tournament, user)."""
    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_registration_tournament_user"),
    )

    id:             Mapped[int]       = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id:  Mapped[int]       = mapped_column(ForeignKey("tournaments.id"))
    user_id:        Mapped[int]       = mapped_column(ForeignKey("users.id"))
    team_name:      Mapped[str]       = mapped_column(String(100))
    player_ids:     Mapped[List[str]] = mapped_column(JSON, default=list)
    payment_method: Mapped[str]       = mapped_column(String(30), default="wallet")
    payment_status: Mapped[str]       = mapped_column(String(30), default=PaymentStatus.COMPLETED)
    registered_at:  Mapped[datetime]  = mapped_column(DateTime, default=func.now())

    user:       Mapped["User"]       = relationship(back_populates="registrations")
    tournament: Mapped["Tournament"] = relationship(back_populates="registrations")


class PendingDeposit(Base):
    """
    Payment proof submitted by a user.
    Created once per client request id; status is changed only by admins.
    """
    __tablename__ = "pending_deposits"

    id:                 Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id:         Mapped[str]                = mapped_column(String(36), unique=True, index=True)
    user_id:            Mapped[int]                = mapped_column(ForeignKey("users.id"), index=True)
    amount:             Mapped[float]              = mapped_column(Float)
    currency:           Mapped[str]                = mapped_column(String(3))
    payment_method:     Mapped[str]                = mapped_column(String(30))
    reference:          Mapped[str]                = mapped_column(String(100), index=True)
    screenshot_url:     Mapped[str]                = mapped_column(String(500))
    receipt_url:        Mapped[Optional[str]]      = mapped_column(String(500), nullable=True)
    bank_statement_url: Mapped[Optional[str]]      = mapped_column(String(500), nullable=True)
    details:            Mapped[dict]               = mapped_column(JSON, default=dict)
    status:             Mapped[str]                = mapped_column(String(20), default=DepositStatus.PENDING)
    admin_notes:        Mapped[Optional[str]]      = mapped_column(String(1000), nullable=True)
    rejection_reason:   Mapped[Optional[str]]      = mapped_column(String(500), nullable=True)
    verified_by:        Mapped[Optional[int]]      = mapped_column(BigInteger, nullable=True)  # admin telegram_id
    verified_at:        Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at:         Mapped[datetime]           = mapped_column(DateTime, default=func.now())

    user: Mapped["User"] = relationship()

    @property
    def status_emoji(self) -> str:
        return DepositStatus.EMOJI.get(self.status, "❓")


# ─────────────────────────── Derived state ────────────────────────────────────

def compute_status(tournament: Tournament, now: int) -> str:
    """Tournament lifecycle status at epoch-ms `now`."""
    start = tournament.start_time
    if now < start - 10 * MINUTE_MS:
        return TournamentStatus.UPCOMING
    if now < start:
        return TournamentStatus.STARTS_SOON
    if tournament.room_id is not None and tournament.completed_at is None:
        return TournamentStatus.ROOM_OPEN
    end = tournament.completed_at if tournament.completed_at is not None else start + 24 * HOUR_MS
    if now < end:
        return TournamentStatus.ONGOING
    return TournamentStatus.COMPLETED
