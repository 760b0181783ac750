"""
Registration prerequisite evaluator.

Pure function over snapshots: the tournament, the user's wallet balance and
KYC status, and the current time in epoch milliseconds. Nothing here reads the
clock or the database so the result is fully determined by the arguments.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Protocol

from arena.services.money import format_amount_tidy


class TournamentSnapshot(Protocol):
    entry_fee: float
    currency: str
    max_teams: int
    registered_teams: int
    start_time: int
    registration_start_time: Optional[int]
    registration_end_time: Optional[int]


@dataclass(frozen=True)
class PrerequisiteResult:
    has_sufficient_balance: bool
    is_kyc_verified: bool
    registration_open: bool
    slots_available: bool
    entry_fee: float = 0.0
    wallet_balance: float = 0.0
    currency: str = "INR"

    @property
    def all_requirements_met(self) -> bool:
        return (
            self.has_sufficient_balance
            and self.is_kyc_verified
            and self.registration_open
            and self.slots_available
        )

    def failure_reasons(self) -> list[str]:
        """One sentence per failed requirement, in display order."""
        reasons = []
        if not self.is_kyc_verified:
            reasons.append("KYC verification is required before registering.")
        if not self.has_sufficient_balance:
            reasons.append(
                f"Insufficient balance: entry fee is {format_amount_tidy(self.entry_fee, self.currency)}, "
                f"wallet has {format_amount_tidy(self.wallet_balance, self.currency)}."
            )
        if not self.registration_open:
            reasons.append("Registration window is closed.")
        if not self.slots_available:
            reasons.append("No slots available.")
        return reasons


def now_ms() -> int:
    return int(time.time() * 1000)


def is_registration_open(tournament: TournamentSnapshot, now: int) -> bool:
    # Missing window bounds fall back to "always opened" and "closes at start".
    opens_at = tournament.registration_start_time
    closes_at = (
        tournament.registration_end_time
        if tournament.registration_end_time is not None
        else tournament.start_time
    )
    return (opens_at is None or now >= opens_at) and now < closes_at


def has_free_slots(tournament: TournamentSnapshot) -> bool:
    return tournament.max_teams > 0 and tournament.registered_teams < tournament.max_teams


def can_start_registration(tournament: TournamentSnapshot, now: int) -> bool:
    """Whether to offer the Register button; user-specific checks run at REVIEW."""
    return is_registration_open(tournament, now) and has_free_slots(tournament)


def evaluate_prerequisites(
    tournament: TournamentSnapshot,
    wallet_balance: float,
    kyc_status: Optional[str],
    now: int,
) -> PrerequisiteResult:
    return PrerequisiteResult(
        has_sufficient_balance=wallet_balance >= tournament.entry_fee,
        is_kyc_verified=(kyc_status or "").upper() == "VERIFIED",
        registration_open=is_registration_open(tournament, now),
        slots_available=has_free_slots(tournament),
        entry_fee=tournament.entry_fee,
        wallet_balance=wallet_balance,
        currency=getattr(tournament, "currency", None) or "INR",
    )
