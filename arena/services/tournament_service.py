"""
Tournament service: database operations for tournaments and registrations.

All functions receive an AsyncSession parameter and are plain async functions
(no class coupling) for easy unit testing. None of them commit; the caller
owns the transaction.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from arena.models.models import (
    MatchType,
    PaymentStatus,
    Registration,
    Tournament,
)
from arena.services.errors import SlotsFull


# ── Tournament ────────────────────────────────────────────────────────────────

async def create_tournament(
    session: AsyncSession,
    name: str,
    start_time: int,              # epoch ms
    max_teams: int,
    entry_fee: float = 0.0,
    match_type: str = MatchType.SQUAD,
    currency: str = "INR",
    prize_pool: float = 0.0,
    registration_start_time: Optional[int] = None,
    registration_end_time: Optional[int] = None,
    game: Optional[str] = None,
) -> Tournament:
    t = Tournament(
        name=name,
        game=game,
        match_type=match_type,
        entry_fee=entry_fee,
        prize_pool=prize_pool,
        currency=currency,
        max_teams=max_teams,
        registered_teams=0,
        start_time=start_time,
        registration_start_time=registration_start_time,
        registration_end_time=registration_end_time,
    )
    session.add(t)
    await session.flush()
    return t


async def get_tournament(
    session: AsyncSession,
    tournament_id: int,
    fresh: bool = False,
) -> Optional[Tournament]:
    """
    Load a tournament. With fresh=True the row is re-read from the database
    even if the session already holds it, so counters are never stale.
    """
    q = select(Tournament).where(Tournament.id == tournament_id)
    if fresh:
        q = q.execution_options(populate_existing=True)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def list_open_tournaments(session: AsyncSession, now: int) -> List[Tournament]:
    """Tournaments whose registration window contains `now`, soonest first."""
    closes_at = Tournament.registration_end_time
    result = await session.execute(
        select(Tournament)
        .where(
            or_(
                Tournament.registration_start_time.is_(None),
                Tournament.registration_start_time <= now,
            ),
            or_(
                closes_at > now,
                and_(closes_at.is_(None), Tournament.start_time > now),
            ),
        )
        .order_by(Tournament.start_time.asc())
    )
    return list(result.scalars().all())


# ── Registrations ─────────────────────────────────────────────────────────────

async def get_registration_status(
    session: AsyncSession,
    tournament_id: int,
    user_id: int,             # users.id (not telegram_id)
) -> bool:
    """True when the user already has a registration for the tournament."""
    result = await session.execute(
        select(Registration.id).where(
            Registration.tournament_id == tournament_id,
            Registration.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def create_registration(
    session: AsyncSession,
    tournament_id: int,
    user_id: int,
    team_name: str,
    player_ids: Sequence[str],
    payment_method: str,
    payment_status: str = PaymentStatus.COMPLETED,
) -> Registration:
    """Insert the registration row. The unique constraint rejects duplicates on flush."""
    reg = Registration(
        tournament_id=tournament_id,
        user_id=user_id,
        team_name=team_name.strip(),
        player_ids=[pid.strip() for pid in player_ids],
        payment_method=payment_method,
        payment_status=payment_status,
    )
    session.add(reg)
    await session.flush()
    return reg


async def increment_registered_teams(session: AsyncSession, tournament_id: int) -> None:
    """
    Atomic compare-and-increment of the team counter.

    Only a row with a free slot is updated; SlotsFull is raised otherwise.
    """
    result = await session.execute(
        update(Tournament)
        .where(
            Tournament.id == tournament_id,
            Tournament.registered_teams < Tournament.max_teams,
        )
        .values(registered_teams=Tournament.registered_teams + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise SlotsFull()


async def list_user_registrations(
    session: AsyncSession,
    user_id: int,
) -> List[Registration]:
    result = await session.execute(
        select(Registration)
        .where(Registration.user_id == user_id)
        .options(selectinload(Registration.tournament))
        .order_by(Registration.registered_at.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())


async def get_registration(session: AsyncSession, registration_id: int) -> Optional[Registration]:
    result = await session.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .options(selectinload(Registration.tournament))
    )
    return result.scalar_one_or_none()
