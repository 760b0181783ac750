"""
Registration submission.

`submit_registration` re-checks every prerequisite against freshly read rows
and then debits the entry fee, creates the registration and takes a slot, all
inside one database transaction. Either everything is committed or nothing is:
a failed step rolls back the debit with it.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from arena.models.models import PaymentStatus, Registration, Tournament
from arena.services.errors import (
    AlreadyRegistered,
    ArenaError,
    FlowValidationError,
    InsufficientBalance,
    PrerequisiteNotMet,
    RemoteUnavailable,
    SlotsFull,
    TournamentNotFound,
    UnknownError,
)
from arena.services.prerequisites import evaluate_prerequisites, now_ms
from arena.services.tournament_service import (
    create_registration,
    get_registration_status,
    get_tournament,
    increment_registered_teams,
)
from arena.services.user_service import get_kyc_status
from arena.services.wallet_service import debit_wallet, get_wallet_balance
from arena.states.registration_flow import RegistrationStepData

logger = logging.getLogger(__name__)


async def submit_registration(
    session: AsyncSession,
    tournament_id: int,
    data: RegistrationStepData,
    user_id: int,             # users.id
    now: Optional[int] = None,
) -> Registration:
    """
    Register `user_id`'s team for the tournament and commit.

    Raises one of the ArenaError subclasses on failure; the session is rolled
    back before the error leaves this function.
    """
    now = now if now is not None else now_ms()
    try:
        registration = await _register(session, tournament_id, data, user_id, now)
        await session.commit()
    except ArenaError:
        await session.rollback()
        raise
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("Duplicate registration: user=%d tournament=%d", user_id, tournament_id)
        raise AlreadyRegistered() from exc
    except (OperationalError, InterfaceError) as exc:
        await session.rollback()
        logger.warning("Store unavailable during registration: %s", exc)
        raise RemoteUnavailable() from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Registration failed: user=%d tournament=%d", user_id, tournament_id)
        raise UnknownError() from exc

    logger.info(
        "Registered user %d for tournament %d (registration=%d, team=%r, payment=%s)",
        user_id, tournament_id, registration.id, registration.team_name, registration.payment_status,
    )
    return registration


async def _register(
    session: AsyncSession,
    tournament_id: int,
    data: RegistrationStepData,
    user_id: int,
    now: int,
) -> Registration:
    tournament = await get_tournament(session, tournament_id, fresh=True)
    if tournament is None:
        raise TournamentNotFound()

    if await get_registration_status(session, tournament_id, user_id):
        raise AlreadyRegistered()

    balance = await get_wallet_balance(session, user_id)
    kyc_status = await get_kyc_status(session, user_id)
    check = evaluate_prerequisites(tournament, balance, kyc_status, now)
    if not check.slots_available:
        raise SlotsFull()
    if not check.has_sufficient_balance:
        raise InsufficientBalance()
    if not check.all_requirements_met:
        raise PrerequisiteNotMet(check.failure_reasons())

    error = data.validate_all(tournament.team_size)
    if error is not None:
        raise FlowValidationError(error)

    payment_status = await _charge_entry_fee(session, tournament, user_id)
    registration = await create_registration(
        session,
        tournament_id=tournament_id,
        user_id=user_id,
        team_name=data.team_name,
        player_ids=data.player_ids,
        payment_method=data.payment_method,
        payment_status=payment_status,
    )
    await increment_registered_teams(session, tournament_id)
    return registration


async def _charge_entry_fee(session: AsyncSession, tournament: Tournament, user_id: int) -> str:
    if tournament.entry_fee <= 0:
        return PaymentStatus.NOT_REQUIRED
    await debit_wallet(
        session,
        user_id=user_id,
        amount=tournament.entry_fee,
        currency=tournament.currency,
        tournament_id=tournament.id,
    )
    return PaymentStatus.COMPLETED
