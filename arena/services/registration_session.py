"""
Registration session: the stateful driver around the pure flow reducer.

One RegistrationSession per user in the flow. It owns the current
RegistrationUiState, performs the asynchronous work the reducer cannot
(prerequisite reads, submission) and guarantees that:

  * loading is set before every suspension point and cleared afterwards,
    including on failure and cancellation;
  * a second next()/submit() while loading is ignored, so rapid repeated
    taps never reach the coordinator twice;
  * every failure ends up as a non-empty `state.error` with the step and the
    entered data untouched.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.services.errors import (
    AlreadyRegistered,
    ArenaError,
    PrerequisiteNotMet,
    RemoteUnavailable,
    TournamentNotFound,
    UnknownError,
)
from arena.services.prerequisites import PrerequisiteResult, evaluate_prerequisites, now_ms
from arena.services.registration_service import submit_registration
from arena.services.tournament_service import get_registration_status, get_tournament
from arena.services.user_service import get_kyc_status
from arena.services.wallet_service import get_wallet_balance
from arena.states.registration_flow import (
    Next,
    PrerequisitesLoaded,
    Previous,
    RegistrationEvent,
    RegistrationStep,
    RegistrationStepData,
    RegistrationUiState,
    RequestFailed,
    RequestStarted,
    Reset,
    Submit,
    SubmitSucceeded,
    UpdateData,
    initial_state,
    reduce,
)

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Request was cancelled. Please try again."


class RegistrationSession:
    def __init__(
        self,
        user_id: int,             # users.id
        tournament_id: int,
        team_size: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.user_id = user_id
        self.state: RegistrationUiState = initial_state(tournament_id, team_size)
        self.last_error: Optional[ArenaError] = None
        self._clock = clock

    @property
    def tournament_id(self) -> int:
        return self.state.data.tournament_id

    @property
    def step(self) -> RegistrationStep:
        return self.state.step

    def dispatch(self, event: RegistrationEvent) -> RegistrationUiState:
        self.state = reduce(self.state, event)
        return self.state

    # ── Synchronous events ────────────────────────────────────────────────────

    def update(self, transform: Callable[[RegistrationStepData], RegistrationStepData]) -> RegistrationUiState:
        return self.dispatch(UpdateData(transform))

    def previous(self) -> RegistrationUiState:
        return self.dispatch(Previous())

    def reset(self) -> RegistrationUiState:
        self.last_error = None
        return self.dispatch(Reset())

    # ── Asynchronous events ───────────────────────────────────────────────────

    async def next(self, session: AsyncSession) -> RegistrationUiState:
        if self.state.loading:
            return self.state
        if self.state.step is not RegistrationStep.REVIEW:
            return self.dispatch(Next())

        self.dispatch(RequestStarted())
        try:
            result = await self._check_prerequisites(session)
        except asyncio.CancelledError:
            self.dispatch(RequestFailed(CANCELLED_MESSAGE))
            raise
        except ArenaError as exc:
            return self._fail(exc)
        except SQLAlchemyError as exc:
            logger.warning("Prerequisite check failed for user %d: %s", self.user_id, exc)
            return self._fail(RemoteUnavailable())
        except Exception:
            logger.exception("Unexpected error checking prerequisites for user %d", self.user_id)
            return self._fail(UnknownError())

        if result.all_requirements_met:
            self.last_error = None
        else:
            self.last_error = PrerequisiteNotMet(result.failure_reasons())
        return self.dispatch(PrerequisitesLoaded(result))

    async def submit(self, session: AsyncSession) -> RegistrationUiState:
        if self.state.loading or self.state.completed:
            return self.state

        self.dispatch(Submit())
        if not self.state.loading:
            # Not on CONFIRM, or the data failed re-validation.
            return self.state

        try:
            registration = await submit_registration(
                session,
                self.tournament_id,
                self.state.data,
                self.user_id,
                now=self._clock(),
            )
        except asyncio.CancelledError:
            self.dispatch(RequestFailed(CANCELLED_MESSAGE))
            raise
        except ArenaError as exc:
            return self._fail(exc)
        except Exception:
            logger.exception("Unexpected error submitting registration for user %d", self.user_id)
            return self._fail(UnknownError())

        self.last_error = None
        return self.dispatch(SubmitSucceeded(registration.id))

    async def _check_prerequisites(self, session: AsyncSession) -> PrerequisiteResult:
        tournament = await get_tournament(session, self.tournament_id, fresh=True)
        if tournament is None:
            raise TournamentNotFound()
        if await get_registration_status(session, self.tournament_id, self.user_id):
            raise AlreadyRegistered()

        balance = await get_wallet_balance(session, self.user_id)
        kyc_status = await get_kyc_status(session, self.user_id)
        return evaluate_prerequisites(tournament, balance, kyc_status, self._clock())

    def _fail(self, error: ArenaError) -> RegistrationUiState:
        self.last_error = error
        return self.dispatch(RequestFailed(error.message))


class RegistrationSessions:
    """
    In-process registry of active sessions keyed by Telegram user id.

    Held in the dispatcher workflow data; lost on restart, which is fine since
    nothing is persisted before submit.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._sessions: Dict[int, RegistrationSession] = {}
        self._clock = clock

    def start(
        self,
        telegram_id: int,
        user_id: int,
        tournament_id: int,
        team_size: Optional[int] = None,
    ) -> RegistrationSession:
        """Begin a new flow, replacing any previous one for this user."""
        reg_session = RegistrationSession(user_id, tournament_id, team_size, clock=self._clock)
        self._sessions[telegram_id] = reg_session
        return reg_session

    def get(self, telegram_id: int) -> Optional[RegistrationSession]:
        return self._sessions.get(telegram_id)

    def discard(self, telegram_id: int) -> None:
        self._sessions.pop(telegram_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, telegram_id: int) -> bool:
        return telegram_id in self._sessions
