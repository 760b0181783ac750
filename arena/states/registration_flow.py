"""
Tournament registration flow as an explicit state plus a pure reducer.

Flow:
  REVIEW (prerequisites) → PAYMENT (method) → DETAILS (team, players, terms)
         → CONFIRM → Submit

`reduce(state, event)` never performs I/O. Anything asynchronous (loading the
wallet, committing the registration) is done by RegistrationSession, which
feeds the outcome back in as RequestStarted / RequestFailed / SubmitSucceeded /
PrerequisitesLoaded.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from arena.services.prerequisites import PrerequisiteResult

ALLOWED_PAYMENT_METHODS = ("wallet",)


class RegistrationStep(str, Enum):
    REVIEW  = "review"
    PAYMENT = "payment"
    DETAILS = "details"
    CONFIRM = "confirm"

    @property
    def index(self) -> int:
        return STEP_ORDER.index(self)

    @property
    def title(self) -> str:
        return self.value.capitalize()


STEP_ORDER: Tuple[RegistrationStep, ...] = (
    RegistrationStep.REVIEW,
    RegistrationStep.PAYMENT,
    RegistrationStep.DETAILS,
    RegistrationStep.CONFIRM,
)


class RegistrationStepData(BaseModel):
    """Form data collected across the steps. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    tournament_id: int = 0
    payment_method: str = "wallet"
    team_name: str = ""
    player_ids: Tuple[str, ...] = ("",)
    terms_accepted: bool = False

    def validate_step(self, step: RegistrationStep, team_size: Optional[int] = None) -> Optional[str]:
        """Error message for the fields owned by `step`, or None when valid."""
        if step is RegistrationStep.REVIEW:
            if self.tournament_id <= 0:
                return "Tournament selection is required"
            return None

        if step is RegistrationStep.PAYMENT:
            if not self.payment_method.strip():
                return "Payment method is required"
            if self.payment_method not in ALLOWED_PAYMENT_METHODS:
                return f"Unsupported payment method: {self.payment_method}"
            return None

        if step is RegistrationStep.DETAILS:
            if not self.team_name.strip():
                return "Team name is required"
            if not self.player_ids:
                return "At least one player in-game ID is required"
            if any(not pid.strip() for pid in self.player_ids):
                return "All player in-game IDs are required"
            if team_size is not None and len(self.player_ids) > team_size:
                return f"A team can have at most {team_size} player(s)"
            if not self.terms_accepted:
                return "You must accept the terms and conditions"
            return None

        return None

    def validate_all(self, team_size: Optional[int] = None) -> Optional[str]:
        """First error across every step, in step order."""
        for step in STEP_ORDER:
            error = self.validate_step(step, team_size)
            if error is not None:
                return error
        return None


class RegistrationUiState(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: RegistrationStep = RegistrationStep.REVIEW
    data: RegistrationStepData = RegistrationStepData()
    error: Optional[str] = None
    loading: bool = False
    team_size: Optional[int] = None
    prerequisites: Optional[PrerequisiteResult] = None
    completed: bool = False
    registration_id: Optional[int] = None

    @property
    def is_last_step(self) -> bool:
        return self.step is RegistrationStep.CONFIRM


def initial_state(tournament_id: int, team_size: Optional[int] = None) -> RegistrationUiState:
    player_slots = ("",) * (team_size or 1)
    return RegistrationUiState(
        data=RegistrationStepData(tournament_id=tournament_id, player_ids=player_slots),
        team_size=team_size,
    )


# ─────────────────────────── Events ───────────────────────────────────────────

@dataclass(frozen=True)
class UpdateData:
    transform: Callable[[RegistrationStepData], RegistrationStepData]


@dataclass(frozen=True)
class Next:
    # Required on REVIEW: the evaluator result computed from fresh snapshots.
    prerequisites: Optional[PrerequisiteResult] = None


@dataclass(frozen=True)
class PrerequisitesLoaded:
    """Result of the REVIEW check that was started with RequestStarted."""
    prerequisites: PrerequisiteResult


@dataclass(frozen=True)
class Previous:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class RequestStarted:
    pass


@dataclass(frozen=True)
class RequestFailed:
    message: str


@dataclass(frozen=True)
class SubmitSucceeded:
    registration_id: int


RegistrationEvent = Union[
    UpdateData,
    Next,
    PrerequisitesLoaded,
    Previous,
    Reset,
    Submit,
    RequestStarted,
    RequestFailed,
    SubmitSucceeded,
]


# ─────────────────────────── Reducer ──────────────────────────────────────────

def reduce(state: RegistrationUiState, event: RegistrationEvent) -> RegistrationUiState:
    if isinstance(event, UpdateData):
        return state.model_copy(update={"data": event.transform(state.data), "error": None})

    if isinstance(event, Next):
        if state.loading:
            return state
        return _next(state, event.prerequisites)

    if isinstance(event, PrerequisitesLoaded):
        if state.step is not RegistrationStep.REVIEW:
            return state.model_copy(update={"loading": False})
        return _next(state, event.prerequisites)

    if isinstance(event, Previous):
        if state.loading or state.step is RegistrationStep.REVIEW:
            return state
        return state.model_copy(update={"step": STEP_ORDER[state.step.index - 1], "error": None})

    if isinstance(event, Reset):
        return initial_state(state.data.tournament_id, state.team_size)

    if isinstance(event, Submit):
        if state.loading or state.completed or state.step is not RegistrationStep.CONFIRM:
            return state
        error = state.data.validate_all(state.team_size)
        if error is not None:
            return state.model_copy(update={"error": error})
        return state.model_copy(update={"loading": True, "error": None})

    if isinstance(event, RequestStarted):
        return state.model_copy(update={"loading": True, "error": None})

    if isinstance(event, RequestFailed):
        return state.model_copy(update={"loading": False, "error": event.message})

    if isinstance(event, SubmitSucceeded):
        return state.model_copy(
            update={
                "loading": False,
                "error": None,
                "completed": True,
                "registration_id": event.registration_id,
            }
        )

    raise TypeError(f"Unknown registration event: {event!r}")


def _next(state: RegistrationUiState, prerequisites: Optional[PrerequisiteResult]) -> RegistrationUiState:
    if state.step is RegistrationStep.CONFIRM:
        return state

    if state.step is RegistrationStep.REVIEW:
        error = state.data.validate_step(RegistrationStep.REVIEW)
        if error is None and prerequisites is None:
            error = "Registration requirements have not been checked yet"
        if error is None and not prerequisites.all_requirements_met:
            error = " ".join(prerequisites.failure_reasons())
        if error is not None:
            return state.model_copy(
                update={"loading": False, "error": error, "prerequisites": prerequisites}
            )
        return state.model_copy(
            update={
                "step": RegistrationStep.PAYMENT,
                "loading": False,
                "error": None,
                "prerequisites": prerequisites,
            }
        )

    error = state.data.validate_step(state.step, state.team_size)
    if error is not None:
        return state.model_copy(update={"error": error})
    return state.model_copy(update={"step": STEP_ORDER[state.step.index + 1], "error": None})
