from aiogram.fsm.state import State, StatesGroup


class AdminDepositStates(StatesGroup):
    """FSM for deposit review."""
    enter_reject_reason = State()   # Admin types the reason after clicking ❌
