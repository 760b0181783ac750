from arena.states.registration_states import RegistrationStates, DepositStates
from arena.states.admin_states import AdminDepositStates

__all__ = [
    "RegistrationStates", "DepositStates",
    "AdminDepositStates",
]
