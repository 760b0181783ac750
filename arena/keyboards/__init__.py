from arena.keyboards.callbacks import (
    MainMenuCb,
    TournamentCb,
    RegFlowCb,
    DepositCb,
    AdminPanelCb,
    AdminDepositCb,
)
from arena.keyboards.main_menu import player_main_menu, admin_main_menu, back_to_main
from arena.keyboards.registration_kb import (
    tournament_list_kb,
    tournament_detail_kb,
    registration_step_kb,
    cancel_input_kb,
    my_registrations_kb,
)
from arena.keyboards.deposit_kb import (
    payment_method_kb,
    skip_kb,
    cancel_deposit_kb,
    confirm_deposit_kb,
    deposit_status_kb,
)
from arena.keyboards.admin_kb import (
    pending_deposits_kb,
    deposit_review_kb,
    cancel_admin_input_kb,
)

__all__ = [
    # callbacks
    "MainMenuCb", "TournamentCb", "RegFlowCb", "DepositCb",
    "AdminPanelCb", "AdminDepositCb",
    # main menu
    "player_main_menu", "admin_main_menu", "back_to_main",
    # registration
    "tournament_list_kb", "tournament_detail_kb", "registration_step_kb",
    "cancel_input_kb", "my_registrations_kb",
    # deposit
    "payment_method_kb", "skip_kb", "cancel_deposit_kb",
    "confirm_deposit_kb", "deposit_status_kb",
    # admin
    "pending_deposits_kb", "deposit_review_kb", "cancel_admin_input_kb",
]
