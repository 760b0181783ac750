from aiogram.fsm.state import State, StatesGroup


class RegistrationStates(StatesGroup):
    """
    Telegram-side FSM for the registration flow.

    Only the text-input steps need a state; the flow itself (step, data,
    loading, error) lives in RegistrationSession.
    """
    in_flow          = State()   # Inline buttons only
    enter_team_name  = State()   # Text input: team name
    enter_player_ids = State()   # Text input: comma / newline separated IDs


class DepositStates(StatesGroup):
    """FSM for the add-money (payment proof) dialog."""
    enter_amount         = State()   # Text input: amount
    choose_method        = State()   # Inline: UPI / bank transfer
    enter_reference      = State()   # Text input: UPI txn id / bank reference
    enter_sender_upi     = State()   # Text input: sender UPI ID (optional)
    enter_bank_details   = State()   # Text input: bank name / account no / holder
    upload_screenshot    = State()   # Photo
    upload_statement     = State()   # Photo / PDF, only above the currency threshold
    confirm              = State()   # Summary → submit
