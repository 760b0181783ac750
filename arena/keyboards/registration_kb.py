"""
Keyboards for the tournament registration flow.
"""
from typing import List

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from arena.keyboards.callbacks import MainMenuCb, RegFlowCb, TournamentCb
from arena.models.models import Registration, Tournament, TournamentStatus, compute_status
from arena.services.money import format_amount_tidy
from arena.states.registration_flow import RegistrationStep, RegistrationUiState


def tournament_list_kb(tournaments: List[Tournament], now: int) -> InlineKeyboardMarkup:
    """Open tournaments, one per row, with status emoji, fee and free slots."""
    builder = InlineKeyboardBuilder()
    for t in tournaments:
        emoji = TournamentStatus.EMOJI.get(compute_status(t, now), "")
        fee = format_amount_tidy(t.entry_fee, t.currency) if t.entry_fee > 0 else "Free"
        builder.row(
            InlineKeyboardButton(
                text=f"{emoji} {t.name}  ·  {fee}  ·  {t.slots_left} left",
                callback_data=TournamentCb(action="view", tid=t.id).pack(),
            )
        )
    builder.row(InlineKeyboardButton(text="🔙 Back", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()


def tournament_detail_kb(tid: int, can_register: bool = True) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    if can_register:
        builder.row(
            InlineKeyboardButton(text="📝 Register", callback_data=TournamentCb(action="register", tid=tid).pack())
        )
    builder.row(InlineKeyboardButton(text="🔙 Back", callback_data=MainMenuCb(action="tournaments").pack()))
    return builder.as_markup()


def _nav_row(builder: InlineKeyboardBuilder, state: RegistrationUiState, next_text: str = "Next ➡️") -> None:
    buttons = []
    if state.step is not RegistrationStep.REVIEW:
        buttons.append(InlineKeyboardButton(text="⬅️ Back", callback_data=RegFlowCb(action="back").pack()))
    buttons.append(InlineKeyboardButton(text=next_text, callback_data=RegFlowCb(action="next").pack()))
    builder.row(*buttons)


def registration_step_kb(state: RegistrationUiState) -> InlineKeyboardMarkup:
    """Buttons for the current step of the flow."""
    builder = InlineKeyboardBuilder()
    step = state.step

    if step is RegistrationStep.REVIEW:
        _nav_row(builder, state, next_text="✅ Check & continue")
        if state.prerequisites is not None and not state.prerequisites.has_sufficient_balance:
            builder.row(
                InlineKeyboardButton(text="➕ Add money", callback_data=MainMenuCb(action="deposit").pack())
            )

    elif step is RegistrationStep.PAYMENT:
        mark = "🔘" if state.data.payment_method == "wallet" else "⚪️"
        builder.row(
            InlineKeyboardButton(text=f"{mark} Wallet balance", callback_data=RegFlowCb(action="method", value="wallet").pack())
        )
        _nav_row(builder, state)

    elif step is RegistrationStep.DETAILS:
        builder.row(
            InlineKeyboardButton(text="✏️ Team name",  callback_data=RegFlowCb(action="team").pack()),
            InlineKeyboardButton(text="🎮 Player IDs", callback_data=RegFlowCb(action="players").pack()),
        )
        terms = "☑️" if state.data.terms_accepted else "⬜️"
        builder.row(
            InlineKeyboardButton(text=f"{terms} I accept the rules", callback_data=RegFlowCb(action="terms").pack())
        )
        _nav_row(builder, state)

    elif step is RegistrationStep.CONFIRM:
        builder.row(
            InlineKeyboardButton(text="⬅️ Back",   callback_data=RegFlowCb(action="back").pack()),
            InlineKeyboardButton(text="🚀 Submit", callback_data=RegFlowCb(action="submit").pack()),
        )
        builder.row(InlineKeyboardButton(text="🔄 Start over", callback_data=RegFlowCb(action="reset").pack()))

    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=RegFlowCb(action="cancel").pack()))
    return builder.as_markup()


def cancel_input_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=RegFlowCb(action="cancel").pack()))
    return builder.as_markup()


def my_registrations_kb(registrations: List[Registration]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for r in registrations:
        builder.row(
            InlineKeyboardButton(
                text=f"🏆 {r.tournament.name} · {r.team_name}",
                callback_data=TournamentCb(action="view", tid=r.tournament_id).pack(),
            )
        )
    builder.row(InlineKeyboardButton(text="🔙 Back", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
