"""
Tournament registration handler.

Flow:
  Tournaments → tournament card → Register
     → REVIEW (prerequisites) → PAYMENT → DETAILS (team name, player IDs, rules)
     → CONFIRM → Submit ✅

Every button is translated into a RegistrationSession call; the message is
then re-rendered from the session state, so step, error and entered data are
always what the user sees.
"""
import logging
from datetime import datetime, timezone
from html import escape

from aiogram import Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.keyboards import (
    MainMenuCb,
    RegFlowCb,
    TournamentCb,
    cancel_input_kb,
    player_main_menu,
    registration_step_kb,
    tournament_detail_kb,
    tournament_list_kb,
)
from arena.models.models import Tournament, TournamentStatus, compute_status
from arena.services.money import format_amount_tidy
from arena.services.notification_service import notify_registration_confirmed
from arena.services.prerequisites import can_start_registration, now_ms
from arena.services.registration_session import RegistrationSession, RegistrationSessions
from arena.services.tournament_service import (
    get_registration,
    get_tournament,
    list_open_tournaments,
)
from arena.services.user_service import get_user
from arena.states import RegistrationStates
from arena.states.registration_flow import RegistrationStep
from arena.validators import PlayerIdsInput, TeamNameInput, first_error

logger = logging.getLogger(__name__)
router = Router(name="registration")


def _fmt_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%d %b %Y, %H:%M UTC")


def tournament_card(t: Tournament, now: int) -> str:
    status = compute_status(t, now)
    fee = format_amount_tidy(t.entry_fee, t.currency) if t.entry_fee > 0 else "Free"
    lines = [
        f"🏆 <b>{escape(t.name)}</b>",
        f"{TournamentStatus.EMOJI.get(status, '')} {status.replace('_', ' ').title()}",
        "",
        f"🎮 {escape(t.game or '—')} · {t.match_type} ({t.team_size} per team)",
        f"💳 Entry fee: <b>{fee}</b>",
        f"🎁 Prize pool: <b>{format_amount_tidy(t.prize_pool, t.currency)}</b>",
        f"👥 Teams: {t.registered_teams}/{t.max_teams}",
        f"🕒 Starts: {_fmt_time(t.start_time)}",
    ]
    if t.registration_end_time:
        lines.append(f"⏳ Registration closes: {_fmt_time(t.registration_end_time)}")
    return "\n".join(lines)


def render_step(reg: RegistrationSession) -> str:
    state = reg.state
    data = state.data
    header = f"📝 <b>Registration</b> · step {state.step.index + 1}/4 · {state.step.title}\n\n"

    if state.step is RegistrationStep.REVIEW:
        body = "Tap <b>Check &amp; continue</b> to verify your wallet balance, KYC, the registration window and free slots."
        pre = state.prerequisites
        if pre is not None:
            def mark(ok: bool) -> str:
                return "✅" if ok else "❌"
            body = (
                f"{mark(pre.is_kyc_verified)} KYC verified\n"
                f"{mark(pre.has_sufficient_balance)} Balance {format_amount_tidy(pre.wallet_balance, pre.currency)}"
                f" / fee {format_amount_tidy(pre.entry_fee, pre.currency)}\n"
                f"{mark(pre.registration_open)} Registration open\n"
                f"{mark(pre.slots_available)} Slots available"
            )

    elif state.step is RegistrationStep.PAYMENT:
        body = "Choose how to pay the entry fee:"

    elif state.step is RegistrationStep.DETAILS:
        players = [pid for pid in data.player_ids if pid.strip()]
        body = (
            f"👥 Team name: <b>{escape(data.team_name) or '—'}</b>\n"
            f"🎮 Player IDs ({len(players)}/{state.team_size or '?'}): "
            f"{escape(', '.join(players)) or '—'}\n"
            f"📜 Rules accepted: {'yes' if data.terms_accepted else 'no'}"
        )

    else:
        body = (
            f"Please confirm:\n\n"
            f"💳 Payment: {data.payment_method}\n"
            f"👥 Team: <b>{escape(data.team_name)}</b>\n"
            f"🎮 Players: {escape(', '.join(data.player_ids))}"
        )

    text = header + body
    if state.loading:
        text += "\n\n⏳ <i>Working…</i>"
    if state.error:
        text += f"\n\n⚠️ {escape(state.error)}"
    return text


async def _show(message: Message, reg: RegistrationSession, edit: bool = True) -> None:
    text = render_step(reg)
    kb = registration_step_kb(reg.state)
    if edit:
        try:
            await message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=kb)
            return
        except TelegramBadRequest as e:
            # "message is not modified" when a tap changed nothing
            if "not modified" in str(e):
                return
            raise
    await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


async def _session_or_alert(
    callback: CallbackQuery,
    registration_sessions: RegistrationSessions,
) -> RegistrationSession | None:
    reg = registration_sessions.get(callback.from_user.id)
    if reg is None:
        await callback.answer("Registration session expired. Please start again.", show_alert=True)
    return reg


# ── Tournament list / card ────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "tournaments"))
async def cq_tournaments(callback: CallbackQuery, session: AsyncSession) -> None:
    now = now_ms()
    tournaments = await list_open_tournaments(session, now)
    if not tournaments:
        await callback.answer("No tournaments are open for registration.", show_alert=True)
        return

    await callback.message.edit_text(
        "🏆 <b>Open tournaments</b>",
        parse_mode=ParseMode.HTML,
        reply_markup=tournament_list_kb(tournaments, now),
    )
    await callback.answer()


@router.callback_query(TournamentCb.filter(F.action == "view"))
async def cq_tournament_view(callback: CallbackQuery, callback_data: TournamentCb, session: AsyncSession) -> None:
    t = await get_tournament(session, callback_data.tid)
    if t is None:
        await callback.answer("Tournament not found. It may have been deleted.", show_alert=True)
        return

    now = now_ms()
    can_register = can_start_registration(t, now)
    await callback.message.edit_text(
        tournament_card(t, now),
        parse_mode=ParseMode.HTML,
        reply_markup=tournament_detail_kb(t.id, can_register=can_register),
    )
    await callback.answer()


# ── Entry ─────────────────────────────────────────────────────────────────────

@router.callback_query(TournamentCb.filter(F.action == "register"))
async def cq_start_registration(
    callback: CallbackQuery,
    callback_data: TournamentCb,
    session: AsyncSession,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    user = await get_user(session, callback.from_user.id)
    if user is None:
        await callback.answer("Please send /start first.", show_alert=True)
        return
    t = await get_tournament(session, callback_data.tid)
    if t is None:
        await callback.answer("Tournament not found. It may have been deleted.", show_alert=True)
        return

    reg = registration_sessions.start(callback.from_user.id, user.id, t.id, t.team_size)
    await state.set_state(RegistrationStates.in_flow)
    await _show(callback.message, reg)
    await callback.answer()


# ── Navigation ────────────────────────────────────────────────────────────────

@router.callback_query(RegFlowCb.filter(F.action == "next"))
async def cq_next(
    callback: CallbackQuery,
    session: AsyncSession,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    if reg.state.loading:
        await callback.answer("⏳ Please wait…")
        return

    await callback.answer()
    await reg.next(session)
    await _show(callback.message, reg)


@router.callback_query(RegFlowCb.filter(F.action == "back"))
async def cq_back(callback: CallbackQuery, registration_sessions: RegistrationSessions) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    reg.previous()
    await _show(callback.message, reg)
    await callback.answer()


@router.callback_query(RegFlowCb.filter(F.action == "reset"))
async def cq_reset(callback: CallbackQuery, registration_sessions: RegistrationSessions) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    if reg.state.loading:
        await callback.answer("⏳ Please wait…")
        return
    reg.reset()
    await _show(callback.message, reg)
    await callback.answer("Started over")


@router.callback_query(RegFlowCb.filter(F.action == "cancel"))
async def cq_cancel(
    callback: CallbackQuery,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    registration_sessions.discard(callback.from_user.id)
    await state.clear()
    await callback.message.edit_text(
        "Registration cancelled.\n\n🎮 <b>ARENA</b>",
        parse_mode=ParseMode.HTML,
        reply_markup=player_main_menu(),
    )
    await callback.answer()


# ── PAYMENT ───────────────────────────────────────────────────────────────────

@router.callback_query(RegFlowCb.filter(F.action == "method"))
async def cq_method(
    callback: CallbackQuery,
    callback_data: RegFlowCb,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    method = callback_data.value
    reg.update(lambda d: d.model_copy(update={"payment_method": method}))
    await _show(callback.message, reg)
    await callback.answer()


# ── DETAILS ───────────────────────────────────────────────────────────────────

@router.callback_query(RegFlowCb.filter(F.action == "terms"))
async def cq_terms(callback: CallbackQuery, registration_sessions: RegistrationSessions) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    reg.update(lambda d: d.model_copy(update={"terms_accepted": not d.terms_accepted}))
    await _show(callback.message, reg)
    await callback.answer()


@router.callback_query(RegFlowCb.filter(F.action == "team"))
async def cq_team_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    if await _session_or_alert(callback, registration_sessions) is None:
        return
    await state.set_state(RegistrationStates.enter_team_name)
    await callback.message.answer("✏️ Send your <b>team name</b>:", parse_mode=ParseMode.HTML,
                                  reply_markup=cancel_input_kb())
    await callback.answer()


@router.callback_query(RegFlowCb.filter(F.action == "players"))
async def cq_players_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    await state.set_state(RegistrationStates.enter_player_ids)
    await callback.message.answer(
        f"🎮 Send the in-game IDs of your players (up to {reg.state.team_size or 4}), "
        f"separated by commas or new lines:",
        reply_markup=cancel_input_kb(),
    )
    await callback.answer()


@router.message(RegistrationStates.enter_team_name)
async def msg_team_name(
    message: Message,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = registration_sessions.get(message.from_user.id)
    if reg is None:
        await state.clear()
        await message.answer("Registration session expired. Please start again.", reply_markup=player_main_menu())
        return

    try:
        team_name = TeamNameInput(team_name=message.text or "").team_name
    except ValidationError as e:
        await message.answer(f"⚠️ {first_error(e)}", reply_markup=cancel_input_kb())
        return

    reg.update(lambda d: d.model_copy(update={"team_name": team_name}))
    await state.set_state(RegistrationStates.in_flow)
    await _show(message, reg, edit=False)


@router.message(RegistrationStates.enter_player_ids)
async def msg_player_ids(
    message: Message,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = registration_sessions.get(message.from_user.id)
    if reg is None:
        await state.clear()
        await message.answer("Registration session expired. Please start again.", reply_markup=player_main_menu())
        return

    try:
        parsed = PlayerIdsInput(player_ids=message.text or "", team_size=reg.state.team_size or 4)
        parsed.check_team_size()
    except ValidationError as e:
        await message.answer(f"⚠️ {first_error(e)}", reply_markup=cancel_input_kb())
        return
    except ValueError as e:
        await message.answer(f"⚠️ {e}", reply_markup=cancel_input_kb())
        return

    reg.update(lambda d: d.model_copy(update={"player_ids": parsed.player_ids}))
    await state.set_state(RegistrationStates.in_flow)
    await _show(message, reg, edit=False)


# ── CONFIRM → Submit ──────────────────────────────────────────────────────────

@router.callback_query(RegFlowCb.filter(F.action == "submit"))
async def cq_submit(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    bot: Bot,
    registration_sessions: RegistrationSessions,
) -> None:
    reg = await _session_or_alert(callback, registration_sessions)
    if reg is None:
        return
    if reg.state.loading:
        await callback.answer("⏳ Already submitting…")
        return

    await callback.answer()
    await reg.submit(session)

    if not reg.state.completed:
        await _show(callback.message, reg)
        return

    registration_id = reg.state.registration_id
    registration_sessions.discard(callback.from_user.id)
    await state.clear()
    await callback.message.edit_text(
        "✅ <b>You're in!</b> Your team is registered.",
        parse_mode=ParseMode.HTML,
        reply_markup=player_main_menu(),
    )

    registration = await get_registration(session, registration_id)
    if registration is not None:
        await notify_registration_confirmed(bot, callback.from_user.id, registration, registration.tournament)
