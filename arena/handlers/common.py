"""
Common handlers: /start, main menu routing, wallet and my registrations.
"""
import logging
from html import escape

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from arena.keyboards import (
    MainMenuCb,
    admin_main_menu,
    back_to_main,
    my_registrations_kb,
    player_main_menu,
)
from arena.models.models import TransactionType, User
from arena.services.deposit_service import list_user_deposits
from arena.services.money import default_currency_for_country, format_amount
from arena.services.registration_session import RegistrationSessions
from arena.services.tournament_service import list_user_registrations
from arena.services.user_service import get_user, upsert_user
from arena.services.wallet_service import ensure_wallet, list_transactions

logger = logging.getLogger(__name__)
router = Router(name="common")


async def _ensure_player(session: AsyncSession, tg) -> User:
    user = await upsert_user(
        session,
        telegram_id=tg.id,
        first_name=tg.first_name,
        last_name=tg.last_name,
        username=tg.username,
    )
    await ensure_wallet(session, user.id, default_currency_for_country(user.country))
    return user


# ── /start ────────────────────────────────────────────────────────────────────

@router.message(CommandStart())
async def cmd_start(message: Message, session: AsyncSession, is_admin: bool) -> None:
    await _ensure_player(session, message.from_user)

    name = escape(message.from_user.first_name)
    if is_admin:
        text = (
            f"⚡ <b>Admin panel</b> — {name}\n\n"
            f"Review payment proofs and approve deposits.\n"
            f"KYC decisions: <code>/kyc &lt;telegram_id&gt; verified|rejected|pending</code>\n\n"
            f"Choose a section:"
        )
        kb = admin_main_menu()
    else:
        text = (
            f"🎮 Welcome to <b>ARENA</b>, {name}!\n\n"
            f"Here you can:\n"
            f"• 🏆 Register your team for tournaments\n"
            f"• ➕ Add money to your wallet\n"
            f"• 🔔 Get notified when your deposit is reviewed\n\n"
            f"Choose an action:"
        )
        kb = player_main_menu()
    await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


@router.message(Command("menu"))
async def cmd_menu(message: Message, state: FSMContext, registration_sessions: RegistrationSessions) -> None:
    registration_sessions.discard(message.from_user.id)
    await state.clear()
    await message.answer("🎮 <b>ARENA</b>\n\nChoose an action:", parse_mode=ParseMode.HTML,
                         reply_markup=player_main_menu())


# ── Main menu callback ────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "main"))
async def cq_main_menu(
    callback: CallbackQuery,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
) -> None:
    registration_sessions.discard(callback.from_user.id)
    await state.clear()
    await callback.message.edit_text(
        "🎮 <b>ARENA</b>\n\nChoose an action:",
        parse_mode=ParseMode.HTML,
        reply_markup=player_main_menu(),
    )
    await callback.answer()


# ── Wallet ────────────────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "wallet"))
async def cq_wallet(callback: CallbackQuery, session: AsyncSession) -> None:
    user = await _ensure_player(session, callback.from_user)
    wallet = await ensure_wallet(session, user.id)
    transactions = await list_transactions(session, user.id, limit=5)

    lines = [
        "💰 <b>Wallet</b>\n",
        f"Balance: <b>{format_amount(wallet.balance, wallet.currency)}</b>",
        f"KYC: <b>{user.kyc_status}</b>",
    ]
    if transactions:
        lines.append("\n<b>Recent activity</b>")
        for tx in transactions:
            icon = "➖" if tx.type == TransactionType.ENTRY_FEE else "➕"
            lines.append(f"{icon} {format_amount(abs(tx.amount), tx.currency)} · {tx.type}")

    deposits = await list_user_deposits(session, user.id, limit=3)
    if deposits:
        lines.append("\n<b>Deposits</b>")
        for d in deposits:
            lines.append(f"{d.status_emoji} #{d.id} {format_amount(d.amount, d.currency)} · {d.status.lower()}")

    await callback.message.edit_text("\n".join(lines), parse_mode=ParseMode.HTML, reply_markup=back_to_main())
    await callback.answer()


# ── My registrations ──────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "my_registrations"))
async def cq_my_registrations(callback: CallbackQuery, session: AsyncSession) -> None:
    user = await get_user(session, callback.from_user.id)
    registrations = await list_user_registrations(session, user.id) if user else []
    if not registrations:
        await callback.answer("You have no registrations yet.", show_alert=True)
        return

    await callback.message.edit_text(
        f"📋 <b>My registrations</b> ({len(registrations)})",
        parse_mode=ParseMode.HTML,
        reply_markup=my_registrations_kb(registrations),
    )
    await callback.answer()


@router.callback_query(F.data == "noop")
async def cq_noop(callback: CallbackQuery) -> None:
    await callback.answer()
