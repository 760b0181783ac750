"""
Global fallback handler: included LAST in the dispatcher.

Catches any callback query that no other router handled.
Prevents infinite Telegram spinners from:
  - Stale keyboards after bot restart (MemoryStorage and registration
    sessions are wiped on redeploy)
  - Buttons of a flow the user already left
"""
import logging

from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from arena.keyboards import admin_main_menu, player_main_menu
from arena.services.registration_session import RegistrationSessions

logger = logging.getLogger(__name__)
router = Router(name="fallback")


@router.callback_query()
async def cq_fallback(
    callback: CallbackQuery,
    state: FSMContext,
    registration_sessions: RegistrationSessions,
    is_admin: bool = False,
) -> None:
    await callback.answer("⚠️ This button is outdated. Please start again.", show_alert=True)
    registration_sessions.discard(callback.from_user.id)
    await state.clear()
    try:
        kb = admin_main_menu() if is_admin else player_main_menu()
        await callback.message.edit_text(
            "🔄 <b>Session reset.</b> Back to the main menu:",
            parse_mode=ParseMode.HTML,
            reply_markup=kb,
        )
    except TelegramBadRequest as e:
        logger.debug("Fallback could not edit message: %s", e)
