"""
User notification service.

Pushes registration confirmations and deposit decisions straight into the
player's Telegram chat. Delivery failures (user blocked the bot, chat gone)
are logged and otherwise ignored: a notification is never part of a
transaction.
"""
from __future__ import annotations

import logging
from html import escape
from typing import Optional

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from arena.models.models import DepositStatus, PaymentStatus, PendingDeposit, Registration, Tournament
from arena.services.money import format_amount, format_amount_tidy

logger = logging.getLogger(__name__)

_RULE = "━━━━━━━━━━━━━━━━━━━━━"


async def _send(bot: Bot, telegram_id: int, text: str) -> bool:
    try:
        await bot.send_message(chat_id=telegram_id, text=text, parse_mode=ParseMode.HTML)
    except (TelegramForbiddenError, TelegramBadRequest) as e:
        logger.warning("Could not notify telegram_id=%d: %s", telegram_id, e)
        return False
    return True


def registration_text(registration: Registration, tournament: Tournament) -> str:
    if registration.payment_status == PaymentStatus.COMPLETED:
        fee_line = f"💳 Entry fee paid: <b>{format_amount_tidy(tournament.entry_fee, tournament.currency)}</b>"
    else:
        fee_line = "💳 Free entry"
    players = "\n".join(f"  • <code>{escape(pid)}</code>" for pid in registration.player_ids)
    return (
        f"{_RULE}\n"
        f"✅ <b>Registration confirmed</b>\n"
        f"{_RULE}\n\n"
        f"🏆 <b>{escape(tournament.name)}</b>\n"
        f"👥 Team: <b>{escape(registration.team_name)}</b>\n"
        f"🎮 Players:\n{players}\n"
        f"{fee_line}\n\n"
        f"<i>Room details will be shared before the match starts.</i>"
    )


async def notify_registration_confirmed(
    bot: Bot,
    telegram_id: int,
    registration: Registration,
    tournament: Tournament,
) -> bool:
    return await _send(bot, telegram_id, registration_text(registration, tournament))


def deposit_decision_text(deposit: PendingDeposit, balance: Optional[float] = None) -> str:
    amount = format_amount(deposit.amount, deposit.currency)
    if deposit.status == DepositStatus.APPROVED:
        text = (
            f"✅ <b>Deposit approved</b>\n\n"
            f"{amount} has been added to your wallet (ref <code>{escape(deposit.reference)}</code>)."
        )
        if balance is not None:
            text += f"\n💰 Balance: <b>{format_amount(balance, deposit.currency)}</b>"
        return text
    if deposit.status == DepositStatus.REJECTED:
        reason = escape(deposit.rejection_reason or "No reason given")
        return (
            f"❌ <b>Deposit rejected</b>\n\n"
            f"Your deposit of {amount} (ref <code>{escape(deposit.reference)}</code>) was rejected.\n"
            f"Reason: <i>{reason}</i>"
        )
    return (
        f"⏳ <b>Deposit pending</b>\n\n"
        f"Your deposit of {amount} is still awaiting review."
    )


async def notify_deposit_decision(
    bot: Bot,
    telegram_id: int,
    deposit: PendingDeposit,
    balance: Optional[float] = None,
) -> bool:
    return await _send(bot, telegram_id, deposit_decision_text(deposit, balance))


async def notify_admins_new_deposit(bot: Bot, admin_ids: list[int], deposit: PendingDeposit) -> int:
    """Ping every admin about a new pending deposit. Returns how many were reached."""
    text = (
        f"🆕 <b>New deposit #{deposit.id}</b>\n"
        f"{format_amount(deposit.amount, deposit.currency)} via {deposit.payment_method}\n"
        f"Ref: <code>{escape(deposit.reference)}</code>\n\n"
        f"Review with /deposits"
    )
    sent = 0
    for admin_id in admin_ids:
        if await _send(bot, admin_id, text):
            sent += 1
    return sent
