"""
Admin keyboards: deposit review queue.
"""
from typing import List

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from arena.keyboards.callbacks import AdminDepositCb, AdminPanelCb
from arena.models.models import PendingDeposit
from arena.services.money import format_amount_tidy


def pending_deposits_kb(deposits: List[PendingDeposit]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for d in deposits:
        builder.row(
            InlineKeyboardButton(
                text=f"{d.status_emoji} #{d.id} · {format_amount_tidy(d.amount, d.currency)} · {d.reference}",
                callback_data=AdminDepositCb(action="view", did=d.id).pack(),
            )
        )
    builder.row(InlineKeyboardButton(text="🔙 Back", callback_data=AdminPanelCb(action="main").pack()))
    return builder.as_markup()


def deposit_review_kb(deposit_id: int) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="✅ Approve", callback_data=AdminDepositCb(action="approve", did=deposit_id).pack()),
        InlineKeyboardButton(text="❌ Reject",  callback_data=AdminDepositCb(action="reject",  did=deposit_id).pack()),
    )
    builder.row(
        InlineKeyboardButton(text="🔙 Queue", callback_data=AdminDepositCb(action="list").pack())
    )
    return builder.as_markup()


def cancel_admin_input_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=AdminDepositCb(action="list").pack()))
    return builder.as_markup()
