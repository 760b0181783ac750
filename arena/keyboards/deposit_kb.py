"""
Keyboards for the add-money (payment proof) dialog.
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from arena.keyboards.callbacks import DepositCb, MainMenuCb
from arena.validators import PaymentMethod


def payment_method_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for method in PaymentMethod.ALL:
        builder.row(
            InlineKeyboardButton(
                text=PaymentMethod.LABELS[method],
                callback_data=DepositCb(action="method", value=method).pack(),
            )
        )
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=DepositCb(action="cancel").pack()))
    return builder.as_markup()


def skip_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="⏭ Skip",   callback_data=DepositCb(action="skip").pack()),
        InlineKeyboardButton(text="❌ Cancel", callback_data=DepositCb(action="cancel").pack()),
    )
    return builder.as_markup()


def cancel_deposit_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=DepositCb(action="cancel").pack()))
    return builder.as_markup()


def confirm_deposit_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="📤 Submit", callback_data=DepositCb(action="submit").pack()),
        InlineKeyboardButton(text="❌ Cancel", callback_data=DepositCb(action="cancel").pack()),
    )
    return builder.as_markup()


def deposit_status_kb(deposit_id: int) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🔄 Check status", callback_data=DepositCb(action="status", did=deposit_id).pack())
    )
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
