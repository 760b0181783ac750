"""
Main menu keyboards: player vs. admin.
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from arena.keyboards.callbacks import MainMenuCb, AdminPanelCb


def player_main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🏆 Tournaments",        callback_data=MainMenuCb(action="tournaments").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="📋 My registrations",   callback_data=MainMenuCb(action="my_registrations").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="💰 Wallet",             callback_data=MainMenuCb(action="wallet").pack()),
        InlineKeyboardButton(text="➕ Add money",           callback_data=MainMenuCb(action="deposit").pack()),
    )
    return builder.as_markup()


def admin_main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🧾 Pending deposits",   callback_data=AdminPanelCb(action="deposits").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="🎮 Player menu",        callback_data=MainMenuCb(action="main").pack()),
    )
    return builder.as_markup()


def back_to_main() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
