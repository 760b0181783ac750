"""
Admin deposit review: pending queue, approve / reject with reason, KYC.

Approving credits the wallet and flips the deposit status in one transaction
(committed by DatabaseMiddleware). The user is notified straight away; the
background watcher started at submit time may notify again, which is harmless.
"""
import logging
from html import escape

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from arena.keyboards import (
    AdminDepositCb,
    AdminPanelCb,
    admin_main_menu,
    cancel_admin_input_kb,
    deposit_review_kb,
    pending_deposits_kb,
)
from arena.middlewares import IsAdmin
from arena.models.models import KycStatus, PendingDeposit
from arena.services.deposit_service import (
    approve_deposit,
    get_pending_deposit,
    list_pending_deposits,
    reject_deposit,
)
from arena.services.money import format_amount
from arena.services.notification_service import notify_deposit_decision
from arena.services.user_service import set_kyc_status
from arena.services.wallet_service import get_wallet_balance
from arena.states import AdminDepositStates

logger = logging.getLogger(__name__)
router = Router(name="admin_deposits")


def deposit_card(d: PendingDeposit) -> str:
    user = d.user
    who = escape(user.display_name) if user else f"user #{d.user_id}"
    if user and user.username:
        who += f" (@{escape(user.username)})"
    lines = [
        f"{d.status_emoji} <b>Deposit #{d.id}</b> · {d.status}",
        "",
        f"👤 {who}",
        f"🪪 KYC: {user.kyc_status if user else '—'}",
        f"💰 {format_amount(d.amount, d.currency)} via {d.payment_method}",
        f"🔖 Ref: <code>{escape(d.reference)}</code>",
    ]
    details = dict(d.details or {})
    warnings = details.pop("warnings", [])
    for key, value in details.items():
        lines.append(f"• {key.replace('_', ' ')}: <code>{escape(str(value))}</code>")
    lines.append(f"🖼 <a href=\"{escape(d.screenshot_url)}\">Screenshot</a>")
    if d.bank_statement_url:
        lines.append(f"📄 <a href=\"{escape(d.bank_statement_url)}\">Bank statement</a>")
    if d.receipt_url:
        lines.append(f"🧾 <a href=\"{escape(d.receipt_url)}\">Receipt</a>")
    if warnings:
        lines.append("")
        lines.extend(f"⚠️ <i>{escape(w)}</i>" for w in warnings)
    return "\n".join(lines)


async def _show_queue(message: Message, session: AsyncSession, edit: bool = True) -> None:
    deposits = await list_pending_deposits(session)
    text = f"🧾 <b>Pending deposits</b> ({len(deposits)})"
    if not deposits:
        text += "\n\n<i>Nothing to review.</i>"
    if edit:
        await message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=pending_deposits_kb(deposits))
    else:
        await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=pending_deposits_kb(deposits))


# ── Panel ─────────────────────────────────────────────────────────────────────

@router.callback_query(AdminPanelCb.filter(F.action == "main"), IsAdmin())
async def cq_admin_home(callback: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await callback.message.edit_text(
        "⚡ <b>Admin panel</b>\n\nChoose a section:",
        parse_mode=ParseMode.HTML,
        reply_markup=admin_main_menu(),
    )
    await callback.answer()


@router.callback_query(AdminPanelCb.filter(F.action == "deposits"), IsAdmin())
@router.callback_query(AdminDepositCb.filter(F.action == "list"), IsAdmin())
async def cq_queue(callback: CallbackQuery, session: AsyncSession, state: FSMContext) -> None:
    await state.clear()
    await _show_queue(callback.message, session)
    await callback.answer()


@router.message(Command("deposits"), IsAdmin())
async def cmd_deposits(message: Message, session: AsyncSession) -> None:
    await _show_queue(message, session, edit=False)


@router.callback_query(AdminDepositCb.filter(F.action == "view"), IsAdmin())
async def cq_view(callback: CallbackQuery, callback_data: AdminDepositCb, session: AsyncSession) -> None:
    d = await get_pending_deposit(session, callback_data.did)
    if d is None:
        await callback.answer("Deposit not found.", show_alert=True)
        return
    await callback.message.edit_text(
        deposit_card(d),
        parse_mode=ParseMode.HTML,
        reply_markup=deposit_review_kb(d.id),
        disable_web_page_preview=True,
    )
    await callback.answer()


# ── Decisions ─────────────────────────────────────────────────────────────────

@router.callback_query(AdminDepositCb.filter(F.action == "approve"), IsAdmin())
async def cq_approve(callback: CallbackQuery, callback_data: AdminDepositCb, session: AsyncSession) -> None:
    deposit = await approve_deposit(session, callback_data.did, callback.from_user.id)
    if deposit is None:
        await callback.answer("Already decided or not found.", show_alert=True)
        return

    telegram_id = deposit.user.telegram_id
    balance = await get_wallet_balance(session, deposit.user_id)
    await session.commit()

    await callback.answer("✅ Approved, wallet credited.")
    await notify_deposit_decision(callback.bot, telegram_id, deposit, balance)
    await _show_queue(callback.message, session)


@router.callback_query(AdminDepositCb.filter(F.action == "reject"), IsAdmin())
async def cq_reject_prompt(callback: CallbackQuery, callback_data: AdminDepositCb, state: FSMContext) -> None:
    await state.set_state(AdminDepositStates.enter_reject_reason)
    await state.update_data(deposit_id=callback_data.did)
    await callback.message.answer(
        f"❌ Rejecting deposit #{callback_data.did}.\nSend the reason (shown to the user):",
        reply_markup=cancel_admin_input_kb(),
    )
    await callback.answer()


@router.message(AdminDepositStates.enter_reject_reason, IsAdmin())
async def msg_reject_reason(message: Message, session: AsyncSession, state: FSMContext) -> None:
    data = await state.get_data()
    deposit_id = data["deposit_id"]
    try:
        deposit = await reject_deposit(session, deposit_id, message.from_user.id, message.text or "")
    except ValueError as e:
        await message.answer(f"⚠️ {e}", reply_markup=cancel_admin_input_kb())
        return

    await state.clear()
    if deposit is None:
        await message.answer(f"Deposit #{deposit_id} was already decided.")
        await _show_queue(message, session, edit=False)
        return

    telegram_id = deposit.user.telegram_id
    await session.commit()
    await message.answer(f"❌ Deposit #{deposit_id} rejected.")
    await notify_deposit_decision(message.bot, telegram_id, deposit)
    await _show_queue(message, session, edit=False)


# ── KYC ───────────────────────────────────────────────────────────────────────

@router.message(Command("kyc"), IsAdmin())
async def cmd_kyc(message: Message, command: CommandObject, session: AsyncSession) -> None:
    usage = f"Usage: <code>/kyc &lt;telegram_id&gt; {'|'.join(KycStatus.ALL)}</code>"
    parts = (command.args or "").split()
    if len(parts) != 2 or not parts[0].isdigit():
        await message.answer(usage, parse_mode=ParseMode.HTML)
        return

    try:
        user = await set_kyc_status(session, int(parts[0]), parts[1])
    except ValueError as e:
        await message.answer(f"⚠️ {escape(str(e))}\n{usage}", parse_mode=ParseMode.HTML)
        return
    if user is None:
        await message.answer("User not found. They must /start the bot first.")
        return

    logger.info("KYC for %d set to %s by %d", user.telegram_id, user.kyc_status, message.from_user.id)
    await message.answer(f"🪪 KYC for {escape(user.display_name)}: <b>{user.kyc_status}</b>", parse_mode=ParseMode.HTML)
