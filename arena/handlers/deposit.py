"""
Add-money handler: collects a payment proof and submits it for admin review.

Dialog:
  ➕ Add money → amount → method (UPI / bank transfer) → reference
     → sender UPI ID (optional) or bank details
     → screenshot → bank statement (large NGN amounts only)
     → summary → Submit 📤

The proof is kept in FSM data as a dict; uploaded photos are kept as Telegram
file ids and downloaded only on submit, so a retry after an upload or network
failure sends exactly the same request (same request id).

After a successful submit a background watcher polls the deposit and pushes
the admin decision to the user.
"""
import asyncio
import logging
from html import escape
from typing import Optional

from aiogram import Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arena.config import settings
from arena.keyboards import (
    DepositCb,
    MainMenuCb,
    cancel_deposit_kb,
    confirm_deposit_kb,
    deposit_status_kb,
    payment_method_kb,
    player_main_menu,
    skip_kb,
)
from arena.models.base import AsyncSessionFactory
from arena.models.models import DepositStatus
from arena.services.blob_store import LocalBlobStore
from arena.services.deposit_service import get_pending_deposit
from arena.services.errors import ArenaError, UploadFailed
from arena.services.money import format_amount, format_amount_tidy, minimum_amount
from arena.services.notification_service import notify_admins_new_deposit, notify_deposit_decision
from arena.services.payment_proof_service import submit_payment_proof, wait_for_deposit_decision
from arena.services.user_service import get_user
from arena.services.wallet_service import ensure_wallet, get_wallet_balance
from arena.states import DepositStates
from arena.validators import (
    BANK_STATEMENT_THRESHOLDS,
    DepositAmountInput,
    PaymentMethod,
    PaymentProof,
    first_error,
    validate_payment_proof,
)

logger = logging.getLogger(__name__)
router = Router(name="deposit")

# Strong references to running watchers; finished tasks remove themselves.
_watchers: set[asyncio.Task] = set()


async def _load_proof(state: FSMContext) -> PaymentProof:
    data = await state.get_data()
    return PaymentProof.model_validate(data["proof"])


async def _save_proof(state: FSMContext, proof: PaymentProof) -> None:
    await state.update_data(proof=proof.model_dump())


def proof_summary(proof: PaymentProof, has_statement: bool = False) -> str:
    lines = [
        "🧾 <b>Check your payment proof</b>\n",
        f"💰 Amount: <b>{format_amount(proof.amount, proof.currency)}</b>",
        f"💳 Method: {PaymentMethod.LABELS.get(proof.payment_method, proof.payment_method)}",
        f"🔖 {proof.reference_label}: <code>{escape(proof.reference)}</code>",
    ]
    if proof.payment_method == PaymentMethod.UPI:
        if proof.sender_upi_id:
            lines.append(f"📱 Sender UPI: <code>{escape(proof.sender_upi_id)}</code>")
        if proof.upi_app_name:
            lines.append(f"📲 App: {escape(proof.upi_app_name)}")
    else:
        lines.append(
            f"🏦 {escape(proof.bank_name or '—')} · {escape(proof.account_number or '—')} · "
            f"{escape(proof.account_name or '—')}"
        )
    lines.append("🖼 Screenshot: attached")
    if proof.requires_bank_statement:
        lines.append(f"📄 Bank statement: {'attached' if has_statement else 'missing'}")

    check = validate_payment_proof(proof, has_evidence=True, has_bank_statement=has_statement)
    if check.warnings:
        lines.append("")
        lines.extend(f"⚠️ <i>{escape(w)}</i>" for w in check.warnings)
    return "\n".join(lines)


# ── Entry ─────────────────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "deposit"))
async def cq_deposit_start(callback: CallbackQuery, session: AsyncSession, state: FSMContext) -> None:
    user = await get_user(session, callback.from_user.id)
    if user is None:
        await callback.answer("Please send /start first.", show_alert=True)
        return
    wallet = await ensure_wallet(session, user.id)

    await state.clear()
    await state.set_state(DepositStates.enter_amount)
    await state.update_data(currency=wallet.currency)
    await callback.message.answer(
        f"➕ <b>Add money</b>\n\n"
        f"How much did you send? Minimum is "
        f"<b>{format_amount_tidy(minimum_amount(wallet.currency), wallet.currency)}</b>.",
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_deposit_kb(),
    )
    await callback.answer()


@router.message(DepositStates.enter_amount)
async def msg_amount(message: Message, state: FSMContext) -> None:
    raw = (message.text or "").strip().replace(",", "")
    data = await state.get_data()
    try:
        amount = DepositAmountInput(amount=raw, currency=data.get("currency", "INR"))
    except ValidationError as e:
        await message.answer(f"⚠️ {first_error(e)}", reply_markup=cancel_deposit_kb())
        return

    await _save_proof(state, PaymentProof(currency=amount.currency, amount=amount.amount))
    await state.set_state(DepositStates.choose_method)
    await message.answer("💳 How did you pay?", reply_markup=payment_method_kb())


# ── Method + reference ────────────────────────────────────────────────────────

@router.callback_query(DepositStates.choose_method, DepositCb.filter(F.action == "method"))
async def cq_method(callback: CallbackQuery, callback_data: DepositCb, state: FSMContext) -> None:
    proof = (await _load_proof(state)).model_copy(update={"payment_method": callback_data.value})
    await _save_proof(state, proof)
    await state.set_state(DepositStates.enter_reference)

    hint = "the 12-digit UTR number" if proof.payment_method == PaymentMethod.UPI else "the transfer reference"
    await callback.message.edit_text(
        f"🔖 Send the <b>{proof.reference_label}</b> ({hint}):",
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_deposit_kb(),
    )
    await callback.answer()


@router.message(DepositStates.enter_reference)
async def msg_reference(message: Message, state: FSMContext) -> None:
    proof = (await _load_proof(state)).model_copy(update={"reference": (message.text or "").strip()})
    if not proof.reference:
        await message.answer(f"⚠️ {proof.reference_label} is required", reply_markup=cancel_deposit_kb())
        return
    await _save_proof(state, proof)

    if proof.payment_method == PaymentMethod.UPI:
        await state.set_state(DepositStates.enter_sender_upi)
        await message.answer(
            "📱 Send the UPI ID you paid from and, on a second line, the app you used "
            "(e.g. <code>name@okaxis</code> / <code>GPay</code>).",
            parse_mode=ParseMode.HTML,
            reply_markup=skip_kb(),
        )
    else:
        await state.set_state(DepositStates.enter_bank_details)
        await message.answer(
            "🏦 Send three lines:\n"
            "1. Bank name\n"
            "2. Account number\n"
            "3. Account holder name",
            reply_markup=cancel_deposit_kb(),
        )


@router.message(DepositStates.enter_sender_upi)
async def msg_sender_upi(message: Message, state: FSMContext) -> None:
    lines = [line.strip() for line in (message.text or "").splitlines() if line.strip()]
    if not lines:
        await message.answer("⚠️ Send your UPI ID or tap Skip.", reply_markup=skip_kb())
        return

    update = {"sender_upi_id": lines[0]}
    if len(lines) > 1:
        update["upi_app_name"] = lines[1]
    proof = (await _load_proof(state)).model_copy(update=update)

    errors = [e for e in validate_payment_proof(proof, has_evidence=True).errors if "UPI ID" in e]
    if errors:
        await message.answer(f"⚠️ {escape(errors[0])}", reply_markup=skip_kb())
        return

    await _save_proof(state, proof)
    await _ask_screenshot(message, state)


@router.message(DepositStates.enter_bank_details)
async def msg_bank_details(message: Message, state: FSMContext) -> None:
    lines = [line.strip() for line in (message.text or "").splitlines() if line.strip()]
    if len(lines) != 3:
        await message.answer(
            "⚠️ Please send exactly three lines: bank name, account number, account holder name.",
            reply_markup=cancel_deposit_kb(),
        )
        return

    proof = (await _load_proof(state)).model_copy(
        update={"bank_name": lines[0], "account_number": lines[1], "account_name": lines[2]}
    )
    bank_errors = [
        e for e in validate_payment_proof(proof, has_evidence=True).errors
        if "Bank" in e or "Account" in e or "account" in e
    ]
    if bank_errors:
        await message.answer(f"⚠️ {escape(bank_errors[0])}", reply_markup=cancel_deposit_kb())
        return

    await _save_proof(state, proof)
    await _ask_screenshot(message, state)


@router.callback_query(DepositStates.enter_sender_upi, DepositCb.filter(F.action == "skip"))
async def cq_skip_sender_upi(callback: CallbackQuery, state: FSMContext) -> None:
    await _ask_screenshot(callback.message, state)
    await callback.answer()


# ── Evidence ──────────────────────────────────────────────────────────────────

async def _ask_screenshot(message: Message, state: FSMContext) -> None:
    await state.set_state(DepositStates.upload_screenshot)
    await message.answer("🖼 Now send a <b>screenshot</b> of the payment.", parse_mode=ParseMode.HTML,
                         reply_markup=cancel_deposit_kb())


def _file_id(message: Message, allow_documents: bool) -> Optional[str]:
    if message.photo:
        return message.photo[-1].file_id
    if allow_documents and message.document:
        return message.document.file_id
    return None


@router.message(DepositStates.upload_screenshot)
async def msg_screenshot(message: Message, state: FSMContext) -> None:
    file_id = _file_id(message, allow_documents=True)
    if file_id is None:
        await message.answer("⚠️ Please send the screenshot as a photo.", reply_markup=cancel_deposit_kb())
        return
    await state.update_data(screenshot_file_id=file_id)

    proof = await _load_proof(state)
    if proof.requires_bank_statement:
        await state.set_state(DepositStates.upload_statement)
        await message.answer(
            f"📄 Amounts above {format_amount_tidy(BANK_STATEMENT_THRESHOLDS[proof.currency], proof.currency)} need a <b>bank statement</b> "
            f"showing the debit. Send it as a photo or PDF.",
            parse_mode=ParseMode.HTML,
            reply_markup=cancel_deposit_kb(),
        )
        return
    await _show_confirm(message, state)


@router.message(DepositStates.upload_statement)
async def msg_statement(message: Message, state: FSMContext) -> None:
    file_id = _file_id(message, allow_documents=True)
    if file_id is None:
        await message.answer("⚠️ Please send the bank statement as a photo or PDF.",
                             reply_markup=cancel_deposit_kb())
        return
    await state.update_data(statement_file_id=file_id)
    await _show_confirm(message, state)


async def _show_confirm(message: Message, state: FSMContext) -> None:
    await state.set_state(DepositStates.confirm)
    data = await state.get_data()
    proof = PaymentProof.model_validate(data["proof"])
    await message.answer(
        proof_summary(proof, has_statement=bool(data.get("statement_file_id"))),
        parse_mode=ParseMode.HTML,
        reply_markup=confirm_deposit_kb(),
    )


async def _download(bot: Bot, file_id: Optional[str]) -> Optional[bytes]:
    if not file_id:
        return None
    try:
        buffer = await bot.download(file_id)
    except TelegramAPIError as e:
        logger.warning("Could not download file %s from Telegram: %s", file_id, e)
        raise UploadFailed() from e
    return buffer.read() if buffer is not None else None


# ── Submit ────────────────────────────────────────────────────────────────────

@router.callback_query(DepositStates.confirm, DepositCb.filter(F.action == "submit"))
async def cq_submit(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    bot: Bot,
    blob_store: LocalBlobStore,
) -> None:
    data = await state.get_data()
    if data.get("submitting"):
        await callback.answer("⏳ Already submitting…")
        return
    await state.update_data(submitting=True)
    await callback.answer()

    proof = PaymentProof.model_validate(data["proof"])
    telegram_id = callback.from_user.id
    deposit_id: Optional[int] = None
    try:
        user = await get_user(session, telegram_id)
        if user is None:
            await callback.message.answer("Please send /start first.")
            return
        user_id = user.id

        evidence = await _download(bot, data.get("screenshot_file_id"))
        statement = await _download(bot, data.get("statement_file_id"))
        deposit_id = await submit_payment_proof(
            session, blob_store, user_id, proof, evidence, bank_statement=statement
        )
    except ArenaError as e:
        suffix = "\n\nTap <b>Submit</b> to try again." if e.retryable else ""
        await callback.message.answer(
            f"⚠️ {escape(e.message)}{suffix}",
            parse_mode=ParseMode.HTML,
            reply_markup=confirm_deposit_kb() if e.retryable else cancel_deposit_kb(),
        )
        return
    finally:
        if deposit_id is None:
            await state.update_data(submitting=False)

    await state.clear()
    await callback.message.edit_text(
        f"📤 <b>Payment proof submitted</b>\n\n"
        f"Deposit #{deposit_id} of {format_amount(proof.amount, proof.currency)} is awaiting review. "
        f"We'll message you as soon as an admin decides.",
        parse_mode=ParseMode.HTML,
        reply_markup=deposit_status_kb(deposit_id),
    )

    deposit = await get_pending_deposit(session, deposit_id)
    if deposit is not None:
        await notify_admins_new_deposit(bot, settings.admin_ids_list, deposit)
    watch_deposit(bot, telegram_id, deposit_id)


def watch_deposit(
    bot: Bot,
    telegram_id: int,
    deposit_id: int,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionFactory,
) -> asyncio.Task:
    """Start a background task that notifies the user once the deposit is decided."""
    task = asyncio.create_task(_watch(bot, telegram_id, deposit_id, session_factory))
    _watchers.add(task)
    task.add_done_callback(_watchers.discard)
    return task


async def _watch(
    bot: Bot,
    telegram_id: int,
    deposit_id: int,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    status = await wait_for_deposit_decision(session_factory, deposit_id)
    if status not in (DepositStatus.APPROVED, DepositStatus.REJECTED):
        logger.info("Stopped watching deposit #%d (status=%s)", deposit_id, status)
        return

    async with session_factory() as session:
        deposit = await get_pending_deposit(session, deposit_id)
        balance = None
        if status == DepositStatus.APPROVED:
            balance = await get_wallet_balance(session, deposit.user_id)
    await notify_deposit_decision(bot, telegram_id, deposit, balance)


# ── Status / cancel ───────────────────────────────────────────────────────────

@router.callback_query(DepositCb.filter(F.action == "status"))
async def cq_status(callback: CallbackQuery, callback_data: DepositCb, session: AsyncSession) -> None:
    deposit = await get_pending_deposit(session, callback_data.did)
    user = await get_user(session, callback.from_user.id)
    if deposit is None or user is None or deposit.user_id != user.id:
        await callback.answer("Deposit not found.", show_alert=True)
        return
    await callback.answer(
        f"{deposit.status_emoji} Deposit #{deposit.id}: {deposit.status.lower()}",
        show_alert=True,
    )


@router.callback_query(DepositCb.filter(F.action == "cancel"))
async def cq_cancel(callback: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await callback.message.answer(
        "Deposit cancelled.\n\n🎮 <b>ARENA</b>",
        parse_mode=ParseMode.HTML,
        reply_markup=player_main_menu(),
    )
    await callback.answer()
