"""
Wallet service: balances and the transaction ledger.

Balance changes are single conditional UPDATE statements, never
read-modify-write in Python, so concurrent sessions cannot overdraw a wallet.
Callers own the transaction (commit / rollback).
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from arena.models.models import TransactionType, Wallet, WalletTransaction
from arena.services.errors import InsufficientBalance

logger = logging.getLogger(__name__)


async def get_wallet(session: AsyncSession, user_id: int, fresh: bool = False) -> Optional[Wallet]:
    q = select(Wallet).where(Wallet.user_id == user_id)
    if fresh:
        q = q.execution_options(populate_existing=True)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def ensure_wallet(session: AsyncSession, user_id: int, currency: str = "INR") -> Wallet:
    wallet = await get_wallet(session, user_id)
    if wallet is None:
        wallet = Wallet(user_id=user_id, balance=0.0, currency=currency)
        session.add(wallet)
        await session.flush()
    return wallet


async def get_wallet_balance(session: AsyncSession, user_id: int) -> float:
    """Current balance straight from the database; 0.0 when no wallet exists."""
    result = await session.execute(
        select(Wallet.balance).where(Wallet.user_id == user_id)
    )
    balance = result.scalar_one_or_none()
    return float(balance) if balance is not None else 0.0


async def debit_wallet(
    session: AsyncSession,
    user_id: int,
    amount: float,
    currency: str,
    tournament_id: Optional[int] = None,
) -> None:
    """
    Subtract `amount` only if the balance covers it.

    Raises InsufficientBalance when no row matched (missing wallet or balance
    too low). Writes a negative ledger row on success.
    """
    result = await session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientBalance()

    session.add(
        WalletTransaction(
            user_id=user_id,
            type=TransactionType.ENTRY_FEE,
            amount=-amount,
            currency=currency,
            tournament_id=tournament_id,
        )
    )
    await session.flush()


async def credit_wallet(
    session: AsyncSession,
    user_id: int,
    amount: float,
    currency: str,
    deposit_id: Optional[int] = None,
) -> None:
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    wallet = await ensure_wallet(session, user_id, currency)
    await session.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance=Wallet.balance + amount)
        .execution_options(synchronize_session=False)
    )
    session.add(
        WalletTransaction(
            user_id=user_id,
            type=TransactionType.DEPOSIT,
            amount=amount,
            currency=currency,
            deposit_id=deposit_id,
        )
    )
    await session.flush()
    logger.info("Credited %.2f %s to user %d (deposit=%s)", amount, currency, user_id, deposit_id)


async def list_transactions(session: AsyncSession, user_id: int, limit: int = 20) -> List[WalletTransaction]:
    result = await session.execute(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
