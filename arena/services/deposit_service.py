"""
Deposit service: pending deposit records and the admin decision on them.

A deposit is created PENDING by the payment proof pipeline and moved to
APPROVED or REJECTED exactly once, by an admin. Approval credits the wallet in
the same transaction as the status change.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from arena.models.models import DepositStatus, PendingDeposit
from arena.services.wallet_service import credit_wallet
from arena.validators import PaymentProof

logger = logging.getLogger(__name__)


# ── Records ───────────────────────────────────────────────────────────────────

async def create_pending_deposit(
    session: AsyncSession,
    user_id: int,
    proof: PaymentProof,
    warnings: Optional[List[str]] = None,
) -> PendingDeposit:
    details = proof.details()
    if warnings:
        details["warnings"] = list(warnings)

    deposit = PendingDeposit(
        request_id=proof.request_id,
        user_id=user_id,
        amount=proof.amount,
        currency=proof.currency,
        payment_method=proof.payment_method,
        reference=proof.reference,
        screenshot_url=proof.screenshot_url,
        receipt_url=proof.receipt_url,
        bank_statement_url=proof.bank_statement_url,
        details=details,
        status=DepositStatus.PENDING,
    )
    session.add(deposit)
    await session.flush()
    return deposit


async def get_pending_deposit(
    session: AsyncSession,
    deposit_id: int,
    fresh: bool = False,
) -> Optional[PendingDeposit]:
    q = (
        select(PendingDeposit)
        .where(PendingDeposit.id == deposit_id)
        .options(selectinload(PendingDeposit.user))
    )
    if fresh:
        q = q.execution_options(populate_existing=True)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def get_deposit_by_request_id(session: AsyncSession, request_id: str) -> Optional[PendingDeposit]:
    result = await session.execute(
        select(PendingDeposit).where(PendingDeposit.request_id == request_id)
    )
    return result.scalar_one_or_none()


async def find_pending_by_reference(
    session: AsyncSession,
    user_id: int,
    reference: str,
) -> Optional[PendingDeposit]:
    result = await session.execute(
        select(PendingDeposit).where(
            PendingDeposit.user_id == user_id,
            PendingDeposit.reference == reference,
            PendingDeposit.status == DepositStatus.PENDING,
        )
    )
    return result.scalars().first()


async def list_pending_deposits(session: AsyncSession, limit: int = 20) -> List[PendingDeposit]:
    """Oldest first: the admin queue."""
    result = await session.execute(
        select(PendingDeposit)
        .where(PendingDeposit.status == DepositStatus.PENDING)
        .options(selectinload(PendingDeposit.user))
        .order_by(PendingDeposit.created_at.asc(), PendingDeposit.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_user_deposits(session: AsyncSession, user_id: int, limit: int = 10) -> List[PendingDeposit]:
    result = await session.execute(
        select(PendingDeposit)
        .where(PendingDeposit.user_id == user_id)
        .order_by(PendingDeposit.created_at.desc(), PendingDeposit.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ── Admin decisions ───────────────────────────────────────────────────────────

async def _decide(
    session: AsyncSession,
    deposit_id: int,
    status: str,
    admin_id: int,
    **values,
) -> bool:
    """PENDING → `status`. False when the deposit is missing or already decided."""
    result = await session.execute(
        update(PendingDeposit)
        .where(
            PendingDeposit.id == deposit_id,
            PendingDeposit.status == DepositStatus.PENDING,
        )
        .values(status=status, verified_by=admin_id, verified_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def approve_deposit(
    session: AsyncSession,
    deposit_id: int,
    admin_id: int,            # admin telegram_id
    notes: Optional[str] = None,
) -> Optional[PendingDeposit]:
    """
    Approve a pending deposit and credit its amount to the user's wallet.

    Returns the updated deposit, or None if it was not PENDING (so a double
    click can never credit twice). The caller commits.
    """
    if not await _decide(session, deposit_id, DepositStatus.APPROVED, admin_id, admin_notes=notes):
        return None

    deposit = await get_pending_deposit(session, deposit_id, fresh=True)
    await credit_wallet(
        session,
        user_id=deposit.user_id,
        amount=deposit.amount,
        currency=deposit.currency,
        deposit_id=deposit.id,
    )
    logger.info("Deposit %d approved by %d", deposit_id, admin_id)
    return deposit


async def reject_deposit(
    session: AsyncSession,
    deposit_id: int,
    admin_id: int,
    reason: str,
) -> Optional[PendingDeposit]:
    reason = reason.strip()
    if not reason:
        raise ValueError("Rejection reason is required")
    if not await _decide(session, deposit_id, DepositStatus.REJECTED, admin_id, rejection_reason=reason):
        return None

    logger.info("Deposit %d rejected by %d: %s", deposit_id, admin_id, reason)
    return await get_pending_deposit(session, deposit_id, fresh=True)
