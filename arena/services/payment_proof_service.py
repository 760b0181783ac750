"""
Payment proof pipeline: validate → upload evidence → record PENDING deposit.

The client request id on the proof makes the whole submit idempotent:

  * evidence is stored under keys derived from the request id, and a blob that
    already exists is reused instead of uploaded again;
  * the pending deposit row is unique on request id, so a retry after a failed
    or lost commit returns the deposit created the first time.

Status changes (APPROVED / REJECTED) are made by admins only; this module just
reads them.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arena.config import settings
from arena.models.models import DepositStatus, PendingDeposit
from arena.services.blob_store import LocalBlobStore
from arena.services.deposit_service import (
    create_pending_deposit,
    find_pending_by_reference,
    get_deposit_by_request_id,
)
from arena.services.errors import DuplicateDeposit, FlowValidationError, RemoteUnavailable
from arena.validators import PaymentProof, validate_payment_proof

logger = logging.getLogger(__name__)


async def submit_payment_proof(
    session: AsyncSession,
    blob_store: LocalBlobStore,
    user_id: int,             # users.id
    proof: PaymentProof,
    evidence: Optional[bytes],
    bank_statement: Optional[bytes] = None,
    receipt: Optional[bytes] = None,
) -> int:
    """
    Submit a payment proof and return the pending deposit id.

    Raises FlowValidationError (nothing uploaded, nothing written),
    DuplicateDeposit, UploadFailed or RemoteUnavailable. The last two are safe
    to retry with the same proof.request_id.
    """
    check = validate_payment_proof(
        proof,
        has_evidence=bool(evidence),
        has_bank_statement=bool(bank_statement),
        has_receipt=bool(receipt),
    )
    if not check.is_valid:
        raise FlowValidationError("\n".join(check.errors))

    try:
        existing = await get_deposit_by_request_id(session, proof.request_id)
        duplicate = None
        if existing is None:
            duplicate = await find_pending_by_reference(session, user_id, proof.reference)
    except SQLAlchemyError as exc:
        await session.rollback()
        raise RemoteUnavailable() from exc

    if existing is not None:
        logger.info("Deposit request %s already recorded as #%d", proof.request_id, existing.id)
        return existing.id
    if duplicate is not None:
        raise DuplicateDeposit()

    proof = await _store_evidence(blob_store, proof, evidence, bank_statement, receipt)

    try:
        deposit = await create_pending_deposit(session, user_id, proof, warnings=check.warnings)
        await session.commit()
    except IntegrityError as exc:
        # A concurrent retry with the same request id won the insert.
        await session.rollback()
        try:
            winner = await get_deposit_by_request_id(session, proof.request_id)
        except SQLAlchemyError as read_exc:
            await session.rollback()
            logger.warning("Could not re-read deposit %s: %s", proof.request_id, read_exc)
            raise RemoteUnavailable() from read_exc
        if winner is None:
            raise RemoteUnavailable() from exc
        return winner.id
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.warning("Could not record deposit %s: %s", proof.request_id, exc)
        raise RemoteUnavailable(
            "Your screenshot was saved but the deposit could not be recorded. Please try again."
        ) from exc

    logger.info(
        "Pending deposit #%d: user=%d amount=%.2f %s ref=%s",
        deposit.id, user_id, deposit.amount, deposit.currency, deposit.reference,
    )
    return deposit.id


async def _store_evidence(
    blob_store: LocalBlobStore,
    proof: PaymentProof,
    evidence: Optional[bytes],
    bank_statement: Optional[bytes],
    receipt: Optional[bytes],
) -> PaymentProof:
    update = {}
    uploads = (
        ("screenshot_url", "screenshot", evidence, False),
        ("bank_statement_url", "bank_statement", bank_statement, True),
        ("receipt_url", "receipt", receipt, True),
    )
    for field, name, data, allow_pdf in uploads:
        if not data or getattr(proof, field):
            continue
        key_stem = f"deposits/{proof.request_id}/{name}"
        stored = blob_store.find(key_stem)
        if stored is not None:
            update[field] = blob_store.url_for(stored)
        else:
            update[field] = await blob_store.upload_image(data, key_stem, allow_pdf=allow_pdf)
    return proof.model_copy(update=update) if update else proof


# ── Observation ───────────────────────────────────────────────────────────────

async def get_deposit_status(session: AsyncSession, deposit_id: int) -> Optional[str]:
    result = await session.execute(
        select(PendingDeposit.status).where(PendingDeposit.id == deposit_id)
    )
    return result.scalar_one_or_none()


async def wait_for_deposit_decision(
    session_factory: async_sessionmaker[AsyncSession],
    deposit_id: int,
    poll_interval: Optional[float] = None,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """
    Poll until an admin approves or rejects the deposit.

    Returns the final status, the last seen status on timeout, or None if the
    deposit does not exist. Each poll uses its own short-lived session.
    """
    poll_interval = poll_interval if poll_interval is not None else settings.DEPOSIT_POLL_INTERVAL
    timeout = timeout if timeout is not None else settings.DEPOSIT_POLL_TIMEOUT

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    status: Optional[str] = DepositStatus.PENDING

    while True:
        try:
            async with session_factory() as session:
                status = await get_deposit_status(session, deposit_id)
        except SQLAlchemyError as exc:
            logger.warning("Polling deposit #%d failed, retrying in %.1fs: %s", deposit_id, poll_interval, exc)
        else:
            if status is None or status != DepositStatus.PENDING:
                return status

        remaining = deadline - loop.time()
        if remaining <= 0:
            return status
        await asyncio.sleep(min(poll_interval, remaining))
