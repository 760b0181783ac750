"""
Integration tests: admin deposit decisions and KYC (deposit_service.py,
user_service.py, wallet_service.py).

Coverage:
  - Approve credits the wallet once and writes a deposit ledger row
  - A second approve (double click) or approve-after-reject changes nothing
  - Reject requires a reason and never credits
  - Pending queue ordering
  - KYC status updates
"""
from __future__ import annotations

import pytest
from sqlalchemy import select

from arena.models.models import DepositStatus, KycStatus, TransactionType, WalletTransaction
from arena.services.deposit_service import (
    approve_deposit,
    create_pending_deposit,
    get_pending_deposit,
    list_pending_deposits,
    list_user_deposits,
    reject_deposit,
)
from arena.services.user_service import get_kyc_status, get_user, set_kyc_status
from arena.services.wallet_service import credit_wallet, get_wallet_balance, list_transactions
from arena.validators import PaymentMethod, PaymentProof

ADMIN = 123456789


async def _pending(session, user_id: int, reference: str = "412345678901", amount: float = 250.0) -> int:
    proof = PaymentProof(
        currency="INR",
        amount=amount,
        payment_method=PaymentMethod.UPI,
        reference=reference,
        screenshot_url="https://cdn.test/media/x.png",
    )
    deposit = await create_pending_deposit(session, user_id, proof)
    await session.commit()
    return deposit.id


class TestApprove:
    async def test_approve_credits_wallet(self, async_session, make_player) -> None:
        user = await make_player(async_session, balance=10.0)
        deposit_id = await _pending(async_session, user.id)

        deposit = await approve_deposit(async_session, deposit_id, ADMIN, notes="UTR matches")
        await async_session.commit()

        assert deposit.status == DepositStatus.APPROVED
        assert deposit.verified_by == ADMIN
        assert deposit.verified_at is not None
        assert deposit.admin_notes == "UTR matches"
        assert await get_wallet_balance(async_session, user.id) == pytest.approx(260.0)

        ledger = await list_transactions(async_session, user.id)
        assert [(tx.type, tx.amount, tx.deposit_id) for tx in ledger] == [
            (TransactionType.DEPOSIT, 250.0, deposit_id)
        ]

    async def test_approve_twice_credits_once(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        deposit_id = await _pending(async_session, user.id)

        assert await approve_deposit(async_session, deposit_id, ADMIN) is not None
        await async_session.commit()
        assert await approve_deposit(async_session, deposit_id, ADMIN) is None
        await async_session.commit()

        assert await get_wallet_balance(async_session, user.id) == pytest.approx(250.0)
        rows = (await async_session.execute(select(WalletTransaction))).scalars().all()
        assert len(rows) == 1

    async def test_approve_after_reject_is_noop(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        deposit_id = await _pending(async_session, user.id)
        await reject_deposit(async_session, deposit_id, ADMIN, "Amount mismatch")
        await async_session.commit()

        assert await approve_deposit(async_session, deposit_id, ADMIN) is None
        assert await get_wallet_balance(async_session, user.id) == 0.0

    async def test_approve_missing_deposit(self, async_session) -> None:
        assert await approve_deposit(async_session, 999, ADMIN) is None

    async def test_credit_creates_missing_wallet(self, async_session) -> None:
        from arena.services.user_service import upsert_user

        user = await upsert_user(async_session, 777, "NoWallet", None, None)
        await credit_wallet(async_session, user.id, 40.0, "USD")
        await async_session.commit()
        assert await get_wallet_balance(async_session, user.id) == pytest.approx(40.0)

    async def test_credit_rejects_non_positive(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        with pytest.raises(ValueError):
            await credit_wallet(async_session, user.id, 0.0, "INR")


class TestReject:
    async def test_reject_sets_reason(self, async_session, make_player) -> None:
        user = await make_player(async_session, balance=5.0)
        deposit_id = await _pending(async_session, user.id)

        deposit = await reject_deposit(async_session, deposit_id, ADMIN, "  Screenshot unreadable ")
        await async_session.commit()

        assert deposit.status == DepositStatus.REJECTED
        assert deposit.rejection_reason == "Screenshot unreadable"
        assert await get_wallet_balance(async_session, user.id) == pytest.approx(5.0)

    async def test_reject_requires_reason(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        deposit_id = await _pending(async_session, user.id)
        with pytest.raises(ValueError, match="reason"):
            await reject_deposit(async_session, deposit_id, ADMIN, "   ")
        assert (await get_pending_deposit(async_session, deposit_id)).status == DepositStatus.PENDING

    async def test_reject_twice(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        deposit_id = await _pending(async_session, user.id)
        await reject_deposit(async_session, deposit_id, ADMIN, "Fake")
        await async_session.commit()
        assert await reject_deposit(async_session, deposit_id, ADMIN, "Fake again") is None


class TestQueue:
    async def test_pending_queue_oldest_first(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        first = await _pending(async_session, user.id, reference="111111111111")
        second = await _pending(async_session, user.id, reference="222222222222")
        decided = await _pending(async_session, user.id, reference="333333333333")
        await approve_deposit(async_session, decided, ADMIN)
        await async_session.commit()

        queue = await list_pending_deposits(async_session)
        assert [d.id for d in queue] == [first, second]
        assert queue[0].user.telegram_id == 10001

    async def test_user_deposits_newest_first(self, async_session, make_player) -> None:
        user = await make_player(async_session)
        first = await _pending(async_session, user.id, reference="111111111111")
        second = await _pending(async_session, user.id, reference="222222222222")

        deposits = await list_user_deposits(async_session, user.id)
        assert [d.id for d in deposits] == [second, first]


class TestKyc:
    async def test_set_kyc_status(self, async_session, make_player) -> None:
        user = await make_player(async_session, telegram_id=4242, kyc_status=KycStatus.PENDING)

        updated = await set_kyc_status(async_session, 4242, "VERIFIED")
        await async_session.commit()

        assert updated.kyc_status == KycStatus.VERIFIED
        assert await get_kyc_status(async_session, user.id) == KycStatus.VERIFIED

    async def test_unknown_status_rejected(self, async_session, make_player) -> None:
        await make_player(async_session, telegram_id=4242)
        with pytest.raises(ValueError, match="Unknown KYC status"):
            await set_kyc_status(async_session, 4242, "approved")

    async def test_unknown_user(self, async_session) -> None:
        assert await set_kyc_status(async_session, 1, "verified") is None
        assert await get_kyc_status(async_session, 1) is None

    async def test_new_user_defaults(self, async_session) -> None:
        from arena.services.user_service import upsert_user

        await upsert_user(async_session, 99, "Ravi", "Kumar", "ravi")
        await async_session.commit()
        user = await get_user(async_session, 99)
        assert user.kyc_status == KycStatus.PENDING
        assert user.country == "IN"
        assert user.display_name == "Ravi Kumar"
