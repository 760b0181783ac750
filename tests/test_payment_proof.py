"""
Integration tests: payment proof pipeline (payment_proof_service.py) and the
local blob store.

The blob store writes under pytest's tmp_path; the database is in-memory.

Coverage:
  - Validation failures never upload or write
  - Successful submit: evidence stored under request-id keys, PENDING row
  - Idempotent retry: same request id returns the same deposit, no re-upload
  - Retry after a failed record write reuses the uploaded screenshot
  - Lost insert race with the store down → RemoteUnavailable
  - Duplicate reference for a pending deposit → DuplicateDeposit
  - NGN bank statement threshold
  - Non-image uploads → UploadFailed
  - Status observation: get_deposit_status / wait_for_deposit_decision
"""
from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from arena.models.models import DepositStatus, PendingDeposit
from arena.services import payment_proof_service
from arena.services.blob_store import LocalBlobStore, detect_extension
from arena.services.deposit_service import approve_deposit, reject_deposit
from arena.services.errors import DuplicateDeposit, FlowValidationError, RemoteUnavailable, UploadFailed
from arena.services.payment_proof_service import (
    get_deposit_status,
    submit_payment_proof,
    wait_for_deposit_decision,
)
from arena.validators import PaymentMethod, PaymentProof

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32
PDF = b"%PDF-1.4\n" + b"\x00" * 32


def _proof(**kwargs) -> PaymentProof:
    defaults = dict(
        currency="INR",
        amount=500.0,
        payment_method=PaymentMethod.UPI,
        reference="412345678901",
        upi_app_name="PhonePe",
    )
    defaults.update(kwargs)
    return PaymentProof(**defaults)


def _ngn_proof(**kwargs) -> PaymentProof:
    defaults = dict(
        currency="NGN",
        amount=75_000.0,
        payment_method=PaymentMethod.BANK_TRANSFER,
        reference="TRF-0001",
        bank_name="Access Bank",
        account_number="0123456789",
        account_name="Ada Obi",
    )
    defaults.update(kwargs)
    return PaymentProof(**defaults)


async def _deposit_count(session) -> int:
    return (await session.execute(select(func.count(PendingDeposit.id)))).scalar_one()


def _stored_files(blob_store: LocalBlobStore) -> list:
    if not blob_store.root.exists():
        return []
    return sorted(p for p in blob_store.root.rglob("*") if p.is_file())


# ─────────────────────────── Blob store ───────────────────────────────────────

class TestBlobStore:
    @pytest.mark.parametrize(
        "data, ext",
        [(PNG, ".png"), (JPEG, ".jpg"), (b"GIF89a...", ".gif"), (PDF, ".pdf"),
         (b"RIFF\x00\x00\x00\x00WEBPVP8 ", ".webp"), (b"hello", None)],
    )
    def test_detect_extension(self, data: bytes, ext) -> None:
        assert detect_extension(data) == ext

    async def test_upload_returns_stable_url(self, blob_store) -> None:
        url = await blob_store.upload_image(PNG, "deposits/abc/screenshot")
        assert url == "https://cdn.test/media/deposits/abc/screenshot.png"
        assert blob_store.exists("deposits/abc/screenshot.png")
        assert blob_store.find("deposits/abc/screenshot") == "deposits/abc/screenshot.png"

    async def test_find_missing(self, blob_store) -> None:
        assert blob_store.find("deposits/none/screenshot") is None

    @pytest.mark.parametrize("data", [b"", b"plain text, not an image"])
    async def test_rejects_empty_and_non_images(self, blob_store, data: bytes) -> None:
        with pytest.raises(UploadFailed):
            await blob_store.upload_image(data, "deposits/x/screenshot")

    async def test_pdf_only_when_allowed(self, blob_store) -> None:
        with pytest.raises(UploadFailed):
            await blob_store.upload_image(PDF, "deposits/x/screenshot")
        url = await blob_store.upload_image(PDF, "deposits/x/bank_statement", allow_pdf=True)
        assert url.endswith("bank_statement.pdf")

    async def test_rejects_oversized(self, blob_store) -> None:
        with pytest.raises(UploadFailed, match="10 MB"):
            await blob_store.upload_image(PNG + b"\x00" * (10 * 1024 * 1024), "deposits/x/screenshot")

    def test_key_cannot_escape_root(self, blob_store) -> None:
        with pytest.raises(ValueError):
            blob_store.exists("../../etc/passwd")


# ─────────────────────────── Submit ───────────────────────────────────────────

class TestSubmitPaymentProof:
    async def test_creates_pending_deposit(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        proof = _proof()

        deposit_id = await submit_payment_proof(async_session, blob_store, user.id, proof, PNG)

        deposit = await async_session.get(PendingDeposit, deposit_id)
        assert deposit.status == DepositStatus.PENDING
        assert deposit.request_id == proof.request_id
        assert deposit.amount == 500.0 and deposit.currency == "INR"
        assert deposit.screenshot_url == f"https://cdn.test/media/deposits/{proof.request_id}/screenshot.png"
        assert deposit.details["upi_app_name"] == "PhonePe"
        assert any("receipt" in w for w in deposit.details["warnings"])

    async def test_invalid_proof_writes_nothing(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)

        with pytest.raises(FlowValidationError, match="too short"):
            await submit_payment_proof(async_session, blob_store, user.id, _proof(reference="12"), PNG)

        assert await _deposit_count(async_session) == 0
        assert _stored_files(blob_store) == []

    async def test_missing_screenshot(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        with pytest.raises(FlowValidationError, match="Payment screenshot is required"):
            await submit_payment_proof(async_session, blob_store, user.id, _proof(), None)

    async def test_retry_same_request_is_idempotent(
        self, async_session, blob_store, make_player, monkeypatch
    ) -> None:
        user = await make_player(async_session)
        proof = _proof()
        first = await submit_payment_proof(async_session, blob_store, user.id, proof, PNG)

        async def _no_upload(*args, **kwargs):
            raise AssertionError("evidence must not be uploaded again")

        monkeypatch.setattr(blob_store, "upload_image", _no_upload)
        second = await submit_payment_proof(async_session, blob_store, user.id, proof, PNG)

        assert second == first
        assert await _deposit_count(async_session) == 1

    async def test_retry_after_failed_write_reuses_upload(
        self, async_session, blob_store, make_player, monkeypatch
    ) -> None:
        user = await make_player(async_session)
        user_id = user.id
        proof = _proof()

        async def _store_down(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(payment_proof_service, "create_pending_deposit", _store_down)
        with pytest.raises(RemoteUnavailable) as exc:
            await submit_payment_proof(async_session, blob_store, user_id, proof, PNG)
        assert exc.value.retryable
        assert len(_stored_files(blob_store)) == 1
        monkeypatch.undo()

        uploads = []
        real_upload = blob_store.upload_image

        async def _counting_upload(*args, **kwargs):
            uploads.append(args)
            return await real_upload(*args, **kwargs)

        monkeypatch.setattr(blob_store, "upload_image", _counting_upload)
        deposit_id = await submit_payment_proof(async_session, blob_store, user_id, proof, PNG)

        assert uploads == []
        assert len(_stored_files(blob_store)) == 1
        deposit = await async_session.get(PendingDeposit, deposit_id)
        assert deposit.screenshot_url.endswith(f"{proof.request_id}/screenshot.png")

    async def test_lost_insert_race_with_store_down_is_retryable(
        self, async_session, blob_store, make_player, monkeypatch
    ) -> None:
        user = await make_player(async_session)
        user_id = user.id
        real_lookup = payment_proof_service.get_deposit_by_request_id
        lookups = []

        async def _lookup(*args, **kwargs):
            lookups.append(args)
            if len(lookups) > 1:
                raise OperationalError("SELECT", {}, Exception("connection lost"))
            return await real_lookup(*args, **kwargs)

        async def _lost_race(*args, **kwargs):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(payment_proof_service, "get_deposit_by_request_id", _lookup)
        monkeypatch.setattr(payment_proof_service, "create_pending_deposit", _lost_race)

        with pytest.raises(RemoteUnavailable) as exc:
            await submit_payment_proof(async_session, blob_store, user_id, _proof(), PNG)
        assert exc.value.retryable
        assert len(lookups) == 2

    async def test_duplicate_reference_rejected(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        await submit_payment_proof(async_session, blob_store, user.id, _proof(), PNG)

        with pytest.raises(DuplicateDeposit):
            await submit_payment_proof(async_session, blob_store, user.id, _proof(), PNG)
        assert await _deposit_count(async_session) == 1

    async def test_reference_reusable_after_rejection(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        first = await submit_payment_proof(async_session, blob_store, user.id, _proof(), PNG)
        await reject_deposit(async_session, first, admin_id=1, reason="Blurry screenshot")
        await async_session.commit()

        second = await submit_payment_proof(async_session, blob_store, user.id, _proof(), PNG)
        assert second != first

    async def test_non_image_upload_fails(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        with pytest.raises(UploadFailed):
            await submit_payment_proof(async_session, blob_store, user.id, _proof(), b"not an image")
        assert await _deposit_count(async_session) == 0


class TestBankStatementThreshold:
    async def test_ngn_above_threshold_without_statement(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session, currency="NGN")
        with pytest.raises(FlowValidationError, match="Bank statement required"):
            await submit_payment_proof(async_session, blob_store, user.id, _ngn_proof(), PNG)

    async def test_ngn_above_threshold_with_pdf_statement(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session, currency="NGN")
        proof = _ngn_proof()
        deposit_id = await submit_payment_proof(
            async_session, blob_store, user.id, proof, PNG, bank_statement=PDF
        )
        deposit = await async_session.get(PendingDeposit, deposit_id)
        assert deposit.bank_statement_url.endswith(f"{proof.request_id}/bank_statement.pdf")
        assert deposit.details["bank_name"] == "Access Bank"

    async def test_ngn_below_threshold(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session, currency="NGN")
        deposit_id = await submit_payment_proof(
            async_session, blob_store, user.id, _ngn_proof(amount=40_000.0), PNG
        )
        assert (await async_session.get(PendingDeposit, deposit_id)).bank_statement_url is None


# ─────────────────────────── Observation ──────────────────────────────────────

class TestDepositStatus:
    async def test_status_lookup(self, async_session, blob_store, make_player) -> None:
        user = await make_player(async_session)
        deposit_id = await submit_payment_proof(async_session, blob_store, user.id, _proof(), PNG)
        assert await get_deposit_status(async_session, deposit_id) == DepositStatus.PENDING
        assert await get_deposit_status(async_session, 999) is None

    async def test_wait_returns_decision(self, file_session_factory, blob_store, make_player) -> None:
        session_factory = file_session_factory
        async with session_factory() as session:
            user = await make_player(session)
            deposit_id = await submit_payment_proof(session, blob_store, user.id, _proof(), PNG)

        async def _admin_approves_later() -> None:
            await asyncio.sleep(0.05)
            async with session_factory() as session:
                await approve_deposit(session, deposit_id, admin_id=123456789)
                await session.commit()

        admin = asyncio.create_task(_admin_approves_later())
        status = await wait_for_deposit_decision(session_factory, deposit_id, poll_interval=0.01, timeout=5)
        await admin

        assert status == DepositStatus.APPROVED

    async def test_wait_times_out_with_last_status(self, session_factory, blob_store, make_player) -> None:
        async with session_factory() as session:
            user = await make_player(session)
            deposit_id = await submit_payment_proof(session, blob_store, user.id, _proof(), PNG)

        status = await wait_for_deposit_decision(session_factory, deposit_id, poll_interval=0.01, timeout=0.05)
        assert status == DepositStatus.PENDING

    async def test_wait_unknown_deposit(self, session_factory) -> None:
        assert await wait_for_deposit_decision(session_factory, 999, poll_interval=0.01, timeout=1) is None
