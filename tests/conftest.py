"""
Shared pytest fixtures for ARENA tests.

Sets required environment variables BEFORE any arena module is imported so
that pydantic-settings and SQLAlchemy engine initialisation use safe test
values.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator

# ── Set env vars before any arena import ──────────────────────────────────────
os.environ.setdefault("BOT_TOKEN", "test-token-for-pytest")
os.environ.setdefault("ADMIN_IDS", "123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ── Arena imports (safe after env vars are set) ───────────────────────────────
from arena.models.base import Base, use_immediate_transactions
from arena.models.models import KycStatus, MatchType, Tournament, User
from arena.services.blob_store import LocalBlobStore
from arena.services.tournament_service import create_tournament
from arena.services.user_service import upsert_user
from arena.services.wallet_service import ensure_wallet

# Fixed clock for every test: 14 Nov 2023 22:13:20 UTC
NOW = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000

# Smallest valid PNG signature + padding; enough for extension detection.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF_BYTES = b"%PDF-1.4\n" + b"\x00" * 32


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over an isolated in-memory SQLite database.
    Schema is created fresh for every test function; engine is always disposed
    on teardown, even if the test raises an exception.
    """
    engine = use_immediate_transactions(create_async_engine("sqlite+aiosqlite:///:memory:", echo=False))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Like session_factory, but backed by a file so several connections share it."""
    engine = use_immediate_transactions(
        create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}", echo=False)
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "media", "https://cdn.test/media")


# ── Factories ─────────────────────────────────────────────────────────────────

async def _make_player(
    session: AsyncSession,
    telegram_id: int = 10001,
    balance: float = 0.0,
    kyc_status: str = KycStatus.VERIFIED,
    currency: str = "INR",
) -> User:
    """User with a wallet, committed."""
    user = await upsert_user(session, telegram_id, f"Player{telegram_id}", None, f"p{telegram_id}")
    user.kyc_status = kyc_status
    wallet = await ensure_wallet(session, user.id, currency)
    wallet.balance = balance
    await session.commit()
    return user


async def _make_tournament(session: AsyncSession, **kwargs) -> Tournament:
    """Tournament open for registration at NOW, committed."""
    defaults = dict(
        name="Weekend Clash",
        start_time=NOW + 2 * DAY_MS,
        max_teams=10,
        entry_fee=100.0,
        match_type=MatchType.DUO,
        registration_start_time=NOW - DAY_MS,
        registration_end_time=NOW + DAY_MS,
    )
    defaults.update(kwargs)
    t = await create_tournament(session, **defaults)
    await session.commit()
    return t


@pytest.fixture
def make_player():
    """Factory fixture: returns an async callable that creates a player with a wallet."""
    return _make_player


@pytest.fixture
def make_tournament():
    """Factory fixture: returns an async callable that creates an open tournament."""
    return _make_tournament
