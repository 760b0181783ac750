"""
Unit tests: middlewares (rate limit, admin flag and filter, DB session).

Coverage:
  - Sliding window: limit reached, window slides, admins exempt
  - Throttled updates never reach the handler
  - is_admin flag and the IsAdmin denial
  - Session committed after a handler returns, rolled back when it raises
"""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import CallbackQuery, Message
from sqlalchemy import func, select

from arena.middlewares import AdminMiddleware, DatabaseMiddleware, IsAdmin, RateLimitMiddleware
from arena.middlewares.auth_middleware import ACCESS_DENIED
from arena.middlewares.rate_limit_middleware import THROTTLE_MESSAGE, _notify_throttled
from arena.models.models import User


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ─────────────────────────── Rate limit ───────────────────────────────────────

class TestRateLimit:
    def test_blocks_after_rate(self) -> None:
        limiter = RateLimitMiddleware(rate=3, period=60.0, clock=FakeClock())
        assert [limiter.allow(7) for _ in range(4)] == [True, True, True, False]

    def test_window_slides(self) -> None:
        clock = FakeClock()
        limiter = RateLimitMiddleware(rate=2, period=60.0, clock=clock)
        assert limiter.allow(7) and limiter.allow(7)
        assert not limiter.allow(7)

        clock.now += 60.0
        assert limiter.allow(7)

    def test_users_counted_separately(self) -> None:
        limiter = RateLimitMiddleware(rate=1, period=60.0, clock=FakeClock())
        assert limiter.allow(1)
        assert limiter.allow(2)
        assert not limiter.allow(1)

    def test_admins_exempt(self) -> None:
        limiter = RateLimitMiddleware(rate=1, period=60.0, exempt_ids=[99], clock=FakeClock())
        assert all(limiter.allow(99) for _ in range(10))

    async def test_throttled_update_skips_handler(self) -> None:
        limiter = RateLimitMiddleware(rate=1, period=60.0, clock=FakeClock())
        handler = AsyncMock(return_value="handled")
        data = {"event_from_user": SimpleNamespace(id=7)}

        assert await limiter(handler, object(), data) == "handled"
        assert await limiter(handler, object(), data) is None
        handler.assert_awaited_once()

    async def test_updates_without_user_pass(self) -> None:
        limiter = RateLimitMiddleware(rate=0, period=60.0, clock=FakeClock())
        handler = AsyncMock(return_value="handled")
        assert await limiter(handler, object(), {}) == "handled"

    async def test_notice_clears_callback_spinner(self) -> None:
        update = MagicMock()
        update.callback_query.answer = AsyncMock()
        await _notify_throttled(update)
        update.callback_query.answer.assert_awaited_once_with(THROTTLE_MESSAGE, show_alert=True)


# ─────────────────────────── Admin ────────────────────────────────────────────

class TestAdmin:
    @pytest.mark.parametrize("telegram_id, expected", [(42, True), (43, False)])
    async def test_flag(self, telegram_id: int, expected: bool) -> None:
        middleware = AdminMiddleware(admin_ids=[42])
        handler = AsyncMock()
        data = {"event_from_user": SimpleNamespace(id=telegram_id)}

        await middleware(handler, object(), data)
        assert data["is_admin"] is expected

    async def test_flag_without_user(self) -> None:
        data = {}
        await AdminMiddleware(admin_ids=[42])(AsyncMock(), object(), data)
        assert data["is_admin"] is False

    async def test_filter_denies_callback(self) -> None:
        callback = MagicMock(spec=CallbackQuery)
        callback.from_user = SimpleNamespace(id=5)
        callback.answer = AsyncMock()

        assert await IsAdmin()(callback, is_admin=False) is False
        callback.answer.assert_awaited_once_with(ACCESS_DENIED, show_alert=True)

    async def test_filter_denies_message(self) -> None:
        message = MagicMock(spec=Message)
        message.from_user = SimpleNamespace(id=5)
        message.answer = AsyncMock()

        assert await IsAdmin()(message, is_admin=False) is False
        message.answer.assert_awaited_once_with(ACCESS_DENIED)

    async def test_filter_passes_admin_silently(self) -> None:
        callback = MagicMock(spec=CallbackQuery)
        callback.answer = AsyncMock()

        assert await IsAdmin()(callback, is_admin=True) is True
        callback.answer.assert_not_awaited()


# ─────────────────────────── Database session ─────────────────────────────────

async def _user_count(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(User.id)))).scalar_one()


class TestDatabaseMiddleware:
    async def test_commits_after_handler(self, session_factory) -> None:
        middleware = DatabaseMiddleware(session_factory)

        async def handler(event, data):
            data["session"].add(User(telegram_id=555, first_name="Kai"))
            return "ok"

        assert await middleware(handler, object(), {}) == "ok"
        assert await _user_count(session_factory) == 1

    async def test_rolls_back_when_handler_raises(self, session_factory) -> None:
        middleware = DatabaseMiddleware(session_factory)

        async def handler(event, data):
            data["session"].add(User(telegram_id=556, first_name="Ren"))
            await data["session"].flush()
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            await middleware(handler, object(), {})
        assert await _user_count(session_factory) == 0
