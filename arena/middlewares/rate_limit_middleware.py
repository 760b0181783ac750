"""
Per-user flood protection.

Counts updates per Telegram user in a sliding window (RATE_LIMIT updates per
RATE_PERIOD seconds). Over the limit the update is dropped and the user gets
a short notice; callback spinners are always cleared.

Admins are never throttled: reviewing a queue of deposits means many taps in
a row. Double taps on Submit are handled by the flows themselves, not here.
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, Optional

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import TelegramObject, Update

logger = logging.getLogger(__name__)

THROTTLE_MESSAGE = "⏳ Too many requests. Please wait a moment and try again."


class RateLimitMiddleware(BaseMiddleware):
    def __init__(
        self,
        rate: int = 30,
        period: float = 60.0,
        exempt_ids: Optional[Iterable[int]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.period = period
        self.exempt_ids = frozenset(exempt_ids or ())
        self._clock = clock
        # telegram id → timestamps inside the window, oldest first
        self._hits: Dict[int, Deque[float]] = defaultdict(deque)

    def allow(self, telegram_id: int) -> bool:
        """Record one update for `telegram_id`; False once the window is full."""
        if telegram_id in self.exempt_ids:
            return True
        now = self._clock()
        hits = self._hits[telegram_id]
        while hits and now - hits[0] >= self.period:
            hits.popleft()
        if len(hits) >= self.rate:
            return False
        hits.append(now)
        return True

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None or self.allow(user.id):
            return await handler(event, data)

        logger.info("Throttled update from %d", user.id)
        if isinstance(event, Update):
            await _notify_throttled(event)
        return None


async def _notify_throttled(update: Update) -> None:
    try:
        if update.callback_query:
            await update.callback_query.answer(THROTTLE_MESSAGE, show_alert=True)
        elif update.message:
            await update.message.answer(THROTTLE_MESSAGE)
    except TelegramAPIError as e:
        logger.debug("Throttle notice not delivered: %s", e)
