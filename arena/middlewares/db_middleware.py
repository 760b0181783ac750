"""
One AsyncSession per update, injected into handlers as `session`.

Registration and payment proof submission commit or roll back on their own;
whatever a handler leaves pending is committed here after it returns, and
rolled back if it raises.
"""
import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arena.models.base import AsyncSessionFactory

logger = logging.getLogger(__name__)


class DatabaseMiddleware(BaseMiddleware):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionFactory) -> None:
        self.session_factory = session_factory

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        async with self.session_factory() as session:
            data["session"] = session
            try:
                result = await handler(event, data)
            except Exception:
                if session.in_transaction():
                    logger.debug("Rolling back pending changes after handler error")
                    await session.rollback()
                raise
            await session.commit()
            return result
