"""
Admin access: who may review deposits and decide KYC.

AdminMiddleware puts `is_admin` into handler data for every update. Admin
handlers add IsAdmin() as their last filter, so a non-admin only sees the
denial when the update really targeted an admin action.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from aiogram import BaseMiddleware
from aiogram.filters import BaseFilter
from aiogram.types import CallbackQuery, Message, TelegramObject

from arena.config import settings

logger = logging.getLogger(__name__)

ACCESS_DENIED = "⛔️ Admins only."


class AdminMiddleware(BaseMiddleware):
    def __init__(self, admin_ids: Optional[Iterable[int]] = None) -> None:
        self.admin_ids = frozenset(settings.admin_ids_list if admin_ids is None else admin_ids)

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        data["is_admin"] = user is not None and user.id in self.admin_ids
        return await handler(event, data)


class IsAdmin(BaseFilter):
    async def __call__(self, event: Message | CallbackQuery, is_admin: bool = False) -> bool:
        if is_admin:
            return True

        logger.warning("Non-admin %d tried an admin action", event.from_user.id)
        if isinstance(event, CallbackQuery):
            await event.answer(ACCESS_DENIED, show_alert=True)
        else:
            await event.answer(ACCESS_DENIED)
        return False
