"""
User service: Telegram user records and KYC status.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.models.models import KycStatus, User


async def upsert_user(
    session: AsyncSession,
    telegram_id: int,
    first_name: str,
    last_name: Optional[str],
    username: Optional[str],
) -> User:
    """Create or update a Telegram user record."""
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            telegram_id=telegram_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
        )
        session.add(user)
        await session.flush()
    else:
        user.first_name = first_name
        user.last_name  = last_name
        user.username   = username
    return user


async def get_user(session: AsyncSession, telegram_id: int) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()


async def get_kyc_status(session: AsyncSession, user_id: int) -> Optional[str]:
    """KYC status for users.id, or None when the user does not exist."""
    result = await session.execute(
        select(User.kyc_status).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def set_kyc_status(
    session: AsyncSession,
    telegram_id: int,
    status: str,
) -> Optional[User]:
    status = status.lower()
    if status not in KycStatus.ALL:
        raise ValueError(f"Unknown KYC status: {status}")
    user = await get_user(session, telegram_id)
    if user is not None:
        user.kyc_status = status
        await session.flush()
    return user
