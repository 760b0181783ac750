"""
SQLAlchemy declarative base and async engine/session factory.
"""
from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from arena.config import settings


class Base(DeclarativeBase):
    pass


def use_immediate_transactions(engine: AsyncEngine) -> AsyncEngine:
    """
    Make SQLite open every transaction with BEGIN IMMEDIATE.

    The write lock is taken on the first statement, so two sessions racing for
    the last tournament slot are serialised instead of deadlocking on lock
    promotion. No-op for other backends.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = use_immediate_transactions(
    create_async_engine(
        settings.async_database_url,
        echo=False,
        pool_pre_ping=True,
    )
)

AsyncSessionFactory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
