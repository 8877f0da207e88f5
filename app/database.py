"""Database utilities for the CineCatalog service."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the key-value table."""

    metadata = MetaData()


class Database:
    """Owns the async engine and the session factory handed to the store."""

    def __init__(self, database_url: str, *, echo: bool = False):
        self._url = make_url(database_url)
        self._engine: AsyncEngine = create_async_engine(self._url, echo=echo)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create the ``kv_store`` table, and the SQLite directory, if missing."""

        from . import db_models  # noqa: F401

        self._ensure_sqlite_directory()
        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database ready at %s", self._url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self._engine.dispose()

    def _ensure_sqlite_directory(self) -> None:
        if self._url.get_backend_name() != "sqlite":
            return
        database = self._url.database
        if not database or database == ":memory:":
            return
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
