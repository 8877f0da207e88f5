"""Key-value persistence used by every catalog collection."""

from __future__ import annotations

import copy
from typing import Any, Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import KeyValueRecord
from .utils import utcnow

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE.
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class KeyValueStore(Protocol):
    """Persistent mapping from string keys to JSON values.

    There are no transactions and no compare-and-swap: every call is an
    independent read or write and concurrent writers race under
    last-write-wins.
    """

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        ...

    async def get_all_keys(self) -> list[str]:
        ...


class SQLKeyValueStore:
    """Key-value store persisted in a single SQL table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Any | None:
        async with self._session_factory() as session:
            record = await session.get(KeyValueRecord, key)
            if record is None:
                return None
            return record.value

    async def set(self, key: str, value: Any) -> None:
        """Write ``value`` under ``key``; concurrent writers never conflict."""

        async with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            upsert = _UPSERT_INSERTS.get(dialect)
            if upsert is not None:
                now = utcnow()
                statement = upsert(KeyValueRecord).values(
                    key=key, value=value, created_at=now, updated_at=now
                )
                statement = statement.on_conflict_do_update(
                    index_elements=[KeyValueRecord.key],
                    set_={
                        "value": statement.excluded["value"],
                        "updated_at": statement.excluded["updated_at"],
                    },
                )
                await session.execute(statement)
                await session.commit()
                return

            record = await session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=value))
            else:
                record.value = value
            try:
                await session.commit()
            except IntegrityError:
                # Another writer inserted the key first; overwrite it.
                await session.rollback()
                await session.execute(
                    update(KeyValueRecord)
                    .where(KeyValueRecord.key == key)
                    .values(value=value, updated_at=utcnow())
                )
                await session.commit()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(KeyValueRecord).where(KeyValueRecord.key == key))
            await session.commit()

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        """Return the values whose keys start with ``prefix``, ordered by key."""

        statement = (
            select(KeyValueRecord.value)
            .where(KeyValueRecord.key.startswith(prefix, autoescape=True))
            .order_by(KeyValueRecord.key)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def get_all_keys(self) -> list[str]:
        statement = select(KeyValueRecord.key).order_by(KeyValueRecord.key)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())


class InMemoryKeyValueStore:
    """Dictionary-backed store with the same copy semantics as a JSON column."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        return [
            copy.deepcopy(self._data[key])
            for key in sorted(self._data)
            if key.startswith(prefix)
        ]

    async def get_all_keys(self) -> list[str]:
        return sorted(self._data)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the stored data."""

        return copy.deepcopy(self._data)
