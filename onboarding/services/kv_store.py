"""Key-value store with provider interface (in-memory / SQL)."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onboarding.core.errors import PersistenceError
from onboarding.models.kv import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract string-keyed store of JSON text values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value under ``key`` or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Overwrite the value under ``key``."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        pass

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with ``prefix``."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SQLKeyValueStore(KeyValueStore):
    """Store backed by the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._session_factory() as session:
                entry = await session.get(KeyValueEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"[KV] Read failed for {key}: {e}")
            raise PersistenceError(f"Failed to read {key}", key=key) from e

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    entry = await session.get(KeyValueEntry, key)
                    if entry is None:
                        session.add(KeyValueEntry(key=key, value=value))
                    else:
                        entry.value = value
        except SQLAlchemyError as e:
            logger.error(f"[KV] Write failed for {key}: {e}")
            raise PersistenceError(f"Failed to write {key}", key=key) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
        except SQLAlchemyError as e:
            logger.error(f"[KV] Delete failed for {key}: {e}")
            raise PersistenceError(f"Failed to delete {key}", key=key) from e

    async def keys(self, prefix: str = "") -> list[str]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(KeyValueEntry.key)
                    .where(KeyValueEntry.key.startswith(prefix, autoescape=True))
                    .order_by(KeyValueEntry.key)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"[KV] Key scan failed for prefix {prefix}: {e}")
            raise PersistenceError(f"Failed to list keys under {prefix}") from e
