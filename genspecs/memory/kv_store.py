from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncContextManager, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from genspecs.utils.logging import get_logger

from .db import get_session
from .models import StorageEntry

LOGGER = get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class KeyValueStore:
    """Durable string key/value entries, one row per key."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(StorageEntry).where(StorageEntry.key == key))
            entry = result.scalar_one_or_none()
            return entry.value if entry else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            result = await session.execute(select(StorageEntry).where(StorageEntry.key == key))
            entry = result.scalar_one_or_none()
            if entry:
                entry.value = value
                entry.updated_at = datetime.now(timezone.utc)
            else:
                entry = StorageEntry(key=key, value=value, updated_at=datetime.now(timezone.utc))
            session.add(entry)
            await session.commit()
        LOGGER.debug("Stored key %s (%d chars)", key, len(value))

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(StorageEntry).where(StorageEntry.key == key))
            await session.commit()
        LOGGER.debug("Deleted key %s", key)
