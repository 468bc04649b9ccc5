"""Incremental per-folder cache of the logs in a historical window.

Entries are never expired by time.  A window is replaced only by a window
with a newer (or equal) ceiling: on a hit, just the logs newer than the
cached ceiling are fetched, merged in, and anything older than the new
floor is trimmed before the entry is stored again.

Callers own the cache: ``get_logs_for_window`` and the histogram builder
take one as an argument, and the HTTP layer keeps a single process-wide
instance in ``logtree_cloud.api.stats``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.logs import get_logs_in_window

CACHEABLE_WINDOW = timedelta(days=1)


@dataclass(frozen=True)
class LogPoint:
    """The fields of a log the stats engine needs, detached from the session."""

    created_at: datetime
    content: str
    reference_id: str | None = None


@dataclass
class CachedWindow:
    floor: datetime
    ceiling: datetime
    logs: list[LogPoint] = field(default_factory=list)


class StatsCache:
    """Maps folder id to the most recent window fetched for it."""

    def __init__(self) -> None:
        self._entries: dict[uuid.UUID, CachedWindow] = {}

    def get(self, folder_id: uuid.UUID) -> CachedWindow | None:
        return self._entries.get(folder_id)

    def put(
        self,
        folder_id: uuid.UUID,
        floor: datetime,
        ceiling: datetime,
        logs: list[LogPoint],
    ) -> bool:
        """Store a window unless a newer one is already cached. Returns whether it was stored."""
        current = self._entries.get(folder_id)
        if current is not None and current.ceiling > ceiling:
            return False
        self._entries[folder_id] = CachedWindow(floor=floor, ceiling=ceiling, logs=list(logs))
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


async def _fetch_points(
    db: AsyncSession,
    folder_id: uuid.UUID,
    floor: datetime,
    ceiling: datetime,
) -> list[LogPoint]:
    logs = await get_logs_in_window(db, folder_id, floor, ceiling)
    return [
        LogPoint(created_at=log.created_at, content=log.content, reference_id=log.reference_id)
        for log in logs
    ]


async def get_logs_for_window(
    db: AsyncSession,
    folder_id: uuid.UUID,
    floor: datetime,
    ceiling: datetime,
    cache: StatsCache | None = None,
) -> list[LogPoint]:
    """Return the folder's logs in ``[floor, ceiling)``, oldest first.

    Windows of one day or less always go straight to the database.
    """
    if cache is None or ceiling - floor <= CACHEABLE_WINDOW:
        return await _fetch_points(db, folder_id, floor, ceiling)

    entry = cache.get(folder_id)
    if entry is None or floor < entry.floor or ceiling < entry.ceiling:
        points = await _fetch_points(db, folder_id, floor, ceiling)
    else:
        newer = await _fetch_points(db, folder_id, entry.ceiling, ceiling)
        points = [point for point in entry.logs if point.created_at >= floor] + newer

    cache.put(folder_id, floor, ceiling, points)
    return points
