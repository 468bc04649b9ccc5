"""Stats engine: interval frequencies, percent change, insights, and histograms."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.config import settings
from logtree_cloud.errors import ValidationError
from logtree_cloud.folders import get_most_checked_folder_paths
from logtree_cloud.logs import count_logs_in_window, get_oldest_log_date
from logtree_cloud.models.folder import Folder
from logtree_cloud.stats.cache import StatsCache, get_logs_for_window

logger = logging.getLogger(__name__)

HOURLY_BOXES = 24


class TimeInterval(int, Enum):
    """Interval lengths, in minutes."""

    HOUR = 60
    DAY = 1440
    WEEK = 10080


# ---------------------------------------------------------------------------
# Frequencies
# ---------------------------------------------------------------------------

async def get_log_frequencies_by_interval(
    db: AsyncSession,
    folder_id: uuid.UUID,
    interval: TimeInterval | int,
    steps_back: int,
    now: datetime | None = None,
    ignore_oldest_log: bool = False,
) -> list[int]:
    """Count logs per interval walking back from *now*, newest interval first.

    Interval ``i`` covers ``[now - (i+1)*interval, now - i*interval)``.  The
    walk stops at the first interval lying entirely before the folder's
    oldest log, so a young folder yields a shorter list.  With
    ``ignore_oldest_log`` all ``steps_back`` intervals are counted.
    """
    now = now or datetime.now(timezone.utc)
    step = timedelta(minutes=int(interval))

    oldest_log_date = None
    if not ignore_oldest_log:
        oldest_log_date = await get_oldest_log_date(db, folder_id)
        if oldest_log_date is None:
            return []

    frequencies: list[int] = []
    for index in range(steps_back):
        ceiling = now - step * index
        floor = ceiling - step
        if oldest_log_date is not None and ceiling <= oldest_log_date:
            break
        frequencies.append(await count_logs_in_window(db, folder_id, floor, ceiling))
    return frequencies


def percent_change_from_frequencies(frequencies: list[int]) -> float:
    """Percent change of the newest count against the average of the older ones.

    Returns 0 when there are fewer than two counts or the older average is 0.
    """
    if len(frequencies) < 2:
        return 0
    most_recent, older = frequencies[0], frequencies[1:]
    average_older = sum(older) / len(older)
    if average_older == 0:
        return 0
    return round(100 * (most_recent - average_older) / average_older, 2)


async def get_percent_change_in_frequency_of_most_recent_logs(
    db: AsyncSession,
    folder_id: uuid.UUID,
    interval: TimeInterval | int,
    steps_back: int,
    now: datetime | None = None,
) -> float:
    frequencies = await get_log_frequencies_by_interval(db, folder_id, interval, steps_back, now)
    return percent_change_from_frequencies(frequencies)


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

@dataclass
class FolderInsight:
    folder_id: uuid.UUID
    full_path: str
    percent_change: float
    num_logs_today: int


@dataclass
class Insights:
    most_checked: list[FolderInsight] = field(default_factory=list)
    other: list[FolderInsight] = field(default_factory=list)


def _start_of_local_day(now: datetime, tz_name: str) -> datetime:
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {tz_name!r}") from exc
    local_midnight = now.astimezone(tz).replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc)


async def get_insights(
    db: AsyncSession,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    tz_name: str,
    now: datetime | None = None,
) -> Insights:
    """Day-over-day change for every folder that has logs.

    Folders whose change is zero are left out.  The rest are split between
    the user's most-checked folders (in check-count order) and all other
    folders (largest absolute change first).
    """
    now = now or datetime.now(timezone.utc)
    start_of_today = _start_of_local_day(now, tz_name)

    result = await db.execute(
        select(Folder.id, Folder.full_path).where(
            Folder.organization_id == organization_id,
            Folder.date_of_most_recent_log.is_not(None),
        )
    )
    folders = list(result.all())

    insights_by_path: dict[str, FolderInsight] = {}
    for folder_id, full_path in folders:
        percent_change = await get_percent_change_in_frequency_of_most_recent_logs(
            db, folder_id, TimeInterval.DAY, 2, now
        )
        if percent_change == 0:
            continue
        num_logs_today = await count_logs_in_window(
            db, folder_id, start_of_today, now, inclusive_ceiling=True
        )
        insights_by_path[full_path] = FolderInsight(
            folder_id=folder_id,
            full_path=full_path,
            percent_change=percent_change,
            num_logs_today=num_logs_today,
        )

    most_checked_paths = await get_most_checked_folder_paths(
        db,
        user_id,
        since=now - timedelta(days=settings.insights_most_checked_window_days),
        limit=settings.insights_most_checked_limit,
    )

    insights = Insights()
    for full_path in most_checked_paths:
        insight = insights_by_path.pop(full_path, None)
        if insight is not None:
            insights.most_checked.append(insight)
    insights.other = sorted(
        insights_by_path.values(), key=lambda insight: abs(insight.percent_change), reverse=True
    )
    return insights


# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------

@dataclass
class HistogramBox:
    floor_date: datetime
    ceiling_date: datetime
    count: int = 0


@dataclass
class Histogram:
    key: str
    count: int
    boxes: list[HistogramBox]


def bucket_timestamps(
    timestamps: list[datetime],
    floor: datetime,
    ceiling: datetime,
    num_boxes: int,
) -> list[HistogramBox]:
    """Split ``[floor, ceiling)`` into equal-width boxes and count timestamps per box."""
    width = (ceiling - floor) / num_boxes
    boxes = [
        HistogramBox(floor_date=floor + width * index, ceiling_date=floor + width * (index + 1))
        for index in range(num_boxes)
    ]
    for timestamp in timestamps:
        if timestamp < floor or timestamp >= ceiling:
            continue
        index = min(int((timestamp - floor) / width), num_boxes - 1)
        boxes[index].count += 1
    return boxes


async def get_histograms_for_folder(
    db: AsyncSession,
    folder_id: uuid.UUID,
    group_by_reference_id: bool = False,
    last_x_days: int = 1,
    now: datetime | None = None,
    cache: StatsCache | None = None,
) -> list[Histogram]:
    """Histograms of the folder's most frequent log groups over the last *last_x_days*.

    Logs are grouped by exact content, or by reference id (logs without one
    are skipped).  Returns an empty list when no group repeats.
    """
    if last_x_days <= 0:
        raise ValidationError("last_x_days must be a positive number of days.")

    now = now or datetime.now(timezone.utc)
    floor = now - timedelta(days=last_x_days)
    points = await get_logs_for_window(db, folder_id, floor, now, cache)

    groups: dict[str, list[datetime]] = defaultdict(list)
    for point in points:
        key = point.reference_id if group_by_reference_id else point.content
        if key is None:
            continue
        groups[key].append(point.created_at)

    ranked = sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)
    ranked = ranked[: settings.histogram_max_groups]
    if not ranked or len(ranked[0][1]) <= 1:
        return []

    num_boxes = HOURLY_BOXES if last_x_days == 1 else last_x_days
    return [
        Histogram(
            key=key,
            count=len(timestamps),
            boxes=bucket_timestamps(timestamps, floor, now, num_boxes),
        )
        for key, timestamps in ranked
    ]
