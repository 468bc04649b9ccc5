"""Route monitors: per-path API call counters and their periodic snapshots."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.batch import JobResult
from logtree_cloud.database import dialect_insert
from logtree_cloud.errors import ValidationError
from logtree_cloud.models.route_monitor import RouteMonitor, RouteMonitorSnapshot

logger = logging.getLogger(__name__)


async def record_call(
    db: AsyncSession,
    organization_id: uuid.UUID,
    path: str,
    error_code: int | str | None = None,
    now: datetime | None = None,
) -> RouteMonitor:
    """Count one call to *path*, creating its monitor on first use.

    The call counter is an atomic upsert-with-increment.  The per-code error
    counters live in a JSON column and are bumped under a row lock.
    """
    if not path:
        raise ValidationError("A route path is required.")
    now = now or datetime.now(timezone.utc)

    insert = dialect_insert(db)
    stmt = insert(RouteMonitor).values(
        id=uuid.uuid4(),
        organization_id=organization_id,
        path=path,
        num_calls=1,
        error_codes={},
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[RouteMonitor.organization_id, RouteMonitor.path],
        set_={"num_calls": RouteMonitor.num_calls + 1, "updated_at": now},
    )
    await db.execute(stmt)

    result = await db.execute(
        select(RouteMonitor)
        .where(RouteMonitor.organization_id == organization_id, RouteMonitor.path == path)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    monitor = result.scalar_one()

    if error_code is not None:
        code = str(error_code)
        error_codes = dict(monitor.error_codes or {})
        error_codes[code] = error_codes.get(code, 0) + 1
        # reassign so the JSON column is flagged dirty
        monitor.error_codes = error_codes
        await db.flush()

    return monitor


async def get_route_monitors(db: AsyncSession, organization_id: uuid.UUID) -> list[RouteMonitor]:
    result = await db.execute(
        select(RouteMonitor)
        .where(RouteMonitor.organization_id == organization_id)
        .order_by(RouteMonitor.path)
    )
    return list(result.scalars().all())


async def take_route_monitor_snapshots(
    db: AsyncSession,
    now: datetime | None = None,
) -> JobResult:
    """Copy every route monitor into an immutable snapshot row."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(RouteMonitor).order_by(RouteMonitor.created_at))
    monitors = list(result.scalars().all())

    job = JobResult()
    for monitor in monitors:
        monitor_id = monitor.id
        try:
            async with db.begin_nested():
                db.add(
                    RouteMonitorSnapshot(
                        organization_id=monitor.organization_id,
                        route_monitor_id=monitor_id,
                        path=monitor.path,
                        num_calls=monitor.num_calls,
                        error_codes=dict(monitor.error_codes or {}),
                        created_at=now,
                    )
                )
            job.processed += 1
        except Exception:
            job.failed += 1
            logger.exception("Failed to snapshot route monitor %s", monitor_id)

    logger.info("Took %d route monitor snapshot(s), %d failed", job.processed, job.failed)
    return job


async def get_route_monitor_snapshots(
    db: AsyncSession,
    organization_id: uuid.UUID,
    route_monitor_id: uuid.UUID,
    since: datetime | None = None,
) -> list[RouteMonitorSnapshot]:
    stmt = select(RouteMonitorSnapshot).where(
        RouteMonitorSnapshot.organization_id == organization_id,
        RouteMonitorSnapshot.route_monitor_id == route_monitor_id,
    )
    if since is not None:
        stmt = stmt.where(RouteMonitorSnapshot.created_at >= since)
    result = await db.execute(stmt.order_by(RouteMonitorSnapshot.created_at))
    return list(result.scalars().all())
