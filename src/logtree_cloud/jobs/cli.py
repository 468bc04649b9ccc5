"""Scheduled job runner.

Each job is one idempotent pass over every organization, meant to be
invoked by an external scheduler (cron, Kubernetes CronJob, ...).

Usage::

    logtree-jobs reset-usage
    logtree-jobs purge-logs
    logtree-jobs run-rules
    logtree-jobs snapshot-monitors
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logtree_cloud.batch import JobResult
from logtree_cloud.config import settings
from logtree_cloud.monitors import take_route_monitor_snapshots
from logtree_cloud.notifications.sender import HttpNotifier, Notifier
from logtree_cloud.rules.engine import run_rules
from logtree_cloud.usage import remove_logs_older_than_retention_date, reset_usages

logger = logging.getLogger(__name__)

JobFn = Callable[[AsyncSession, Notifier, datetime], Awaitable[JobResult]]

JOBS: dict[str, JobFn] = {
    "reset-usage": lambda db, notifier, now: reset_usages(db, notifier, now),
    "purge-logs": lambda db, notifier, now: remove_logs_older_than_retention_date(db, now),
    "run-rules": lambda db, notifier, now: run_rules(db, notifier, now),
    "snapshot-monitors": lambda db, notifier, now: take_route_monitor_snapshots(db, now),
}


async def run_job(
    name: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> JobResult:
    """Run one job in its own session and commit what it did."""
    if session_factory is None:
        from logtree_cloud.database import async_session_factory

        session_factory = async_session_factory

    job = JOBS[name]
    notifier = notifier or HttpNotifier()
    now = now or datetime.now(timezone.utc)

    logger.info("Starting job %s", name)
    async with session_factory() as db:
        try:
            result = await job(db, notifier, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    logger.info("Finished job %s: %d processed, %d failed", name, result.processed, result.failed)
    return result


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="logtree-jobs",
        description="Logtree scheduled jobs",
    )
    parser.add_argument(
        "job",
        choices=sorted(JOBS),
        help="Job to run",
    )
    parsed = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run_job(parsed.job))
    except Exception:
        logger.exception("Job %s crashed", parsed.job)
        sys.exit(1)


if __name__ == "__main__":
    main()
