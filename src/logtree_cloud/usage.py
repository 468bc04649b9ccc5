"""Usage accounting: billing-cycle counters, quota policy, and retention.

Each organization has a ``num_logs_sent_in_period`` counter bounded by
``log_limit_for_period`` over a billing cycle.  A scheduled job rolls cycles
over back-to-back and warns admins that are close to their limit; another
purges logs that fall outside the organization's retention horizon.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.batch import JobResult
from logtree_cloud.config import settings
from logtree_cloud.models.log import Log
from logtree_cloud.models.organization import Organization
from logtree_cloud.models.user import User
from logtree_cloud.notifications.sender import Notifier

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_DAYS = 30


def should_allow_another_log(organization: Organization, now: datetime | None = None) -> bool:
    """Return whether *organization* may send one more log right now.

    Small accounts (most likely trials) are held to their limit, except that
    once the cycle has ended they get a grace period until the reset job runs.
    Larger accounts are never blocked here.
    """
    if organization.log_limit_for_period > settings.trial_log_limit:
        return True

    now = now or datetime.now(timezone.utc)
    if organization.num_logs_sent_in_period < organization.log_limit_for_period:
        return True
    return organization.cycle_ends is not None and now >= organization.cycle_ends


async def record_new_log(db: AsyncSession, organization: Organization) -> None:
    """Atomically charge one log to the organization's current cycle."""
    await db.execute(
        update(Organization)
        .where(Organization.id == organization.id)
        .values(num_logs_sent_in_period=Organization.num_logs_sent_in_period + 1)
    )


def get_period_dates(
    organization: Organization | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Return ``(cycle_starts, cycle_ends)`` for the organization's next cycle.

    A first cycle starts now.  Later cycles start exactly where the previous
    one ended so that cycle boundaries never drift.
    """
    if organization is None or organization.cycle_starts is None or organization.cycle_ends is None:
        now = now or datetime.now(timezone.utc)
        length_days = (organization.log_retention_in_days if organization else None) or DEFAULT_CYCLE_DAYS
        return now, now + timedelta(days=length_days)

    cycle_starts = organization.cycle_ends
    return cycle_starts, cycle_starts + timedelta(days=settings.billing_cycle_days)


def get_usage_ratio(organization: Organization) -> float | None:
    """Fraction of the cycle's allowance used, or ``None`` when there is no limit."""
    if organization.log_limit_for_period <= 0:
        return None
    return organization.num_logs_sent_in_period / organization.log_limit_for_period


def is_due_for_reset(organization: Organization, now: datetime) -> bool:
    return organization.cycle_ends is None or organization.cycle_ends <= now


def should_send_usage_warning(organization: Organization, now: datetime) -> bool:
    ratio = get_usage_ratio(organization)
    if ratio is None or ratio < settings.usage_warning_ratio:
        return False
    last_sent = organization.sent_last_usage_email_at
    return last_sent is None or now - last_sent >= timedelta(days=settings.usage_warning_interval_days)


def _usage_warning_text(organization: Organization) -> str:
    percent = round(100 * (get_usage_ratio(organization) or 0))
    cycle_ends = organization.cycle_ends.strftime("%B %d, %Y") if organization.cycle_ends else "soon"
    return (
        f"Your organization {organization.name} has sent "
        f"{organization.num_logs_sent_in_period:,} of its {organization.log_limit_for_period:,} "
        f"logs ({percent}%) for the current billing cycle, which ends {cycle_ends}.\n\n"
        f"Logs sent past the limit may be rejected. You can upgrade your plan at "
        f"{settings.base_url}/org/{organization.slug}/settings"
    )


async def send_usage_warning(
    db: AsyncSession,
    organization: Organization,
    notifier: Notifier,
    now: datetime,
) -> bool:
    """Email the organization's admins that they are close to their limit.

    Stamps ``sent_last_usage_email_at`` when at least one email went out.
    """
    result = await db.execute(
        select(User.email, User.is_admin)
        .where(User.organization_id == organization.id)
        .order_by(User.created_at)
    )
    members = list(result.all())
    if not members:
        logger.warning("No users to warn about usage for org %s", organization.id)
        return False
    recipients = [email for email, is_admin in members if is_admin] or [members[0].email]

    text = _usage_warning_text(organization)
    delivered = False
    for email in recipients:
        delivered = await notifier.send_email(email, "Logtree usage warning", text) or delivered

    if delivered:
        organization.sent_last_usage_email_at = now
        await db.flush()
    return delivered


async def reset_usages(
    db: AsyncSession,
    notifier: Notifier,
    now: datetime | None = None,
) -> JobResult:
    """Roll over every ended cycle and warn organizations close to their limit.

    Each organization is handled in its own SAVEPOINT so that one failure
    does not stop the run.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(Organization).order_by(Organization.created_at))
    organizations = list(result.scalars().all())

    job = JobResult()
    num_reset = 0
    num_warned = 0
    for organization in organizations:
        organization_id = organization.id
        try:
            async with db.begin_nested():
                if is_due_for_reset(organization, now):
                    cycle_starts, cycle_ends = get_period_dates(organization, now)
                    organization.cycle_starts = cycle_starts
                    organization.cycle_ends = cycle_ends
                    organization.num_logs_sent_in_period = 0
                    await db.flush()
                    num_reset += 1
                    logger.info("Just reset usage for %s.", organization.name)
                elif should_send_usage_warning(organization, now):
                    if await send_usage_warning(db, organization, notifier, now):
                        num_warned += 1
            job.processed += 1
        except Exception:
            job.failed += 1
            logger.exception("Failed to reset usage for org %s", organization_id)

    logger.info(
        "Usage reset finished: %d reset, %d warned, %d failed",
        num_reset,
        num_warned,
        job.failed,
    )
    return job


async def remove_logs_older_than_retention_date(
    db: AsyncSession,
    now: datetime | None = None,
) -> JobResult:
    """Hard-delete each organization's logs older than its retention horizon."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(Organization.id, Organization.log_retention_in_days))
    rows = list(result.all())

    job = JobResult()
    num_deleted = 0
    for organization_id, retention_days in rows:
        cutoff = now - timedelta(days=retention_days)
        try:
            async with db.begin_nested():
                deleted = await db.execute(
                    delete(Log)
                    .where(Log.organization_id == organization_id, Log.created_at < cutoff)
                    .execution_options(synchronize_session="fetch")
                )
                num_deleted += deleted.rowcount or 0
            job.processed += 1
        except Exception:
            job.failed += 1
            logger.exception("Failed to purge logs for org %s", organization_id)

    logger.info("Retention purge finished: %d logs deleted, %d orgs failed", num_deleted, job.failed)
    return job
