"""Rule evaluation engine: threshold alerts on a folder's recent log volume.

A rule compares the number of logs its folder received in the last
``lookback_time_in_mins`` minutes against ``comparison_value``.  Whether a
rule is currently triggered is recomputed from raw log counts on every
scheduler tick; only ``last_triggered_at`` and ``number_of_times_triggered``
are persisted.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.batch import JobResult
from logtree_cloud.config import settings
from logtree_cloud.errors import NotFoundError, ValidationError
from logtree_cloud.logs import count_logs_in_window
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.organization import Organization
from logtree_cloud.models.rule import ComparisonType, NotificationType, Rule
from logtree_cloud.models.user import User
from logtree_cloud.notifications.sender import Notifier

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 1440
MINUTES_PER_WEEK = 10080

ALERT_SUBJECT = "Logtree Alert"


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

async def create_rule(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    organization_id: uuid.UUID,
    folder_id: uuid.UUID,
    comparison_type: ComparisonType,
    comparison_value: float,
    lookback_time_in_mins: int,
    notification_type: NotificationType = NotificationType.EMAIL,
) -> Rule:
    if lookback_time_in_mins <= 0:
        raise ValidationError("lookback_time_in_mins must be a positive number of minutes.")

    result = await db.execute(
        select(Folder.id).where(Folder.id == folder_id, Folder.organization_id == organization_id)
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("No folder with this ID exists in this organization.")

    rule = Rule(
        user_id=user_id,
        organization_id=organization_id,
        folder_id=folder_id,
        comparison_type=comparison_type,
        comparison_value=comparison_value,
        lookback_time_in_mins=lookback_time_in_mins,
        notification_type=notification_type,
    )
    db.add(rule)
    await db.flush()
    return rule


async def delete_rule(db: AsyncSession, user_id: uuid.UUID, rule_id: uuid.UUID) -> None:
    result = await db.execute(select(Rule).where(Rule.id == rule_id, Rule.user_id == user_id))
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFoundError("Cannot delete a rule that does not exist.")
    await db.delete(rule)
    await db.flush()


async def get_rules_for_user(db: AsyncSession, user_id: uuid.UUID) -> list[Rule]:
    result = await db.execute(
        select(Rule).where(Rule.user_id == user_id).order_by(Rule.created_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

async def is_rule_triggered(db: AsyncSession, rule: Rule, now: datetime | None = None) -> bool:
    """Return whether the rule's condition holds for the current window.

    This is a level test against ``[now - lookback, now]``; no previous
    window is consulted despite the "crosses" naming.
    """
    now = now or datetime.now(timezone.utc)
    floor = now - timedelta(minutes=rule.lookback_time_in_mins)
    count = await count_logs_in_window(db, rule.folder_id, floor, now, inclusive_ceiling=True)

    if rule.comparison_type == ComparisonType.CROSSES_ABOVE:
        return count > rule.comparison_value
    if rule.comparison_type == ComparisonType.CROSSES_BELOW:
        return count < rule.comparison_value
    return False


def was_recently_triggered(rule: Rule, now: datetime) -> bool:
    """A rule that fired within its own lookback window waits for fresh data."""
    if rule.last_triggered_at is None:
        return False
    return now - rule.last_triggered_at <= timedelta(minutes=rule.lookback_time_in_mins)


def _format_number(value: float) -> str:
    rounded = round(value, 1)
    return str(int(rounded)) if rounded == int(rounded) else str(rounded)


def describe_duration(lookback_time_in_mins: int) -> str:
    """Render a lookback window as ``"2 hours"``, ``"1 week"``, etc."""
    for unit_minutes, singular, plural in (
        (MINUTES_PER_WEEK, "week", "weeks"),
        (MINUTES_PER_DAY, "day", "days"),
        (MINUTES_PER_HOUR, "hour", "hours"),
        (1, "minute", "minutes"),
    ):
        if lookback_time_in_mins >= unit_minutes:
            value = round(lookback_time_in_mins / unit_minutes, 1)
            return f"{_format_number(value)} {singular if value == 1 else plural}"
    return f"{lookback_time_in_mins} minutes"


async def get_rule_alert_message(db: AsyncSession, rule: Rule) -> str:
    result = await db.execute(
        select(Folder.full_path, Organization.slug)
        .join(Organization, Organization.id == Folder.organization_id)
        .where(Folder.id == rule.folder_id)
    )
    row = result.one_or_none()
    full_path, slug = (row.full_path, row.slug) if row is not None else ("", "")

    comparison_language = (
        "crossed above"
        if rule.comparison_type == ComparisonType.CROSSES_ABOVE
        else "crossed below"
    )
    return (
        f"You are receiving this alert because the number of logs in {full_path} has "
        f"{comparison_language} {_format_number(rule.comparison_value)} in the last "
        f"{describe_duration(rule.lookback_time_in_mins)}.\n\n"
        f"You can view the logs in this channel here: {settings.base_url}/org/{slug}/logs{full_path}"
    )


async def execute_triggered_rule(
    db: AsyncSession,
    rule: Rule,
    user: User,
    notifier: Notifier,
    now: datetime | None = None,
) -> None:
    """Notify the rule's owner and record the trigger.

    Raises ``ValidationError`` for an SMS rule whose owner has no phone number.
    """
    now = now or datetime.now(timezone.utc)
    message = await get_rule_alert_message(db, rule)

    if rule.notification_type == NotificationType.SMS:
        if not user.phone_number:
            raise ValidationError(
                "Rule execution failed because it was an SMS rule but the user has no phone number."
            )
        await notifier.send_sms(user.phone_number, message)
    else:
        await notifier.send_email(user.email, ALERT_SUBJECT, message)

    await db.execute(
        update(Rule)
        .where(Rule.id == rule.id)
        .values(
            number_of_times_triggered=Rule.number_of_times_triggered + 1,
            last_triggered_at=now,
        )
    )


async def run_all_rules_for_organization(
    db: AsyncSession,
    organization_id: uuid.UUID,
    notifier: Notifier,
    now: datetime | None = None,
) -> JobResult:
    """Evaluate every rule of one organization, notifying owners of triggered rules.

    A failing rule is logged and counted; the remaining rules still run.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Rule, User)
        .join(User, User.id == Rule.user_id)
        .where(Rule.organization_id == organization_id)
        .order_by(Rule.created_at)
    )
    rows = list(result.all())

    job = JobResult()
    num_triggered = 0
    for rule, user in rows:
        rule_id = rule.id
        try:
            async with db.begin_nested():
                if was_recently_triggered(rule, now):
                    logger.debug("Rule %s fired recently, waiting for fresh data", rule_id)
                elif await is_rule_triggered(db, rule, now):
                    await execute_triggered_rule(db, rule, user, notifier, now)
                    num_triggered += 1
            job.processed += 1
        except Exception:
            job.failed += 1
            logger.exception("Rule %s failed to run (org=%s)", rule_id, organization_id)

    if rows:
        logger.info(
            "Ran %d rule(s) for org %s: %d triggered, %d failed",
            len(rows),
            organization_id,
            num_triggered,
            job.failed,
        )
    return job


async def run_rules(
    db: AsyncSession,
    notifier: Notifier,
    now: datetime | None = None,
) -> JobResult:
    """Scheduler entry point: run the rules of every organization."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(Organization.id))
    organization_ids = list(result.scalars().all())

    job = JobResult()
    for organization_id in organization_ids:
        try:
            job.merge(await run_all_rules_for_organization(db, organization_id, notifier, now))
        except Exception:
            job.failed += 1
            logger.exception("Failed to run rules for org %s", organization_id)

    logger.info("Rule run finished: %d evaluated, %d failed", job.processed, job.failed)
    return job
