"""Log storage, search, and window counts."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.config import settings
from logtree_cloud.errors import AuthError, ValidationError
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.log import Log

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
OVERSIZED_CONTEXT_NOTE = {
    "note": "The additional context for this log was too large to store.",
}

REFERENCE_ID_PREFIX = "id:"
CONTEXT_PREFIX = "context."
# not expressible inside a quoted JSON path member
UNSUPPORTED_CONTEXT_KEY_CHARS = frozenset('"\\')

ContextValue = str | int | float | bool | None


def truncate_content(content: str, max_chars: int | None = None) -> str:
    max_chars = max_chars or settings.max_log_content_chars
    if len(content) > max_chars:
        return content[:max_chars] + TRUNCATION_MARKER
    return content


def bound_additional_context(
    context: dict[str, ContextValue] | None,
    max_chars: int | None = None,
) -> dict[str, Any] | None:
    """Return *context* unchanged, or the placeholder note if it serializes too large."""
    if context is None:
        return None
    max_chars = max_chars or settings.max_additional_context_chars
    size = len(json.dumps(context, default=str))
    if size > max_chars:
        logger.debug("Additional context replaced (%d chars > %d)", size, max_chars)
        return dict(OVERSIZED_CONTEXT_NOTE)
    return context


async def create_log(
    db: AsyncSession,
    organization_id: uuid.UUID,
    folder_id: uuid.UUID,
    content: str,
    reference_id: str | None = None,
    external_link: str | None = None,
    additional_context: dict[str, ContextValue] | None = None,
    now: datetime | None = None,
) -> Log:
    now = now or datetime.now(timezone.utc)
    log = Log(
        organization_id=organization_id,
        folder_id=folder_id,
        content=truncate_content(content),
        reference_id=reference_id or None,
        external_link=external_link or None,
        additional_context=bound_additional_context(additional_context),
        created_at=now,
    )
    db.add(log)
    await db.execute(
        update(Folder)
        .where(Folder.id == folder_id)
        .values(date_of_most_recent_log=now)
    )
    await db.flush()
    return log


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@dataclass
class ContextFilter:
    key: str
    value: str | bool | int | float


def parse_context_value(raw: str) -> str | bool | int | float | None:
    """Parse a search value as a quoted string, a boolean, or a number, in that order.

    Returns ``None`` when the value is none of those.
    """
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    if raw.lower() == "true":
        return True
    if raw.lower() == "false":
        return False
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return None


def parse_context_query(query: str) -> ContextFilter | None:
    """Parse ``context.<key>=<value>``; ``None`` if the query is not a valid context filter."""
    if not query.startswith(CONTEXT_PREFIX) or "=" not in query:
        return None
    key, raw_value = query[len(CONTEXT_PREFIX):].split("=", 1)
    key = key.strip()
    value = parse_context_value(raw_value)
    if not key or value is None:
        return None
    if any(ch in UNSUPPORTED_CONTEXT_KEY_CHARS for ch in key):
        return None
    return ContextFilter(key=key, value=value)


def _json_text(value: str | bool | int | float) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _context_clause(context_filter: ContextFilter, dialect_name: str):
    element = Log.additional_context[context_filter.key]
    value = context_filter.value
    if dialect_name == "postgresql":
        # ->> yields the text form of any scalar, so no cast can fail on mixed types
        return element.as_string() == _json_text(value)
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == value


def _scope_to_folders(
    stmt: Select,
    folder_id: uuid.UUID | None,
    favorite_folder_ids: list[uuid.UUID] | None,
) -> Select:
    if folder_id is not None:
        return stmt.where(Log.folder_id == folder_id)
    if favorite_folder_ids is not None:
        return stmt.where(Log.folder_id.in_(favorite_folder_ids))
    return stmt


async def search_logs(
    db: AsyncSession,
    organization_id: uuid.UUID,
    query: str,
    folder_id: uuid.UUID | None = None,
    favorite_folder_ids: list[uuid.UUID] | None = None,
) -> list[Log]:
    """Search an organization's logs, newest first.

    ``id:<ref>`` matches the reference id exactly, ``context.<key>=<value>``
    matches one additional-context entry, and anything else is a
    case-insensitive substring match on the content.
    """
    stmt = select(Log).where(Log.organization_id == organization_id)
    stmt = _scope_to_folders(stmt, folder_id, favorite_folder_ids)

    context_filter = parse_context_query(query)
    if query.startswith(REFERENCE_ID_PREFIX):
        stmt = stmt.where(Log.reference_id == query[len(REFERENCE_ID_PREFIX):].strip())
    elif context_filter is not None:
        stmt = stmt.where(_context_clause(context_filter, db.bind.dialect.name))
    else:
        stmt = stmt.where(Log.content.icontains(query, autoescape=True))

    result = await db.execute(
        stmt.order_by(Log.created_at.desc()).limit(settings.search_result_limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

async def get_logs(
    db: AsyncSession,
    folder_id: uuid.UUID | None = None,
    favorite_folder_ids: list[uuid.UUID] | None = None,
    start: int = 0,
    limit: int = 100,
    logs_no_newer_than: datetime | None = None,
    logs_no_older_than: datetime | None = None,
) -> list[Log]:
    """Page through logs of one folder, or of the user's favorited folders."""
    if (folder_id is None) == (favorite_folder_ids is None):
        raise ValidationError("Provide exactly one of a folder or the favorites view.")

    stmt = _scope_to_folders(select(Log), folder_id, favorite_folder_ids)
    if logs_no_newer_than is not None:
        stmt = stmt.where(Log.created_at < logs_no_newer_than)
    if logs_no_older_than is not None:
        stmt = stmt.where(Log.created_at > logs_no_older_than)

    result = await db.execute(
        stmt.order_by(Log.created_at.desc()).offset(start).limit(limit)
    )
    return list(result.scalars().all())


async def get_logs_by_reference_id(
    db: AsyncSession,
    organization_id: uuid.UUID,
    reference_id: str,
    folder_id: uuid.UUID | None = None,
) -> list[Log]:
    stmt = select(Log).where(
        Log.organization_id == organization_id,
        Log.reference_id == reference_id,
    )
    if folder_id is not None:
        stmt = stmt.where(Log.folder_id == folder_id)
    result = await db.execute(
        stmt.order_by(Log.created_at.desc()).limit(settings.search_result_limit)
    )
    return list(result.scalars().all())


async def delete_log(db: AsyncSession, log_id: uuid.UUID, organization_id: uuid.UUID) -> None:
    result = await db.execute(select(Log).where(Log.id == log_id))
    log = result.scalar_one_or_none()
    if log is None or log.organization_id != organization_id:
        raise AuthError("You cannot delete this log.")
    await db.delete(log)
    await db.flush()


# ---------------------------------------------------------------------------
# Window queries used by the rule and stats engines
# ---------------------------------------------------------------------------

async def count_logs_in_window(
    db: AsyncSession,
    folder_id: uuid.UUID,
    floor: datetime,
    ceiling: datetime,
    inclusive_ceiling: bool = False,
) -> int:
    """Count logs in ``[floor, ceiling)``, or ``[floor, ceiling]`` when inclusive."""
    ceiling_clause = Log.created_at <= ceiling if inclusive_ceiling else Log.created_at < ceiling
    result = await db.execute(
        select(func.count(Log.id)).where(
            Log.folder_id == folder_id,
            Log.created_at >= floor,
            ceiling_clause,
        )
    )
    return result.scalar_one()


async def get_logs_in_window(
    db: AsyncSession,
    folder_id: uuid.UUID,
    floor: datetime,
    ceiling: datetime,
) -> list[Log]:
    result = await db.execute(
        select(Log)
        .where(
            Log.folder_id == folder_id,
            Log.created_at >= floor,
            Log.created_at < ceiling,
        )
        .order_by(Log.created_at)
    )
    return list(result.scalars().all())


async def get_oldest_log_date(db: AsyncSession, folder_id: uuid.UUID) -> datetime | None:
    result = await db.execute(
        select(Log.created_at)
        .where(Log.folder_id == folder_id)
        .order_by(Log.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()
