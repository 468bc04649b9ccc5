"""Log ingestion pipeline: path validation, quota, folder resolution, storage, charging."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.errors import QuotaExceededError
from logtree_cloud.folders import get_or_create_leaf_folder_id, validate_folder_path
from logtree_cloud.logs import ContextValue, create_log
from logtree_cloud.models.log import Log
from logtree_cloud.models.organization import Organization
from logtree_cloud.usage import record_new_log, should_allow_another_log

logger = logging.getLogger(__name__)


async def ingest_log(
    db: AsyncSession,
    organization: Organization,
    folder_path: str,
    content: str,
    reference_id: str | None = None,
    external_link: str | None = None,
    additional_context: dict[str, ContextValue] | None = None,
    now: datetime | None = None,
) -> Log:
    """Store one log for *organization* under *folder_path* and charge it to the cycle.

    Raises ``ValidationError`` for a malformed path, ``QuotaExceededError``
    when the organization is out of logs for the cycle, and ``ConflictError``
    when the path would break leaf exclusivity.
    """
    now = now or datetime.now(timezone.utc)
    validate_folder_path(folder_path)

    if not should_allow_another_log(organization, now):
        logger.info("Org %s is over its log limit, rejecting log", organization.id)
        raise QuotaExceededError(
            "You've exceeded your limit for the number of logs your plan includes this cycle."
        )

    folder_id = await get_or_create_leaf_folder_id(db, organization.id, folder_path)
    log = await create_log(
        db,
        organization.id,
        folder_id,
        content,
        reference_id=reference_id,
        external_link=external_link,
        additional_context=additional_context,
        now=now,
    )
    await record_new_log(db, organization)
    return log
