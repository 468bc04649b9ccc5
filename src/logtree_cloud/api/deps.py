"""Bearer API-key authentication for log senders."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.config import settings
from logtree_cloud.database import get_db
from logtree_cloud.models.api_key import KEY_PREFIX, ApiKey
from logtree_cloud.models.organization import Organization


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def parse_bearer_key(authorization: str) -> str:
    """Pull the raw ``lt_...`` key out of an ``Authorization`` header value."""
    scheme, _, raw_key = authorization.partition(" ")
    raw_key = raw_key.strip()
    if scheme != "Bearer" or not raw_key:
        raise _unauthorized("Authorization header must be 'Bearer <api key>'.")
    if not raw_key.startswith(KEY_PREFIX):
        raise _unauthorized(f"Invalid API key format. Keys must start with '{KEY_PREFIX}'.")
    return raw_key


async def get_current_org(
    authorization: str = Header(..., alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> Organization:
    """Resolve the organization that owns the request's API key.

    The organization row is re-read even if the session already holds it:
    the quota check in ingestion reads ``num_logs_sent_in_period`` from it,
    and that counter is bumped by concurrent requests with bare UPDATEs.
    """
    raw_key = parse_bearer_key(authorization)
    key_hash = ApiKey.hash_key(raw_key, settings.api_key_salt)

    result = await db.execute(
        select(ApiKey.id, Organization)
        .join(Organization, Organization.id == ApiKey.organization_id)
        .where(ApiKey.key_hash == key_hash, ApiKey.is_active.is_(True))
        .execution_options(populate_existing=True)
    )
    row = result.first()
    if row is None:
        raise _unauthorized("Invalid or inactive API key.")
    api_key_id: uuid.UUID = row[0]
    org: Organization = row[1]

    await db.execute(
        update(ApiKey)
        .where(ApiKey.id == api_key_id)
        .values(last_used_at=datetime.now(timezone.utc))
    )
    return org
