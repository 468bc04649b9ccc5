"""Funnels: an ordered list of folder paths forwarded to one channel."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.errors import NotFoundError, ValidationError
from logtree_cloud.folders import validate_folder_path
from logtree_cloud.models.funnel import Funnel

logger = logging.getLogger(__name__)


async def create_funnel(
    db: AsyncSession,
    organization_id: uuid.UUID,
    folder_paths_in_order: list[str],
    forward_to_channel_path: str,
) -> Funnel:
    """Validate every path and store the funnel.

    The paths do not have to exist yet; folders are created when logs arrive.
    """
    validate_folder_path(forward_to_channel_path)
    for folder_path in folder_paths_in_order:
        try:
            validate_folder_path(folder_path)
        except ValidationError as exc:
            raise ValidationError(f"The folder path of {folder_path} is invalid.") from exc

    funnel = Funnel(
        organization_id=organization_id,
        folder_paths_in_order=list(folder_paths_in_order),
        forward_to_channel_path=forward_to_channel_path,
    )
    db.add(funnel)
    await db.flush()
    logger.info(
        "Created funnel %s over %d folder(s) (org=%s)",
        funnel.id,
        len(folder_paths_in_order),
        organization_id,
    )
    return funnel


async def get_funnels(db: AsyncSession, organization_id: uuid.UUID) -> list[Funnel]:
    result = await db.execute(
        select(Funnel)
        .where(Funnel.organization_id == organization_id)
        .order_by(Funnel.created_at.desc())
    )
    return list(result.scalars().all())


async def delete_funnel(db: AsyncSession, organization_id: uuid.UUID, funnel_id: uuid.UUID) -> None:
    result = await db.execute(
        select(Funnel).where(Funnel.id == funnel_id, Funnel.organization_id == organization_id)
    )
    funnel = result.scalar_one_or_none()
    if funnel is None:
        raise NotFoundError("No funnel with this ID exists for this organization.")
    await db.delete(funnel)
    await db.flush()
