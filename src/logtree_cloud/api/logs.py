"""Log endpoints: ingest, list, search, delete."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.api.deps import get_current_org
from logtree_cloud.database import get_db
from logtree_cloud.errors import ValidationError
from logtree_cloud.folders import get_folder_by_path
from logtree_cloud.ingestion import ingest_log
from logtree_cloud.logs import delete_log, get_logs, get_logs_by_reference_id, search_logs
from logtree_cloud.models.log import Log
from logtree_cloud.models.organization import Organization

router = APIRouter(prefix="/v1/logs", tags=["logs"])


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class LogIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    folder_path: str = Field(min_length=1, max_length=512)
    content: str = Field(min_length=1)
    reference_id: str | None = None
    external_link: str | None = None
    additional_context: dict[str, str | int | float | bool | None] | None = None


class LogOut(BaseModel):
    id: str
    folder_id: str
    content: str
    reference_id: str | None = None
    external_link: str | None = None
    additional_context: dict | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, log: Log) -> LogOut:
        return cls(
            id=str(log.id),
            folder_id=str(log.folder_id),
            content=log.content,
            reference_id=log.reference_id,
            external_link=log.external_link,
            additional_context=log.additional_context,
            created_at=log.created_at,
        )


class LogListResponse(BaseModel):
    logs: list[LogOut]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=LogOut, status_code=status.HTTP_201_CREATED)
async def create_log_endpoint(
    payload: LogIn,
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> LogOut:
    log = await ingest_log(
        db,
        org,
        payload.folder_path,
        payload.content,
        reference_id=payload.reference_id,
        external_link=payload.external_link,
        additional_context=payload.additional_context,
    )
    return LogOut.from_model(log)


@router.get("", response_model=LogListResponse)
async def list_logs(
    folder_path: str | None = Query(default=None),
    reference_id: str | None = Query(default=None),
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> LogListResponse:
    """List a folder's newest logs, or every log sharing a reference id."""
    if not folder_path and not reference_id:
        raise ValidationError("Provide a folder_path, a reference_id, or both.")

    folder_id: uuid.UUID | None = None
    if folder_path:
        folder = await get_folder_by_path(db, org.id, folder_path)
        folder_id = folder.id

    if reference_id:
        logs = await get_logs_by_reference_id(db, org.id, reference_id, folder_id=folder_id)
    else:
        logs = await get_logs(db, folder_id=folder_id)
    return LogListResponse(logs=[LogOut.from_model(log) for log in logs])


@router.get("/search", response_model=LogListResponse)
async def search_logs_endpoint(
    query: str = Query(min_length=1),
    folder_path: str | None = Query(default=None),
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> LogListResponse:
    folder_id: uuid.UUID | None = None
    if folder_path:
        folder = await get_folder_by_path(db, org.id, folder_path)
        folder_id = folder.id

    logs = await search_logs(db, org.id, query, folder_id=folder_id)
    return LogListResponse(logs=[LogOut.from_model(log) for log in logs])


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_log_endpoint(
    log_id: uuid.UUID,
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await delete_log(db, log_id, org.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
