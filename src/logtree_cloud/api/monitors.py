"""Route monitor endpoint: POST /v1/track."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.api.deps import get_current_org
from logtree_cloud.database import get_db
from logtree_cloud.models.organization import Organization
from logtree_cloud.monitors import record_call

router = APIRouter(prefix="/v1", tags=["monitors"])


class TrackIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(min_length=1, max_length=512)
    error_code: str | None = None


class TrackOut(BaseModel):
    path: str
    num_calls: int
    error_codes: dict[str, int]


@router.post("/track", response_model=TrackOut)
async def track_call(
    payload: TrackIn,
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> TrackOut:
    monitor = await record_call(db, org.id, payload.path, payload.error_code or None)
    return TrackOut(
        path=monitor.path,
        num_calls=monitor.num_calls,
        error_codes=dict(monitor.error_codes or {}),
    )
