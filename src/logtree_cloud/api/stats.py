"""Folder statistics endpoint: GET /v1/stats/histograms."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.api.deps import get_current_org
from logtree_cloud.database import get_db
from logtree_cloud.folders import get_folder_by_path
from logtree_cloud.models.organization import Organization
from logtree_cloud.stats import Histogram, StatsCache, get_histograms_for_folder

router = APIRouter(prefix="/v1/stats", tags=["stats"])

# One per process; multi-day windows only re-read logs newer than the cached ceiling.
stats_cache = StatsCache()


class HistogramBoxOut(BaseModel):
    floor_date: datetime
    ceiling_date: datetime
    count: int


class HistogramOut(BaseModel):
    key: str
    count: int
    boxes: list[HistogramBoxOut]

    @classmethod
    def from_histogram(cls, histogram: Histogram) -> HistogramOut:
        return cls(
            key=histogram.key,
            count=histogram.count,
            boxes=[
                HistogramBoxOut(floor_date=box.floor_date, ceiling_date=box.ceiling_date, count=box.count)
                for box in histogram.boxes
            ],
        )


class HistogramListResponse(BaseModel):
    histograms: list[HistogramOut]


@router.get("/histograms", response_model=HistogramListResponse)
async def histograms(
    folder_path: str = Query(min_length=1),
    last_x_days: int = Query(default=1, ge=1, le=30),
    group_by_reference_id: bool = Query(default=False),
    org: Organization = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
) -> HistogramListResponse:
    folder = await get_folder_by_path(db, org.id, folder_path)
    result = await get_histograms_for_folder(
        db,
        folder.id,
        group_by_reference_id=group_by_reference_id,
        last_x_days=last_x_days,
        cache=stats_cache,
    )
    return HistogramListResponse(histograms=[HistogramOut.from_histogram(h) for h in result])
