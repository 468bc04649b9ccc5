"""Route monitor models: per-path API call counters and their snapshots."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime, utcnow


class RouteMonitor(TimestampMixin, Base):
    __tablename__ = "route_monitors"
    __table_args__ = (
        UniqueConstraint("organization_id", "path", name="uq_route_monitors_org_path"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    path: Mapped[str] = mapped_column(String, nullable=False)
    num_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_codes: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class RouteMonitorSnapshot(TimestampMixin, Base):
    """Append-only copy of a route monitor at snapshot time."""

    __tablename__ = "route_monitor_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    route_monitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("route_monitors.id"), nullable=False, index=True
    )
    path: Mapped[str] = mapped_column(String, nullable=False)
    num_calls: Mapped[int] = mapped_column(Integer, nullable=False)
    error_codes: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
