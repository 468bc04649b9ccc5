"""Organization model: multi-tenant root entity with its billing facet."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime


class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    # Billing cycle counters, mutated by usage accounting
    num_logs_sent_in_period: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    log_limit_for_period: Mapped[int] = mapped_column(Integer, nullable=False, default=10_000)
    cycle_starts: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cycle_ends: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    log_retention_in_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    sent_last_usage_email_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, default=None
    )
