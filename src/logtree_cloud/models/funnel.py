"""Funnel model: an ordered list of folders whose logs are forwarded to one channel."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin


class Funnel(TimestampMixin, Base):
    __tablename__ = "funnels"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    folder_paths_in_order: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    forward_to_channel_path: Mapped[str] = mapped_column(String, nullable=False)
