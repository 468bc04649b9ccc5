"""Log model: immutable records scoped to one leaf folder."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin


class Log(TimestampMixin, Base):
    __tablename__ = "logs"
    __table_args__ = (
        Index("ix_logs_folder_created_at", "folder_id", "created_at"),
        Index("ix_logs_org_reference_id", "organization_id", "reference_id"),
        Index("ix_logs_org_created_at", "organization_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    folder_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("folders.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String, nullable=True)
    external_link: Mapped[str | None] = mapped_column(String, nullable=True)
    additional_context: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
