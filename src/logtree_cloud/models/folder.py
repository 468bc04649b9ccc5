"""Folder model: one node of an organization's slash-addressed log tree.

A folder holds either logs or subfolders, never both.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime, utcnow


class Folder(TimestampMixin, Base):
    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "parent_folder_id", "name", name="uq_folders_org_parent_name"
        ),
        # NULLs are distinct in unique constraints, so root folders need their own index
        Index(
            "uq_folders_org_root_name",
            "organization_id",
            "name",
            unique=True,
            postgresql_where=text("parent_folder_id IS NULL"),
            sqlite_where=text("parent_folder_id IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    parent_folder_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("folders.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    full_path: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String(400), nullable=True, default=None)
    date_of_most_recent_log: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
