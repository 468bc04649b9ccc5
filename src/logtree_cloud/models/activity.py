"""Per-user folder activity: the last-checked ledger, favorites, and preferences."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime, utcnow


class LastCheckedFolder(TimestampMixin, Base):
    """One row per time a user opened a folder. Never updated."""

    __tablename__ = "last_checked_folders"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    full_path: Mapped[str] = mapped_column(String, nullable=False, default="")  # empty for favorites


class FavoriteFolder(TimestampMixin, Base):
    __tablename__ = "favorite_folders"
    __table_args__ = (
        UniqueConstraint("user_id", "full_path", name="uq_favorite_folders_user_path"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    full_path: Mapped[str] = mapped_column(String, nullable=False)


class FolderPreference(TimestampMixin, Base):
    """Per-user display settings for a folder path, e.g. muting it in the tree."""

    __tablename__ = "folder_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "full_path", name="uq_folder_preferences_user_path"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    full_path: Mapped[str] = mapped_column(String, nullable=False)
    is_muted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
