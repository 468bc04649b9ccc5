"""Rule model: user-defined threshold alerts on a folder's log volume."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime


class ComparisonType(str, enum.Enum):
    CROSSES_ABOVE = "crosses_above"
    CROSSES_BELOW = "crosses_below"


class NotificationType(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"


class Rule(TimestampMixin, Base):
    __tablename__ = "rules"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    folder_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("folders.id"), nullable=False)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    comparison_type: Mapped[ComparisonType] = mapped_column(
        Enum(ComparisonType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    comparison_value: Mapped[float] = mapped_column(Float, nullable=False)
    lookback_time_in_mins: Mapped[int] = mapped_column(Integer, nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=NotificationType.EMAIL,
    )
    number_of_times_triggered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_triggered_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, default=None)
