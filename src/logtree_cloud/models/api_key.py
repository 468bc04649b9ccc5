"""API key model: hashed secret keys used by log senders."""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from logtree_cloud.models.base import Base, TimestampMixin, UTCDateTime

KEY_PREFIX = "lt_"


class ApiKey(TimestampMixin, Base):
    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    key_hash: Mapped[str] = mapped_column(String, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, default=None)

    @staticmethod
    def generate_key() -> str:
        """Generate a new secret key in the format ``lt_<hex>``."""
        return f"{KEY_PREFIX}{secrets.token_hex(24)}"

    @staticmethod
    def hash_key(raw_key: str, salt: str) -> str:
        return hashlib.sha256(f"{salt}:{raw_key}".encode()).hexdigest()
