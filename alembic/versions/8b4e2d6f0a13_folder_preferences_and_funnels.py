"""folder preferences, descriptions and funnels

Revision ID: 8b4e2d6f0a13
Revises: 3f2a9c1d7b6e
Create Date: 2026-10-20 14:03:27.904116

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b4e2d6f0a13'
down_revision: Union[str, Sequence[str], None] = '3f2a9c1d7b6e'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("folders", sa.Column("description", sa.String(400), nullable=True))

    # --- folder_preferences ---
    op.create_table(
        "folder_preferences",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("full_path", sa.String(), nullable=False),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "full_path", name="uq_folder_preferences_user_path"),
    )
    op.create_index("ix_folder_preferences_user_id", "folder_preferences", ["user_id"])

    # --- funnels ---
    op.create_table(
        "funnels",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("folder_paths_in_order", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("forward_to_channel_path", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_funnels_organization_id", "funnels", ["organization_id"])


def downgrade() -> None:
    op.drop_table("funnels")
    op.drop_table("folder_preferences")
    op.drop_column("folders", "description")
