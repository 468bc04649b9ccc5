"""initial schema

Revision ID: 3f2a9c1d7b6e
Revises:
Create Date: 2026-10-19 09:12:44.518230

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b6e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- organizations ---
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("num_logs_sent_in_period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("log_limit_for_period", sa.Integer(), nullable=False, server_default="10000"),
        sa.Column("cycle_starts", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cycle_ends", sa.DateTime(timezone=True), nullable=True),
        sa.Column("log_retention_in_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("sent_last_usage_email_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    # --- api_keys ---
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("key_hash", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_api_keys_key_hash", "api_keys", ["key_hash"])

    # --- folders ---
    op.create_table(
        "folders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("parent_folder_id", sa.Uuid(), sa.ForeignKey("folders.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("full_path", sa.String(), nullable=False),
        sa.Column("date_of_most_recent_log", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "organization_id", "parent_folder_id", "name", name="uq_folders_org_parent_name"
        ),
    )
    op.create_index("ix_folders_organization_id", "folders", ["organization_id"])
    op.create_index("ix_folders_parent_folder_id", "folders", ["parent_folder_id"])
    op.create_index(
        "uq_folders_org_root_name",
        "folders",
        ["organization_id", "name"],
        unique=True,
        postgresql_where=sa.text("parent_folder_id IS NULL"),
    )

    # --- logs ---
    op.create_table(
        "logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("folder_id", sa.Uuid(), sa.ForeignKey("folders.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("external_link", sa.String(), nullable=True),
        sa.Column("additional_context", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_logs_folder_created_at", "logs", ["folder_id", "created_at"])
    op.create_index("ix_logs_org_reference_id", "logs", ["organization_id", "reference_id"])
    op.create_index("ix_logs_org_created_at", "logs", ["organization_id", "created_at"])

    # --- rules ---
    op.create_table(
        "rules",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("folder_id", sa.Uuid(), sa.ForeignKey("folders.id"), nullable=False),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("comparison_type", sa.String(13), nullable=False),
        sa.Column("comparison_value", sa.Float(), nullable=False),
        sa.Column("lookback_time_in_mins", sa.Integer(), nullable=False),
        sa.Column("notification_type", sa.String(5), nullable=False, server_default="email"),
        sa.Column("number_of_times_triggered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_rules_user_id", "rules", ["user_id"])
    op.create_index("ix_rules_organization_id", "rules", ["organization_id"])

    # --- route_monitors ---
    op.create_table(
        "route_monitors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("num_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_codes", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("organization_id", "path", name="uq_route_monitors_org_path"),
    )

    # --- route_monitor_snapshots ---
    op.create_table(
        "route_monitor_snapshots",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("route_monitor_id", sa.Uuid(), sa.ForeignKey("route_monitors.id"), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("num_calls", sa.Integer(), nullable=False),
        sa.Column("error_codes", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index(
        "ix_route_monitor_snapshots_organization_id", "route_monitor_snapshots", ["organization_id"]
    )
    op.create_index(
        "ix_route_monitor_snapshots_route_monitor_id", "route_monitor_snapshots", ["route_monitor_id"]
    )

    # --- last_checked_folders ---
    op.create_table(
        "last_checked_folders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("full_path", sa.String(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_last_checked_folders_user_id", "last_checked_folders", ["user_id"])

    # --- favorite_folders ---
    op.create_table(
        "favorite_folders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("full_path", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "full_path", name="uq_favorite_folders_user_path"),
    )
    op.create_index("ix_favorite_folders_user_id", "favorite_folders", ["user_id"])


def downgrade() -> None:
    op.drop_table("favorite_folders")
    op.drop_table("last_checked_folders")
    op.drop_table("route_monitor_snapshots")
    op.drop_table("route_monitors")
    op.drop_table("rules")
    op.drop_table("logs")
    op.drop_table("folders")
    op.drop_table("api_keys")
    op.drop_table("users")
    op.drop_table("organizations")
