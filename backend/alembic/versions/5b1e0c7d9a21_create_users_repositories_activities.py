"""create users, repositories and activities

Revision ID: 5b1e0c7d9a21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7d9a21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIONS = (
    "CREATE_REPOSITORY",
    "UPDATE_REPOSITORY",
    "DELETE_REPOSITORY",
    "PUSH_REPOSITORY",
    "STAR_REPOSITORY",
    "FORK_REPOSITORY",
    "ADD_COLLABORATOR",
    "REMOVE_COLLABORATOR",
    "UPDATE_PROFILE",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("github_user_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("github_user_id"),
        sa.UniqueConstraint("username"),
    )

    op.create_table(
        "repositories",
        sa.Column("repo_id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("github_repo_id", sa.String(length=64), nullable=False),
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("language", sa.String(length=100), nullable=True),
        sa.Column("star_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("fork_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.user_id"]),
        sa.PrimaryKeyConstraint("repo_id"),
        sa.UniqueConstraint("github_repo_id"),
    )

    action_values = ", ".join(f"'{a}'" for a in ACTIONS)
    op.create_table(
        "activities",
        sa.Column("activity_id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(f"action IN ({action_values})", name="ck_activities_action"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.PrimaryKeyConstraint("activity_id"),
    )
    op.create_index(
        "ix_activities_user_id_timestamp",
        "activities",
        ["user_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("ix_activities_user_id_timestamp", table_name="activities")
    op.drop_table("activities")
    op.drop_table("repositories")
    op.drop_table("users")
