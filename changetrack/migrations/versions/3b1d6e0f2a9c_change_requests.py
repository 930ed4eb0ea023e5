"""users + change requests + comments

Revision ID: 3b1d6e0f2a9c
Revises:
Create Date: 2026-10-19 09:12:41.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3b1d6e0f2a9c"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def _index_exists(bind, table: str, name: str) -> bool:
    insp = sa.inspect(bind)
    for ix in insp.get_indexes(table_name=table):
        if ix.get("name") in {name, op.f(name)}:
            return True
    return False


def upgrade() -> None:
    """Create required tables/indexes if they don't already exist."""
    bind = op.get_bind()

    # ---- USERS ----
    if not _table_exists(bind, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=16), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id", name=op.f("users_pkey")),
        )
    if not _index_exists(bind, "users", "ix_users_email"):
        op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    # ---- CHANGE REQUESTS ----
    if not _table_exists(bind, "change_requests"):
        op.create_table(
            "change_requests",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=64), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("priority", sa.String(length=16), nullable=False),
            sa.Column("impact", sa.String(length=16), nullable=False),
            sa.Column("systems_affected", sa.JSON(), nullable=True),
            sa.Column("requested_by_id", sa.String(length=64), nullable=False),
            sa.Column("approved_by_id", sa.String(length=64), nullable=True),
            sa.Column("planned_start", sa.DateTime(), nullable=True),
            sa.Column("planned_end", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.CheckConstraint(
                "status IN ('PENDING','APPROVED','REJECTED','IN_PROGRESS','COMPLETED','CANCELLED')",
                name="ck_change_requests_status",
            ),
            sa.ForeignKeyConstraint(["requested_by_id"], ["users.id"], name=op.f("change_requests_requested_by_id_fkey")),
            sa.ForeignKeyConstraint(["approved_by_id"], ["users.id"], name=op.f("change_requests_approved_by_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("change_requests_pkey")),
        )
    for col in ("status", "priority", "requested_by_id", "created_at"):
        name = f"ix_change_requests_{col}"
        if not _index_exists(bind, "change_requests", name):
            op.create_index(op.f(name), "change_requests", [col], unique=False)

    # ---- COMMENTS ----
    if not _table_exists(bind, "comments"):
        op.create_table(
            "comments",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("change_id", sa.String(length=64), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["change_id"], ["change_requests.id"], ondelete="CASCADE", name=op.f("comments_change_id_fkey")),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("comments_user_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("comments_pkey")),
        )
    if not _index_exists(bind, "comments", "ix_comments_change_id"):
        op.create_index(op.f("ix_comments_change_id"), "comments", ["change_id"], unique=False)


def downgrade() -> None:
    """Drop the same objects to roll back this revision."""
    # Drop in reverse dependency order
    op.drop_index(op.f("ix_comments_change_id"), table_name="comments")
    op.drop_table("comments")
    for col in ("created_at", "requested_by_id", "priority", "status"):
        op.drop_index(op.f(f"ix_change_requests_{col}"), table_name="change_requests")
    op.drop_table("change_requests")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
