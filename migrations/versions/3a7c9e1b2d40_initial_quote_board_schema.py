"""initial quote board schema: users, groups, memberships, quotes, audit

Revision ID: 3a7c9e1b2d40
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "3a7c9e1b2d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("username", sa.String(length=150), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=False),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )

    if "groups" not in existing_tables:
        op.create_table(
            "groups",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("name", name="uq_groups_name"),
        )

    if "user_groups" not in existing_tables:
        op.create_table(
            "user_groups",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("group_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("user_id", "group_id"),
        )
        op.create_index("idx_user_groups_group_id", "user_groups", ["group_id"])

    if "quotes" not in existing_tables:
        op.create_table(
            "quotes",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("subject_user_id", sa.Integer(), nullable=False),
            sa.Column("submitter_user_id", sa.Integer(), nullable=False),
            sa.Column("group_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.ForeignKeyConstraint(["subject_user_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["submitter_user_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="RESTRICT"),
        )
        for idx_name, cols in (
            ("idx_quotes_group_id", ["group_id"]),
            ("idx_quotes_subject_user_id", ["subject_user_id"]),
            ("idx_quotes_submitter_user_id", ["submitter_user_id"]),
            ("idx_quotes_created_at", ["created_at"]),
        ):
            op.create_index(idx_name, "quotes", cols)

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_username", sa.String(length=150), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("reason", sa.String(length=512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("idx_quotes_created_at", table_name="quotes")
    op.drop_index("idx_quotes_submitter_user_id", table_name="quotes")
    op.drop_index("idx_quotes_subject_user_id", table_name="quotes")
    op.drop_index("idx_quotes_group_id", table_name="quotes")
    op.drop_table("quotes")
    op.drop_index("idx_user_groups_group_id", table_name="user_groups")
    op.drop_table("user_groups")
    op.drop_table("groups")
    op.drop_table("users")
